# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Pytest configuration and fixtures for ReliefMesh tests."""

import numpy as np
import pytest
import trimesh

from reliefmesh.core import IndexedMesh


def make_grid_plane(count: int = 4, step: float = 0.1, y: float = 0.0, facing_down: bool = True) -> IndexedMesh:
    """
    Flat (count x count) quad grid in the XZ plane at height ``y``.

    Faces point along -Y when ``facing_down``, otherwise along +Y.
    """
    coords = np.arange(count + 1) * step
    xs, zs = np.meshgrid(coords, coords, indexing="ij")
    positions = np.column_stack((xs.ravel(), np.full(xs.size, y), zs.ravel()))

    index = np.arange((count + 1) ** 2).reshape((count + 1, count + 1))
    a = index[:-1, :-1].ravel()
    b = index[1:, :-1].ravel()
    c = index[:-1, 1:].ravel()
    d = index[1:, 1:].ravel()
    faces = np.vstack((np.column_stack((a, b, c)), np.column_stack((b, d, c))))
    if not facing_down:
        faces = faces[:, ::-1]
    return IndexedMesh(positions=positions, faces=faces)


def make_wall_plane(count: int = 4, step: float = 0.1) -> IndexedMesh:
    """Vertical quad grid in the XY plane facing +Z."""
    coords = np.arange(count + 1) * step
    xs, ys = np.meshgrid(coords, coords, indexing="ij")
    positions = np.column_stack((xs.ravel(), ys.ravel(), np.zeros(xs.size)))

    index = np.arange((count + 1) ** 2).reshape((count + 1, count + 1))
    a = index[:-1, :-1].ravel()
    b = index[1:, :-1].ravel()
    c = index[:-1, 1:].ravel()
    d = index[1:, 1:].ravel()
    faces = np.vstack((np.column_stack((a, b, c)), np.column_stack((b, d, c))))
    return IndexedMesh(positions=positions, faces=faces)


def combine(*meshes: IndexedMesh) -> IndexedMesh:
    """Concatenate meshes into one, offsetting face indices."""
    positions = []
    faces = []
    offset = 0
    for mesh in meshes:
        positions.append(mesh.positions)
        faces.append(mesh.faces + offset)
        offset += mesh.vertex_count
    return IndexedMesh(positions=np.vstack(positions), faces=np.vstack(faces))


def signed_volume(mesh: IndexedMesh) -> float:
    triangles = mesh.positions[mesh.faces]
    a, b, c = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    return float(np.einsum("ij,ij->i", a, np.cross(b, c)).sum() / 6.0)


@pytest.fixture
def box_mesh():
    """10 x 10 x 10 cube centered on the origin."""
    return IndexedMesh.from_trimesh(trimesh.creation.box(extents=[10, 10, 10]))


@pytest.fixture
def down_plane():
    """Small downward-facing plane inside a single overhang bucket."""
    return make_grid_plane(count=4, step=0.1)


@pytest.fixture
def wall_plane():
    """Small vertical plane."""
    return make_wall_plane(count=4, step=0.1)


@pytest.fixture
def triangle_mesh():
    """A single right triangle in the XY plane."""
    return IndexedMesh(
        positions=np.array([[0.0, 0.0, 0.0], [3.0, 0.0, 0.0], [0.0, 3.0, 0.0]]),
        faces=np.array([[0, 1, 2]]),
    )


@pytest.fixture
def flat_depth():
    """64 x 64 depth map at constant mid depth."""
    return np.full((64, 64), 0.5)
