# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Mesh refinement: midpoint subdivision and Laplacian smoothing.

Both operations return new meshes and leave their input untouched. The
reconstruction pipeline runs them as subdivide-then-smooth with fixed
defaults tuned for depth-map output (see ``refine``).
"""

from typing import Optional
import logging

import numpy as np
import trimesh
from scipy import sparse

from .cancellation import CancellationToken, check_cancelled
from .config import (
    DEFAULT_SMOOTHING_FACTOR,
    DEFAULT_SMOOTHING_ITERATIONS,
    DEFAULT_SUBDIVISION_ITERATIONS,
)
from .errors import InvalidParameterError
from .mesh import IndexedMesh, compute_vertex_normals

logger = logging.getLogger(__name__)


def _check_iterations(iterations: int) -> int:
    if isinstance(iterations, bool) or int(iterations) != iterations or iterations < 0:
        raise InvalidParameterError(f"iterations must be an integer >= 0, got {iterations}")
    return int(iterations)


def _subdivide_once(
    positions: np.ndarray,
    faces: np.ndarray,
    uvs: Optional[np.ndarray],
) -> tuple[np.ndarray, np.ndarray, Optional[np.ndarray]]:
    """Split every triangle into four at its edge midpoints."""
    edges = np.sort(trimesh.geometry.faces_to_edges(faces), axis=1)
    # One midpoint per unique (min, max) index pair so neighbors share it
    unique, inverse = trimesh.grouping.unique_rows(edges)
    edge_ends = edges[unique]

    midpoints = positions[edge_ends].mean(axis=1)
    mid = np.asarray(inverse).reshape((-1, 3)) + len(positions)

    new_faces = np.column_stack((
        faces[:, 0], mid[:, 0], mid[:, 2],
        mid[:, 0], faces[:, 1], mid[:, 1],
        mid[:, 2], mid[:, 1], faces[:, 2],
        mid[:, 0], mid[:, 1], mid[:, 2],
    )).reshape((-1, 3))

    new_uvs = None
    if uvs is not None:
        new_uvs = np.vstack((uvs, uvs[edge_ends].mean(axis=1)))

    return np.vstack((positions, midpoints)), new_faces, new_uvs


def subdivide(
    mesh: IndexedMesh,
    iterations: int = DEFAULT_SUBDIVISION_ITERATIONS,
    cancel: Optional[CancellationToken] = None,
) -> IndexedMesh:
    """
    Uniform midpoint subdivision.

    Each pass inserts one vertex per unique edge and replaces every triangle
    with four, so the face count grows by 4**iterations. Shared edges reuse
    the same midpoint, so no T-junctions or duplicate seams are introduced.
    Uvs are interpolated linearly; normals are recomputed after each pass.

    Args:
        mesh: Input mesh
        iterations: Number of passes (>= 0)
        cancel: Optional cancellation token, checked before each pass

    Returns:
        New subdivided mesh
    """
    iterations = _check_iterations(iterations)

    positions = mesh.positions
    faces = mesh.faces
    uvs = mesh.uvs
    normals = mesh.normals

    for iteration in range(iterations):
        check_cancelled(cancel, "subdivision")
        if len(faces) == 0:
            break
        positions, faces, uvs = _subdivide_once(positions, faces, uvs)
        normals = compute_vertex_normals(positions, faces)
        logger.debug(
            f"Subdivision pass {iteration + 1}/{iterations}: "
            f"{len(positions):,} vertices, {len(faces):,} faces"
        )

    return IndexedMesh(positions=positions, faces=faces, uvs=uvs, normals=normals)


def vertex_adjacency(mesh: IndexedMesh) -> sparse.csr_matrix:
    """
    Deduplicated 1-ring adjacency as an (N, N) sparse 0/1 matrix.

    Self-loops from degenerate triangles are dropped.
    """
    vertex_count = mesh.vertex_count
    edges = mesh.faces[:, [0, 1, 1, 2, 2, 0]].reshape((-1, 2))
    edges = edges[edges[:, 0] != edges[:, 1]]
    rows = np.concatenate((edges[:, 0], edges[:, 1]))
    cols = np.concatenate((edges[:, 1], edges[:, 0]))

    adjacency = sparse.coo_matrix(
        (np.ones(len(rows), dtype=np.float64), (rows, cols)),
        shape=(vertex_count, vertex_count),
    ).tocsr()
    # tocsr() sums duplicate entries; a neighbor counts once
    adjacency.data[:] = 1.0
    return adjacency


def smooth(
    mesh: IndexedMesh,
    iterations: int = 1,
    factor: float = 0.5,
    cancel: Optional[CancellationToken] = None,
) -> IndexedMesh:
    """
    Uniform-weight Laplacian smoothing.

    Every iteration moves each vertex toward the plain average of its
    neighbors: ``v' = v + (avg(neighbors) - v) * factor``. All vertices are
    updated from the previous iteration's positions, never from partially
    updated ones. Vertices without neighbors stay put.

    Args:
        mesh: Input mesh
        iterations: Number of smoothing iterations (>= 0)
        factor: Step toward the neighbor average, in [0, 1]
        cancel: Optional cancellation token, checked before each iteration

    Returns:
        New smoothed mesh with recomputed normals
    """
    iterations = _check_iterations(iterations)
    if not 0.0 <= factor <= 1.0:
        raise InvalidParameterError(f"factor must be in [0, 1], got {factor}")

    if iterations == 0 or mesh.face_count == 0:
        return IndexedMesh(
            positions=mesh.positions, faces=mesh.faces, uvs=mesh.uvs, normals=mesh.normals
        )

    adjacency = vertex_adjacency(mesh)
    degree = np.asarray(adjacency.sum(axis=1)).ravel()
    connected = degree > 0

    positions = np.array(mesh.positions, dtype=np.float64)
    for iteration in range(iterations):
        check_cancelled(cancel, "smoothing")
        previous = positions
        average = adjacency @ previous
        average[connected] /= degree[connected, None]
        positions = previous.copy()
        positions[connected] += (average[connected] - previous[connected]) * factor

    logger.debug(f"Smoothed {mesh.vertex_count:,} vertices ({iterations} iterations, factor={factor})")

    return IndexedMesh(
        positions=positions,
        faces=mesh.faces,
        uvs=mesh.uvs,
        normals=compute_vertex_normals(positions, mesh.faces),
    )


def refine(mesh: IndexedMesh, cancel: Optional[CancellationToken] = None) -> IndexedMesh:
    """Subdivide then smooth with the pipeline's fixed defaults."""
    subdivided = subdivide(mesh, DEFAULT_SUBDIVISION_ITERATIONS, cancel=cancel)
    return smooth(
        subdivided,
        DEFAULT_SMOOTHING_ITERATIONS,
        DEFAULT_SMOOTHING_FACTOR,
        cancel=cancel,
    )
