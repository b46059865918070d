# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Indexed triangle mesh value type.

``IndexedMesh`` is the buffer format passed between every stage of the
geometry core: positions, triangle indices and optional per-vertex uvs and
normals. Instances are immutable snapshots; every operation returns a new
mesh with its own arrays.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np
import trimesh

logger = logging.getLogger(__name__)


def _frozen(array: Optional[np.ndarray], dtype, columns: int, name: str) -> Optional[np.ndarray]:
    """Copy ``array`` into a read-only ``(n, columns)`` array of ``dtype``."""
    if array is None:
        return None
    result = np.array(array, dtype=dtype, copy=True)
    if result.size == 0:
        result = result.reshape((0, columns))
    if result.ndim == 1 and result.size % columns == 0:
        result = result.reshape((-1, columns))
    if result.ndim != 2 or result.shape[1] != columns:
        raise ValueError(f"{name} must have shape (n, {columns}), got {result.shape}")
    result.setflags(write=False)
    return result


@dataclass(frozen=True, eq=False)
class IndexedMesh:
    """
    Triangle mesh stored as parallel vertex buffers plus an index buffer.

    Attributes:
        positions: (N, 3) float64 vertex positions
        faces: (M, 3) int64 vertex indices, one row per triangle
        uvs: Optional (N, 2) float64 texture coordinates
        normals: Optional (N, 3) float64 vertex normals

    Flat buffers (``indices`` or ``positions`` of length 3N) are accepted
    and reshaped. Every index must be < N.
    """
    positions: np.ndarray
    faces: np.ndarray
    uvs: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None

    def __post_init__(self):
        positions = _frozen(self.positions, np.float64, 3, "positions")
        faces = _frozen(self.faces, np.int64, 3, "faces")
        uvs = _frozen(self.uvs, np.float64, 2, "uvs")
        normals = _frozen(self.normals, np.float64, 3, "normals")

        vertex_count = len(positions)
        if len(faces) and (faces.min() < 0 or faces.max() >= vertex_count):
            raise ValueError(
                f"Face indices out of range for {vertex_count} vertices"
            )
        if uvs is not None and len(uvs) != vertex_count:
            raise ValueError(f"Expected {vertex_count} uvs, got {len(uvs)}")
        if normals is not None and len(normals) != vertex_count:
            raise ValueError(f"Expected {vertex_count} normals, got {len(normals)}")

        object.__setattr__(self, "positions", positions)
        object.__setattr__(self, "faces", faces)
        object.__setattr__(self, "uvs", uvs)
        object.__setattr__(self, "normals", normals)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def indices(self) -> np.ndarray:
        """Flat index buffer, three entries per triangle."""
        return self.faces.ravel()

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0 or self.face_count == 0

    def edges(self) -> np.ndarray:
        """Undirected edges of every triangle as sorted (M*3, 2) index pairs."""
        edges = self.faces[:, [0, 1, 1, 2, 2, 0]].reshape((-1, 2))
        return np.sort(edges, axis=1)

    def edge_face_counts(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Count how many triangles use each unique edge.

        Returns:
            Tuple of (unique_edges (E, 2), counts (E,))
        """
        if self.face_count == 0:
            return np.zeros((0, 2), dtype=np.int64), np.zeros(0, dtype=np.int64)
        return np.unique(self.edges(), axis=0, return_counts=True)

    @property
    def boundary_edge_count(self) -> int:
        """Number of edges used by exactly one triangle."""
        _, counts = self.edge_face_counts()
        return int(np.sum(counts == 1))

    def is_closed_manifold(self) -> bool:
        """True if every edge is shared by exactly two triangles."""
        _, counts = self.edge_face_counts()
        return bool(len(counts)) and bool(np.all(counts == 2))

    def with_normals(self) -> "IndexedMesh":
        """Return a copy with vertex normals recomputed from the faces."""
        return IndexedMesh(
            positions=self.positions,
            faces=self.faces,
            uvs=self.uvs,
            normals=compute_vertex_normals(self.positions, self.faces),
        )

    def to_trimesh(self) -> trimesh.Trimesh:
        """Convert to a trimesh object without merging or reordering vertices."""
        return trimesh.Trimesh(
            vertices=np.array(self.positions, dtype=np.float64),
            faces=np.array(self.faces, dtype=np.int64),
            process=False,
        )

    @classmethod
    def from_trimesh(cls, mesh: trimesh.Trimesh) -> "IndexedMesh":
        """Create from a trimesh object, keeping texture uvs when present."""
        uvs = None
        visual_uv = getattr(mesh.visual, "uv", None)
        if visual_uv is not None and len(visual_uv) == len(mesh.vertices):
            uvs = visual_uv
        return cls(positions=mesh.vertices, faces=mesh.faces, uvs=uvs)

    @classmethod
    def empty(cls) -> "IndexedMesh":
        return cls(positions=np.zeros((0, 3)), faces=np.zeros((0, 3), dtype=np.int64))

    def __repr__(self) -> str:
        return f"IndexedMesh(vertices={self.vertex_count}, faces={self.face_count})"


def compute_vertex_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """
    Area-weighted vertex normals computed from scratch.

    Vertices not referenced by any face get a zero normal.
    """
    if len(faces) == 0:
        return np.zeros((len(positions), 3), dtype=np.float64)

    triangles = positions[faces]
    # Unnormalized cross product: magnitude is twice the face area
    face_normals = np.cross(
        triangles[:, 1] - triangles[:, 0],
        triangles[:, 2] - triangles[:, 0],
    )
    normals = np.zeros((len(positions), 3), dtype=np.float64)
    for corner in range(3):
        np.add.at(normals, faces[:, corner], face_normals)
    return trimesh.util.unitize(normals)
