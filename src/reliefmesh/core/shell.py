# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Two-sided shell construction from a heightmap.

The relief solid is bounded by three kinds of triangles:

- a front cap following the sampled depth,
- a back cap offset behind it by a depth-dependent thickness,
- side walls stitched along every boundary edge of the visible region,
  covering both holes left by the mask and the outer grid perimeter.

Both caps are triangulated per grid cell (the square spanned by four
neighboring samples); a cell is present when all four samples are visible.
All triangles are wound so that normals face out of the solid.
"""

from dataclasses import dataclass
from enum import Enum
import logging

import numpy as np

from .config import (
    BASE_THICKNESS_FACTOR,
    DEPTH_VARIATION_FACTOR,
    FOOTPRINT_SIZE,
    THICKNESS_DEPTH_FACTOR,
    THICKNESS_MIN_FACTOR,
)
from .errors import EmptyGeometryError, InvalidParameterError
from .heightmap import Heightmap
from .mesh import IndexedMesh

logger = logging.getLogger(__name__)


class EdgeDirection(Enum):
    """Side of a grid cell."""
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class BoundaryEdge:
    """A side of a present cell whose neighbor is absent or off-grid."""
    row: int
    col: int
    direction: EdgeDirection


# Order in which directions are reported for a cell
_DIRECTIONS = (EdgeDirection.TOP, EdgeDirection.BOTTOM, EdgeDirection.LEFT, EdgeDirection.RIGHT)

# Neighbor cell offset (d_row, d_col) per direction
_NEIGHBOR_OFFSETS = {
    EdgeDirection.TOP: (-1, 0),
    EdgeDirection.BOTTOM: (1, 0),
    EdgeDirection.LEFT: (0, -1),
    EdgeDirection.RIGHT: (0, 1),
}

# Directed front-cap edge u -> v of each cell side, as sample offsets
# (d_row, d_col) from the cell's top-left sample. Sides run counter-clockwise
# seen from +Z; walls traverse them v -> u so wall normals face outward.
_WALL_EDGES = {
    EdgeDirection.TOP: ((0, 1), (0, 0)),
    EdgeDirection.LEFT: ((0, 0), (1, 0)),
    EdgeDirection.BOTTOM: ((1, 0), (1, 1)),
    EdgeDirection.RIGHT: ((1, 1), (0, 1)),
}


@dataclass(frozen=True, eq=False)
class ShellMesh:
    """
    Result of shell construction.

    Attributes:
        mesh: The closed front + back + wall mesh
        boundary_edges: Cell sides that received a wall, cell-major order
        front_vertex_count: Vertices in the front sheet (indices [0, n))
        back_vertex_count: Vertices in the back sheet (indices [n, 2n))
    """
    mesh: IndexedMesh
    boundary_edges: tuple[BoundaryEdge, ...]
    front_vertex_count: int
    back_vertex_count: int

    @property
    def boundary_edge_count(self) -> int:
        return len(self.boundary_edges)


def _normalized_coordinates(heightmap: Heightmap) -> tuple[np.ndarray, np.ndarray]:
    """Per-sample (u, v) in [0, 1] along columns and rows."""
    rows, cols = heightmap.shape
    u = np.arange(cols, dtype=np.float64)
    v = np.arange(rows, dtype=np.float64)
    if heightmap.segments_x > 0:
        u /= heightmap.segments_x
    if heightmap.segments_y > 0:
        v /= heightmap.segments_y
    return np.meshgrid(u, v, indexing="xy")


def sheet_depths(depth: np.ndarray, depth_scale: float) -> tuple[np.ndarray, np.ndarray]:
    """
    Front and back Z for the given depth samples.

    The front relief is exaggerated around mid depth and the local thickness
    grows with depth, so nearer regions get a thicker body.
    """
    variation = 1.0 + (depth - 0.5) * DEPTH_VARIATION_FACTOR
    front_z = depth * depth_scale * variation
    base_thickness = depth_scale * BASE_THICKNESS_FACTOR
    thickness = base_thickness * (THICKNESS_MIN_FACTOR + depth * THICKNESS_DEPTH_FACTOR)
    return front_z, front_z - thickness


def find_boundary_edges(present: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Locate cell sides that need a wall.

    Args:
        present: (segments_y, segments_x) boolean cell occupancy

    Returns:
        Arrays (rows, cols, direction_index) in cell-major order, where
        direction_index indexes into TOP, BOTTOM, LEFT, RIGHT
    """
    padded = np.pad(present, 1, constant_values=False)
    cell_rows, cell_cols = np.nonzero(present)

    rows, cols, dirs = [], [], []
    for index, direction in enumerate(_DIRECTIONS):
        d_row, d_col = _NEIGHBOR_OFFSETS[direction]
        open_side = ~padded[cell_rows + 1 + d_row, cell_cols + 1 + d_col]
        rows.append(cell_rows[open_side])
        cols.append(cell_cols[open_side])
        dirs.append(np.full(int(np.count_nonzero(open_side)), index, dtype=np.int64))

    rows = np.concatenate(rows)
    cols = np.concatenate(cols)
    dirs = np.concatenate(dirs)
    order = np.lexsort((dirs, cols, rows))
    return rows[order], cols[order], dirs[order]


def build_shell_mesh(heightmap: Heightmap, depth_scale: float) -> ShellMesh:
    """
    Build the closed two-sided mesh for a heightmap.

    Args:
        heightmap: Sampled depth grid
        depth_scale: Relief height multiplier (> 0)

    Returns:
        ShellMesh with the mesh and the boundary edges that were walled

    Raises:
        InvalidParameterError: If depth_scale is not positive
        EmptyGeometryError: If no vertices or no triangles result
    """
    if not depth_scale > 0:
        raise InvalidParameterError(f"depth_scale must be > 0, got {depth_scale}")

    visible = heightmap.visible
    vertex_total = heightmap.visible_count

    # Per-sheet (row, col) -> vertex index lookup, -1 where void
    front_index = np.full(heightmap.shape, -1, dtype=np.int64)
    back_index = np.full(heightmap.shape, -1, dtype=np.int64)
    front_index[visible] = np.arange(vertex_total, dtype=np.int64)
    back_index[visible] = np.arange(vertex_total, 2 * vertex_total, dtype=np.int64)

    u, v = _normalized_coordinates(heightmap)
    x = (u - 0.5) * FOOTPRINT_SIZE
    y = -(v - 0.5) * FOOTPRINT_SIZE * heightmap.aspect
    front_z, back_z = sheet_depths(heightmap.depth, depth_scale)

    positions = np.empty((2 * vertex_total, 3), dtype=np.float64)
    positions[:vertex_total] = np.column_stack((x[visible], y[visible], front_z[visible]))
    positions[vertex_total:] = np.column_stack((x[visible], y[visible], back_z[visible]))

    sheet_uvs = np.column_stack((u[visible], v[visible]))
    uvs = np.vstack((sheet_uvs, sheet_uvs))

    present = visible[:-1, :-1] & visible[:-1, 1:] & visible[1:, :-1] & visible[1:, 1:]
    cell_rows, cell_cols = np.nonzero(present)
    cell_count = len(cell_rows)

    edge_rows, edge_cols, edge_dirs = find_boundary_edges(present)
    edge_count = len(edge_rows)

    faces = np.empty((4 * cell_count + 2 * edge_count, 3), dtype=np.int64)

    def corners(index_grid: np.ndarray):
        return (
            index_grid[cell_rows, cell_cols],
            index_grid[cell_rows, cell_cols + 1],
            index_grid[cell_rows + 1, cell_cols],
            index_grid[cell_rows + 1, cell_cols + 1],
        )

    # Front cap faces +Z, back cap reversed to face -Z
    a, b, c, d = corners(front_index)
    faces[0:cell_count] = np.column_stack((a, c, b))
    faces[cell_count:2 * cell_count] = np.column_stack((b, c, d))
    a, b, c, d = corners(back_index)
    faces[2 * cell_count:3 * cell_count] = np.column_stack((a, b, c))
    faces[3 * cell_count:4 * cell_count] = np.column_stack((b, d, c))

    # Walls, one quad per boundary edge
    wall_start = 4 * cell_count
    for index, direction in enumerate(_DIRECTIONS):
        selected = edge_dirs == index
        if not np.any(selected):
            continue
        rows = edge_rows[selected]
        cols = edge_cols[selected]
        (u_row, u_col), (v_row, v_col) = _WALL_EDGES[direction]
        front_u = front_index[rows + u_row, cols + u_col]
        front_v = front_index[rows + v_row, cols + v_col]
        back_u = back_index[rows + u_row, cols + u_col]
        back_v = back_index[rows + v_row, cols + v_col]

        slots = wall_start + 2 * np.flatnonzero(selected)
        faces[slots] = np.column_stack((front_v, front_u, back_u))
        faces[slots + 1] = np.column_stack((front_v, back_u, back_v))

    if len(positions) == 0 or len(faces) == 0:
        raise EmptyGeometryError(
            "Could not generate valid geometry. Try a different image or adjust the parameters."
        )

    boundary_edges = tuple(
        BoundaryEdge(row=int(r), col=int(c), direction=_DIRECTIONS[k])
        for r, c, k in zip(edge_rows, edge_cols, edge_dirs)
    )

    mesh = IndexedMesh(positions=positions, faces=faces, uvs=uvs).with_normals()

    logger.info(
        f"Shell mesh: {mesh.vertex_count:,} vertices, {mesh.face_count:,} triangles, "
        f"{edge_count:,} boundary edges"
    )

    return ShellMesh(
        mesh=mesh,
        boundary_edges=boundary_edges,
        front_vertex_count=vertex_total,
        back_vertex_count=vertex_total,
    )
