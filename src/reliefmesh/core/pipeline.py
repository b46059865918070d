# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Depth-to-solid reconstruction pipeline.

Runs the stages in order:

1. heightmap  - sample the depth map on a coarse grid, masked and smoothed
2. shell      - build the closed front/back/wall mesh
3. complexity - reject or warn on oversized meshes before refinement
4. subdivide  - one midpoint subdivision pass
5. smooth     - Laplacian smoothing

Each stage reports a StageStats through the optional progress callback.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union
import logging
import time

import numpy as np
import trimesh

from .cancellation import CancellationToken, check_cancelled
from .complexity import check_mesh_complexity
from .config import (
    DEFAULT_SMOOTHING_FACTOR,
    DEFAULT_SMOOTHING_ITERATIONS,
    DEFAULT_SUBDIVISION_ITERATIONS,
    ReconstructionParams,
)
from .errors import ComplexityWarning, InvalidParameterError
from .heightmap import build_heightmap
from .mesh import IndexedMesh
from .refine import smooth, subdivide
from .shell import build_shell_mesh

logger = logging.getLogger(__name__)


STAGES = ("heightmap", "shell", "complexity", "subdivide", "smooth")


@dataclass
class StageStats:
    """Vertex and face counts after a pipeline stage."""
    stage: str
    vertex_count: int
    face_count: int
    duration_ms: float

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "vertex_count": self.vertex_count,
            "face_count": self.face_count,
            "duration_ms": self.duration_ms,
        }


@dataclass
class ReconstructionResult:
    """
    Output of ``reconstruct``.

    Attributes:
        mesh: Final refined mesh
        warnings: Non-fatal complexity warnings raised along the way
        stages: Per-stage statistics in execution order
        boundary_edge_count: Walls stitched by the shell builder
    """
    mesh: IndexedMesh
    warnings: list[ComplexityWarning] = field(default_factory=list)
    stages: list[StageStats] = field(default_factory=list)
    boundary_edge_count: int = 0

    @property
    def total_duration_ms(self) -> float:
        return sum(stage.duration_ms for stage in self.stages)

    def to_dict(self) -> dict:
        """Summary for JSON reports; the mesh itself is not included."""
        return {
            "vertex_count": self.mesh.vertex_count,
            "face_count": self.mesh.face_count,
            "boundary_edge_count": self.boundary_edge_count,
            "warnings": [str(w) for w in self.warnings],
            "stages": [stage.to_dict() for stage in self.stages],
            "total_duration_ms": self.total_duration_ms,
        }


ProgressCallback = Callable[[str, StageStats], None]


def reconstruct(
    depth,
    width: int,
    height: int,
    params: Optional[Union[ReconstructionParams, dict]] = None,
    mask=None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
) -> ReconstructionResult:
    """
    Turn a depth map into a closed, refined relief mesh.

    Args:
        depth: Depth values in [0, 1], shape (height, width) or flat
        width: Depth map width in pixels
        height: Depth map height in pixels
        params: ReconstructionParams, or a dict of untrusted values that
            is clamped into range (defaults if None)
        mask: Optional RGBA mask; alpha <= 128 marks background
        progress: Optional callback(stage, stats) invoked after each stage
        cancel: Optional cancellation token checked between stages

    Returns:
        ReconstructionResult with the mesh and per-stage statistics

    Raises:
        InvalidParameterError: On malformed inputs
        EmptyGeometryError: If the mask leaves no geometry
        TooComplexError: If the shell exceeds the hard complexity ceiling
        OperationCancelledError: If ``cancel`` fires
    """
    if params is None:
        params = ReconstructionParams()
    elif isinstance(params, dict):
        params = ReconstructionParams.from_dict(params)
    params.validate()

    result_stages: list[StageStats] = []
    warnings: list[ComplexityWarning] = []

    def record(stage: str, start: float, vertex_count: int, face_count: int) -> None:
        stats = StageStats(
            stage=stage,
            vertex_count=vertex_count,
            face_count=face_count,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        result_stages.append(stats)
        logger.debug(
            f"[{stage}] {vertex_count:,} vertices, {face_count:,} faces "
            f"({stats.duration_ms:.1f}ms)"
        )
        if progress:
            progress(stage, stats)

    logger.info(
        f"Reconstructing {width}x{height} depth map "
        f"(resolution={params.resolution}, depth_scale={params.depth_scale}, "
        f"smoothness={params.smoothness})"
    )

    check_cancelled(cancel, "heightmap")
    start = time.perf_counter()
    heightmap = build_heightmap(
        depth, width, height, params.resolution, smoothness=params.smoothness, mask=mask
    )
    record("heightmap", start, heightmap.visible_count, 0)

    check_cancelled(cancel, "shell")
    start = time.perf_counter()
    shell = build_shell_mesh(heightmap, params.depth_scale)
    mesh = shell.mesh
    record("shell", start, mesh.vertex_count, mesh.face_count)

    check_cancelled(cancel, "complexity")
    start = time.perf_counter()
    warning = check_mesh_complexity(mesh)
    if warning is not None:
        warnings.append(warning)
    record("complexity", start, mesh.vertex_count, mesh.face_count)

    start = time.perf_counter()
    mesh = subdivide(mesh, DEFAULT_SUBDIVISION_ITERATIONS, cancel=cancel)
    record("subdivide", start, mesh.vertex_count, mesh.face_count)

    start = time.perf_counter()
    mesh = smooth(mesh, DEFAULT_SMOOTHING_ITERATIONS, DEFAULT_SMOOTHING_FACTOR, cancel=cancel)
    record("smooth", start, mesh.vertex_count, mesh.face_count)

    result = ReconstructionResult(
        mesh=mesh,
        warnings=warnings,
        stages=result_stages,
        boundary_edge_count=shell.boundary_edge_count,
    )
    logger.info(
        f"Reconstruction complete: {mesh.vertex_count:,} vertices, "
        f"{mesh.face_count:,} faces in {result.total_duration_ms:.1f}ms"
    )
    return result


def print_scale_transform(mesh: IndexedMesh, target_size: float = 100.0) -> np.ndarray:
    """
    Uniform scale matrix fitting the mesh's largest dimension to ``target_size``.

    Pass the result as the ``transform`` of ``analyze`` to evaluate the model
    at print size. Empty or zero-size meshes get the identity.
    """
    if not target_size > 0:
        raise InvalidParameterError(f"target_size must be > 0, got {target_size}")
    if mesh.vertex_count == 0:
        return np.eye(4)
    size = mesh.positions.max(axis=0) - mesh.positions.min(axis=0)
    largest = float(size.max())
    if largest <= 0:
        return np.eye(4)
    return trimesh.transformations.scale_matrix(target_size / largest)
