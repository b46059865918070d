# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Printability analysis for arbitrary triangle meshes.

Computes the physical properties relevant to FDM printing: volume, surface
area, bounding dimensions, downward-facing overhang regions, a layer height
recommendation, a support material estimate and split suggestions for
models larger than the build volume.

Volume uses the signed-tetrahedron sum, which is only meaningful for a
closed, consistently wound mesh. The input is trusted; callers handling
untrusted geometry should check ``IndexedMesh.is_closed_manifold()`` first.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import logging
import math

import numpy as np
import trimesh

from .cancellation import CancellationToken, check_cancelled
from .config import (
    BUILD_PLATE_TOLERANCE_MM,
    MAX_BUILD_DIMENSION_MM,
    MIN_REPORTED_AREA_CM2,
    MIN_REPORTED_VOLUME_CM3,
    MODERATE_OVERHANG_ANGLE,
    MODERATE_SUPPORT_FRACTION,
    OVERHANG_ANGLE,
    OVERHANG_BUCKETS_PER_UNIT,
    OVERHANG_FACE_LIMIT,
    OVERHANG_MIN_TRIANGLES,
    OVERHANG_REPORT_LIMIT,
    SEVERE_OVERHANG_ANGLE,
    SEVERE_SUPPORT_FRACTION,
    SINGULAR_DETERMINANT,
)
from .errors import InvalidParameterError
from .mesh import IndexedMesh
from .units import resolve_unit_scale

logger = logging.getLogger(__name__)


class OverhangSeverity(Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class PrintDifficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class OverhangRegion:
    """
    Cluster of downward-facing triangles.

    Attributes:
        severity: Classification of the mean angle
        angle: Mean angle between face normals and +Y, in degrees
        center: Mean world-space centroid of the clustered triangles
        triangle_count: Number of triangles in the cluster
    """
    severity: OverhangSeverity
    angle: float
    center: tuple[float, float, float]
    triangle_count: int

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "angle": self.angle,
            "center": list(self.center),
            "triangle_count": self.triangle_count,
        }


@dataclass(frozen=True)
class LayerHeightRecommendation:
    """Recommended layer heights in millimeters."""
    min: float
    max: float
    optimal: float

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "optimal": self.optimal}


@dataclass(frozen=True)
class SplitSuggestion:
    """Advisory cut plane; position is in millimeters along ``axis``."""
    axis: str
    position: float
    reason: str

    def to_dict(self) -> dict:
        return {"axis": self.axis, "position": self.position, "reason": self.reason}


DEFAULT_LAYER_HEIGHT = LayerHeightRecommendation(min=0.12, max=0.2, optimal=0.16)


@dataclass(frozen=True)
class GeometricAnalysis:
    """
    Printability report for a mesh.

    Lengths are in millimeters, areas in cm², volumes in cm³.

    Attributes:
        triangle_count: Number of triangles
        vertex_count: Number of vertices
        dimensions: Bounding box size (x, y, z) after unit scaling
        center: Bounding box center in world units (before unit scaling)
        volume: Enclosed volume
        surface_area: Total surface area
        bounding_box_volume: Volume of the axis-aligned bounding box
        fill_ratio: volume / bounding_box_volume, capped at 1
        unit_scale: Factor applied to world units to get millimeters
        overhangs: Up to 20 overhang regions, most severe angle first
        layer_height: Recommended layer heights
        difficulty: Overall print difficulty
        estimated_support_volume: Rough support material volume
        split_suggestions: Advisory cut planes
    """
    triangle_count: int = 0
    vertex_count: int = 0
    dimensions: tuple[float, float, float] = (0.0, 0.0, 0.0)
    center: tuple[float, float, float] = (0.0, 0.0, 0.0)
    volume: float = 0.0
    surface_area: float = 0.0
    bounding_box_volume: float = 0.0
    fill_ratio: float = 0.0
    unit_scale: float = 1.0
    overhangs: tuple[OverhangRegion, ...] = ()
    layer_height: LayerHeightRecommendation = DEFAULT_LAYER_HEIGHT
    difficulty: PrintDifficulty = PrintDifficulty.EASY
    estimated_support_volume: float = 0.0
    split_suggestions: tuple[SplitSuggestion, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0

    def count_overhangs(self, severity: OverhangSeverity) -> int:
        return sum(1 for region in self.overhangs if region.severity == severity)

    @property
    def severe_overhang_count(self) -> int:
        return self.count_overhangs(OverhangSeverity.SEVERE)

    @property
    def moderate_overhang_count(self) -> int:
        return self.count_overhangs(OverhangSeverity.MODERATE)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "triangle_count": self.triangle_count,
            "vertex_count": self.vertex_count,
            "dimensions": list(self.dimensions),
            "center": list(self.center),
            "volume": self.volume,
            "surface_area": self.surface_area,
            "bounding_box_volume": self.bounding_box_volume,
            "fill_ratio": self.fill_ratio,
            "unit_scale": self.unit_scale,
            "overhangs": [region.to_dict() for region in self.overhangs],
            "layer_height": self.layer_height.to_dict(),
            "difficulty": self.difficulty.value,
            "estimated_support_volume": self.estimated_support_volume,
            "split_suggestions": [s.to_dict() for s in self.split_suggestions],
        }


def empty_analysis() -> GeometricAnalysis:
    """Analysis reported for a mesh that has no positions yet."""
    return GeometricAnalysis()


def _as_transform(transform) -> np.ndarray:
    if transform is None:
        return np.eye(4)
    matrix = np.asarray(transform, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise InvalidParameterError(f"transform must be a 4x4 matrix, got shape {matrix.shape}")
    return matrix


def volume_and_area(triangles: np.ndarray) -> tuple[float, float]:
    """
    Signed-tetrahedron volume and surface area of (M, 3, 3) triangles.

    Returns:
        Tuple of (|signed volume|, area) in the triangles' own units
    """
    if len(triangles) == 0:
        return 0.0, 0.0
    a, b, c = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    signed = np.einsum("ij,ij->i", a, np.cross(b, c)).sum() / 6.0
    area = np.linalg.norm(np.cross(b - a, c - a), axis=1).sum() * 0.5
    return abs(float(signed)), float(area)


def classify_overhang(angle: float) -> OverhangSeverity:
    if angle > SEVERE_OVERHANG_ANGLE:
        return OverhangSeverity.SEVERE
    if angle > MODERATE_OVERHANG_ANGLE:
        return OverhangSeverity.MODERATE
    return OverhangSeverity.MILD


def detect_overhangs(
    positions: np.ndarray,
    faces: np.ndarray,
    transform: np.ndarray,
    plate_mask: Optional[np.ndarray] = None,
) -> tuple[OverhangRegion, ...]:
    """
    Find and cluster downward-facing triangles.

    Only the first 50,000 faces are inspected. Faces whose normal is more
    than 135 degrees from +Y are bucketed by world-space centroid on a
    half-unit grid; buckets with at least three faces become regions.

    Args:
        positions: (N, 3) local vertex positions
        faces: (M, 3) triangle indices
        transform: 4x4 world transform
        plate_mask: Optional (M,) mask of faces resting on the build plate,
            which are skipped

    Returns:
        Up to 20 regions sorted by mean angle, steepest first
    """
    faces = faces[:OVERHANG_FACE_LIMIT]
    if len(faces) == 0:
        return ()

    linear = transform[:3, :3]
    # A flattening transform has no normal matrix; nothing can face down
    if abs(np.linalg.det(linear)) < SINGULAR_DETERMINANT:
        logger.debug("Singular world transform, skipping overhang detection")
        return ()

    triangles = positions[faces]
    local_normals = np.cross(
        triangles[:, 1] - triangles[:, 0],
        triangles[:, 2] - triangles[:, 0],
    )
    local_normals = trimesh.util.unitize(local_normals)
    normal_matrix = np.linalg.inv(linear).T
    world_normals = trimesh.util.unitize(local_normals @ normal_matrix.T)

    angles = np.degrees(np.arccos(np.clip(world_normals[:, 1], -1.0, 1.0)))
    downward = angles > OVERHANG_ANGLE
    if plate_mask is not None:
        downward &= ~plate_mask[:len(faces)]
    if not np.any(downward):
        return ()

    world = trimesh.transformations.transform_points(positions, transform)
    centers = world[faces[downward]].mean(axis=1)
    angles = angles[downward]

    keys = np.floor(centers * OVERHANG_BUCKETS_PER_UNIT).astype(np.int64)
    _, inverse = trimesh.grouping.unique_rows(keys)
    inverse = np.asarray(inverse).ravel()

    counts = np.bincount(inverse)
    mean_angles = np.bincount(inverse, weights=angles) / counts
    mean_centers = np.column_stack([
        np.bincount(inverse, weights=centers[:, axis]) / counts for axis in range(3)
    ])

    regions = [
        OverhangRegion(
            severity=classify_overhang(float(mean_angles[k])),
            angle=float(mean_angles[k]),
            center=tuple(float(v) for v in mean_centers[k]),
            triangle_count=int(counts[k]),
        )
        for k in range(len(counts))
        if counts[k] >= OVERHANG_MIN_TRIANGLES
    ]
    regions.sort(key=lambda region: region.angle, reverse=True)
    return tuple(regions[:OVERHANG_REPORT_LIMIT])


def classify_difficulty(overhangs: tuple[OverhangRegion, ...]) -> PrintDifficulty:
    severe = sum(1 for o in overhangs if o.severity == OverhangSeverity.SEVERE)
    moderate = sum(1 for o in overhangs if o.severity == OverhangSeverity.MODERATE)
    if severe > 2 or moderate > 5:
        return PrintDifficulty.HARD
    if severe > 0 or moderate > 2:
        return PrintDifficulty.MEDIUM
    return PrintDifficulty.EASY


def recommend_layer_height(
    dimensions: tuple[float, float, float],
    triangle_count: int,
) -> LayerHeightRecommendation:
    """
    Pick layer heights from model height and detail density.

    Detail is triangles per bounding volume (per 1000 mm³). Tall or sparse
    models favor thick layers for speed; small detailed models favor thin
    layers for fidelity. A decision table, not a simulation.
    """
    x, y, z = dimensions
    height = y
    detail = triangle_count / (x * y * z + 1) * 1000

    if height > 200 or detail < 0.5:
        return LayerHeightRecommendation(min=0.2, max=0.32, optimal=0.28)
    if height > 100 or detail < 2:
        return LayerHeightRecommendation(min=0.16, max=0.24, optimal=0.2)
    if detail > 10:
        return LayerHeightRecommendation(min=0.04, max=0.12, optimal=0.08)
    return LayerHeightRecommendation(min=0.08, max=0.2, optimal=0.12)


def estimate_support_volume(
    overhangs: tuple[OverhangRegion, ...],
    bounding_box_volume: float,
) -> float:
    """Coarse linear support estimate in cm³; an approximation only."""
    if not overhangs:
        return 0.0
    severe = sum(1 for o in overhangs if o.severity == OverhangSeverity.SEVERE)
    moderate = sum(1 for o in overhangs if o.severity == OverhangSeverity.MODERATE)
    return bounding_box_volume * (
        severe * SEVERE_SUPPORT_FRACTION + moderate * MODERATE_SUPPORT_FRACTION
    )


def suggest_splits(
    dimensions: tuple[float, float, float],
    overhangs: tuple[OverhangRegion, ...],
) -> tuple[SplitSuggestion, ...]:
    """Advisory cut planes for models exceeding the build volume."""
    x, y, z = dimensions
    suggestions = []

    if x > MAX_BUILD_DIMENSION_MM:
        parts = math.ceil(x / MAX_BUILD_DIMENSION_MM)
        for i in range(1, parts):
            suggestions.append(SplitSuggestion(
                axis="x",
                position=x / parts * i,
                reason=f"Model exceeds the build plate ({x:.0f}mm). Split into {parts} parts.",
            ))

    if y > MAX_BUILD_DIMENSION_MM:
        suggestions.append(SplitSuggestion(
            axis="y",
            position=y / 2,
            reason=f"Height {y:.0f}mm exceeds the build volume. Split horizontally.",
        ))

    if z > MAX_BUILD_DIMENSION_MM:
        parts = math.ceil(z / MAX_BUILD_DIMENSION_MM)
        for i in range(1, parts):
            suggestions.append(SplitSuggestion(
                axis="z",
                position=z / parts * i,
                reason=f"Depth {z:.0f}mm exceeds the build plate. Split into {parts} parts.",
            ))

    severe = sum(1 for o in overhangs if o.severity == OverhangSeverity.SEVERE)
    if severe > 3:
        suggestions.append(SplitSuggestion(
            axis="y",
            position=y * 0.4,
            reason="Many overhangs. Splitting allows printing with fewer supports.",
        ))

    return tuple(suggestions)


def analyze(
    mesh: Optional[IndexedMesh],
    transform=None,
    unit_scale: Optional[float] = None,
    exclude_build_plate: bool = False,
    cancel: Optional[CancellationToken] = None,
) -> GeometricAnalysis:
    """
    Analyze a mesh for 3D printing.

    The input mesh is never modified. A missing mesh or one without
    positions yields ``empty_analysis()`` instead of an error, so callers
    may analyze speculatively before a mesh exists.

    Args:
        mesh: Mesh to analyze (may be None)
        transform: Optional 4x4 world transform (identity if None)
        unit_scale: Explicit factor to millimeters; inferred if None
        exclude_build_plate: Skip downward faces lying on the lowest point
        cancel: Optional cancellation token

    Returns:
        GeometricAnalysis for the mesh in world space
    """
    if mesh is None or mesh.positions is None or mesh.vertex_count == 0:
        logger.debug("Analysis requested for a mesh without positions")
        return empty_analysis()

    matrix = _as_transform(transform)
    world = trimesh.transformations.transform_points(mesh.positions, matrix)

    lower = world.min(axis=0)
    upper = world.max(axis=0)
    size = upper - lower
    center = (lower + upper) / 2

    scale = resolve_unit_scale(float(size.max()), unit_scale)
    dimensions = tuple(float(v) for v in size * scale)

    check_cancelled(cancel, "analysis")
    volume_mm3, area_mm2 = volume_and_area(world[mesh.faces] * scale)
    volume = volume_mm3 / 1000.0
    surface_area = area_mm2 / 100.0

    bounding_box_volume = dimensions[0] * dimensions[1] * dimensions[2] / 1000.0
    fill_ratio = min(volume / bounding_box_volume, 1.0) if bounding_box_volume > 0 else 0.0

    check_cancelled(cancel, "analysis")
    plate_mask = None
    if exclude_build_plate and mesh.face_count:
        face_heights = (world[mesh.faces][:, :, 1] - lower[1]) * scale
        plate_mask = np.all(face_heights <= BUILD_PLATE_TOLERANCE_MM, axis=1)
    overhangs = detect_overhangs(mesh.positions, mesh.faces, matrix, plate_mask)

    difficulty = classify_difficulty(overhangs)

    logger.info(
        f"Analyzed {mesh.face_count:,} triangles: volume={volume:.2f}cm³, "
        f"area={surface_area:.2f}cm², {len(overhangs)} overhang regions, "
        f"difficulty={difficulty.value}"
    )

    return GeometricAnalysis(
        triangle_count=mesh.face_count,
        vertex_count=mesh.vertex_count,
        dimensions=dimensions,
        center=tuple(float(v) for v in center),
        volume=max(volume, MIN_REPORTED_VOLUME_CM3),
        surface_area=max(surface_area, MIN_REPORTED_AREA_CM2),
        bounding_box_volume=bounding_box_volume,
        fill_ratio=fill_ratio,
        unit_scale=scale,
        overhangs=overhangs,
        layer_height=recommend_layer_height(dimensions, mesh.face_count),
        difficulty=difficulty,
        estimated_support_volume=estimate_support_volume(overhangs, bounding_box_volume),
        split_suggestions=suggest_splits(dimensions, overhangs),
    )
