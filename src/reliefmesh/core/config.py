# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Configuration constants and reconstruction parameters.

Centralizes every policy number used by the geometry core so that
thresholds are named in one place rather than scattered through the
algorithms.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Union
import json
import logging
import math

from .errors import InvalidParameterError

logger = logging.getLogger(__name__)

# =============================================================================
# Heightmap sampling
# =============================================================================

# Mask pixels with alpha <= this value are void
MASK_ALPHA_THRESHOLD = 128

# =============================================================================
# Shell construction
# =============================================================================

# Width of the normalized footprint (X spans [-5, 5])
FOOTPRINT_SIZE = 10.0

# Back sheet offset is BASE_THICKNESS_FACTOR * depth_scale before variation
BASE_THICKNESS_FACTOR = 1.5
THICKNESS_MIN_FACTOR = 0.6
THICKNESS_DEPTH_FACTOR = 0.8

# Front relief exaggeration around mid depth
DEPTH_VARIATION_FACTOR = 0.8

# =============================================================================
# Complexity limits
# =============================================================================

MAX_VERTICES = 500_000
MAX_FACES = 1_000_000
WARN_VERTICES = 100_000
WARN_FACES = 200_000

# =============================================================================
# Refinement defaults (tuned for depth-map output)
# =============================================================================

DEFAULT_SUBDIVISION_ITERATIONS = 1
DEFAULT_SMOOTHING_ITERATIONS = 2
DEFAULT_SMOOTHING_FACTOR = 0.4

# =============================================================================
# Analysis
# =============================================================================

# Unit inference on the largest bounding dimension
METERS_THRESHOLD = 2.0
CENTIMETERS_THRESHOLD = 20.0
MICRO_UNITS_THRESHOLD = 5000.0
METERS_SCALE = 1000.0
CENTIMETERS_SCALE = 10.0
MICRO_UNITS_SCALE = 0.1

# Overhang classification (degrees from the +Y up axis)
OVERHANG_ANGLE = 135.0
MODERATE_OVERHANG_ANGLE = 145.0
SEVERE_OVERHANG_ANGLE = 160.0
OVERHANG_FACE_LIMIT = 50_000
OVERHANG_BUCKETS_PER_UNIT = 2
OVERHANG_MIN_TRIANGLES = 3
OVERHANG_REPORT_LIMIT = 20
# Transforms whose linear part has a smaller |determinant| are treated as flattening
SINGULAR_DETERMINANT = 1e-12
BUILD_PLATE_TOLERANCE_MM = 0.5

# Print volume and reporting floors
MAX_BUILD_DIMENSION_MM = 220.0
MIN_REPORTED_VOLUME_CM3 = 0.01
MIN_REPORTED_AREA_CM2 = 0.1

# Support volume heuristic (fraction of bounding volume per region)
SEVERE_SUPPORT_FRACTION = 0.03
MODERATE_SUPPORT_FRACTION = 0.01

# =============================================================================
# Reconstruction parameter ranges (resolution, depth_scale, smoothness)
# =============================================================================

RESOLUTION_RANGE = (1, 10)
DEPTH_SCALE_RANGE = (0.1, 10.0)
SMOOTHNESS_RANGE = (0.0, 1.0)


def _clamp(value: Any, low: float, high: float, default: float) -> float:
    """Coerce an untrusted value into [low, high], falling back to default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return min(max(number, low), high)


@dataclass
class ReconstructionParams:
    """
    User-facing parameters for depth-to-mesh reconstruction.

    Attributes:
        resolution: Source pixels per grid segment (>= 1)
        depth_scale: Relief height multiplier (> 0)
        smoothness: Neighbor blend applied while sampling, in [0, 1]
    """
    resolution: int = 3
    depth_scale: float = 3.0
    smoothness: float = 0.5

    def validate(self) -> None:
        """Raise InvalidParameterError if any value is out of range."""
        if int(self.resolution) != self.resolution or self.resolution < 1:
            raise InvalidParameterError(
                f"resolution must be an integer >= 1, got {self.resolution}"
            )
        if not self.depth_scale > 0:
            raise InvalidParameterError(
                f"depth_scale must be > 0, got {self.depth_scale}"
            )
        if not 0.0 <= self.smoothness <= 1.0:
            raise InvalidParameterError(
                f"smoothness must be in [0, 1], got {self.smoothness}"
            )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ReconstructionParams":
        """
        Create from untrusted input, clamping each value into its range.

        Missing or unparseable values fall back to the defaults.
        """
        defaults = cls()
        resolution = _clamp(data.get("resolution"), *RESOLUTION_RANGE, defaults.resolution)
        return cls(
            resolution=int(round(resolution)),
            depth_scale=_clamp(data.get("depth_scale"), *DEPTH_SCALE_RANGE, defaults.depth_scale),
            smoothness=_clamp(data.get("smoothness"), *SMOOTHNESS_RANGE, defaults.smoothness),
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ReconstructionParams":
        """Load parameters from a JSON file."""
        path = Path(path)
        logger.info(f"Loading reconstruction parameters from: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise InvalidParameterError(f"Expected a JSON object in {path}")
        return cls.from_dict(data)
