# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Unit inference for meshes that carry no unit metadata.

Uploaded meshes arrive in arbitrary units. The analyzer works in
millimeters, so the largest bounding dimension is compared against fixed
thresholds to guess the source unit. This is a known approximation, not a
physical guarantee: pass an explicit scale whenever the unit is known.
"""

from typing import Optional

from .config import (
    CENTIMETERS_SCALE,
    CENTIMETERS_THRESHOLD,
    METERS_SCALE,
    METERS_THRESHOLD,
    MICRO_UNITS_SCALE,
    MICRO_UNITS_THRESHOLD,
)
from .errors import InvalidParameterError


def infer_unit_scale(max_dimension: float) -> float:
    """
    Guess the factor that converts a mesh's units to millimeters.

    Thresholds on the largest bounding dimension:
        < 2      -> meters, x1000
        < 20     -> centimeters, x10
        > 5000   -> sub-millimeter units, x0.1
        otherwise already millimeters, x1
    """
    if max_dimension < METERS_THRESHOLD:
        return METERS_SCALE
    if max_dimension < CENTIMETERS_THRESHOLD:
        return CENTIMETERS_SCALE
    if max_dimension > MICRO_UNITS_THRESHOLD:
        return MICRO_UNITS_SCALE
    return 1.0


def resolve_unit_scale(max_dimension: float, unit_scale: Optional[float] = None) -> float:
    """Return ``unit_scale`` if given, otherwise the inferred scale."""
    if unit_scale is None:
        return infer_unit_scale(max_dimension)
    if not unit_scale > 0:
        raise InvalidParameterError(f"unit_scale must be > 0, got {unit_scale}")
    return float(unit_scale)
