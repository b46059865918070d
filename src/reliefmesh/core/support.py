# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Support settings derived from a printability analysis.

Advisory only: these helpers pick slicer settings and phrase tips, they do
not generate support geometry.
"""

from dataclasses import dataclass
from enum import Enum

from .analysis import GeometricAnalysis, PrintDifficulty


class SupportDensity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SupportType(Enum):
    TREE = "tree"
    LINEAR = "linear"


@dataclass
class SupportConfig:
    """
    Slicer support settings.

    Attributes:
        density: Support infill density class
        support_type: Support structure style
        overhang_angle: Threshold angle in degrees from vertical
        tree_directions: Number of branch directions for tree supports
        branch_gap: Gap between branches in mm
        contact_diameter: Diameter of the support tip in mm
    """
    density: SupportDensity = SupportDensity.MEDIUM
    support_type: SupportType = SupportType.TREE
    overhang_angle: float = 45.0
    tree_directions: int = 4
    branch_gap: float = 2.0
    contact_diameter: float = 0.6

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "density": self.density.value,
            "support_type": self.support_type.value,
            "overhang_angle": self.overhang_angle,
            "tree_directions": self.tree_directions,
            "branch_gap": self.branch_gap,
            "contact_diameter": self.contact_diameter,
        }


_DENSITY_BY_DIFFICULTY = {
    PrintDifficulty.EASY: SupportDensity.LOW,
    PrintDifficulty.MEDIUM: SupportDensity.MEDIUM,
    PrintDifficulty.HARD: SupportDensity.HIGH,
}


def default_support_config() -> SupportConfig:
    return SupportConfig()


def recommend_support_config(analysis: GeometricAnalysis) -> SupportConfig:
    """Density follows difficulty; models without overhangs get linear supports."""
    config = default_support_config()
    config.density = _DENSITY_BY_DIFFICULTY[analysis.difficulty]
    if not analysis.overhangs:
        config.support_type = SupportType.LINEAR
    return config


def support_recommendations(analysis: GeometricAnalysis) -> list[str]:
    """
    Human-readable support tips for an analysis.

    Args:
        analysis: Result of ``analyze``

    Returns:
        List of tips, most important first
    """
    severe = analysis.severe_overhang_count
    moderate = analysis.moderate_overhang_count

    if not analysis.overhangs:
        return ["No supports needed. The model prints without overhangs."]

    tips = []
    if severe > 0:
        tips.append(f"{severe} severe overhang(s) detected. Supports are required.")
    if moderate > 0:
        tips.append(f"{moderate} moderate overhang(s). Supports recommended.")

    if analysis.dimensions[1] > 150:
        tips.append("Tall model. Use tree supports to save material.")

    if severe > 4:
        tips.append("Consider splitting the model to reduce supports.")
        tips.append("Tree supports work well for complex geometry.")

    if analysis.difficulty == PrintDifficulty.HARD:
        tips.append("Use a higher support density (15-25%) with a 0.15mm interface layer.")
    elif analysis.difficulty == PrintDifficulty.MEDIUM:
        tips.append("Standard support density (10-15%) is sufficient.")

    return tips
