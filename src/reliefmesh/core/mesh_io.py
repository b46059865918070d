# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
File I/O for meshes, depth maps and masks.

Mesh formats are delegated to trimesh; depth maps and masks are read with
Pillow (or numpy for ``.npy`` depth arrays).
"""

from pathlib import Path
from typing import Optional, Union
import logging

import numpy as np
import trimesh
from PIL import Image

from .analysis import GeometricAnalysis
from .mesh import IndexedMesh

logger = logging.getLogger(__name__)


# Pillow modes holding 16-bit samples, typical for exported depth maps
_SIXTEEN_BIT_MODES = ("I;16", "I;16B", "I;16L", "I")


def _require_file(path: Path, kind: str) -> None:
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")


def load_mesh(path: Union[str, Path]) -> IndexedMesh:
    """
    Load a mesh from file.

    Supports STL (ASCII and binary), OBJ, PLY, GLB and other formats
    supported by trimesh. Scenes with several geometries are concatenated.

    Args:
        path: Path to mesh file

    Returns:
        IndexedMesh with the file's vertices and triangles

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If file cannot be loaded as a mesh
    """
    path = Path(path)
    _require_file(path, "Mesh")

    logger.info(f"Loading mesh from: {path}")

    try:
        mesh = trimesh.load(str(path), force='mesh')
    except Exception as e:
        raise ValueError(f"Failed to load mesh: {e}") from e

    if isinstance(mesh, trimesh.Scene):
        geometries = list(mesh.geometry.values())
        if len(geometries) == 0:
            raise ValueError("No geometry found in file")
        elif len(geometries) == 1:
            mesh = geometries[0]
        else:
            logger.info(f"Concatenating {len(geometries)} geometries from scene")
            mesh = trimesh.util.concatenate(geometries)

    if len(mesh.vertices) == 0 or len(mesh.faces) == 0:
        raise ValueError(f"No triangles found in {path.name}")

    logger.info(f"Loaded mesh: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")

    return IndexedMesh.from_trimesh(mesh)


def save_mesh(
    mesh: IndexedMesh,
    path: Union[str, Path],
    file_type: Optional[str] = None,
) -> None:
    """
    Save a mesh to file.

    Args:
        mesh: The mesh to save
        path: Output file path
        file_type: File format (stl, obj, ply, ...); taken from the suffix if None
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if file_type is None:
        file_type = path.suffix.lstrip(".").lower() or "stl"

    logger.info(f"Saving mesh to: {path}")
    mesh.to_trimesh().export(str(path), file_type=file_type)


def _normalize_depth(values: np.ndarray) -> np.ndarray:
    values = np.nan_to_num(values.astype(np.float64), nan=0.0, posinf=0.0, neginf=0.0)
    if values.size == 0:
        return values
    low, high = float(values.min()), float(values.max())
    if low >= 0.0 and high <= 1.0:
        return values
    if high == low:
        return np.zeros_like(values)
    logger.debug(f"Rescaling depth range [{low:.3f}, {high:.3f}] to [0, 1]")
    return (values - low) / (high - low)


def load_depth(path: Union[str, Path]) -> np.ndarray:
    """
    Load a depth map as an (H, W) float array in [0, 1].

    ``.npy`` files are read with numpy; anything else is opened with Pillow
    and converted to greyscale. 8-bit images are divided by 255, 16-bit
    images by 65535. Values outside [0, 1] are min-max rescaled.

    Raises:
        FileNotFoundError: If file does not exist
        ValueError: If the file is not a readable 2D depth map
    """
    path = Path(path)
    _require_file(path, "Depth")

    logger.info(f"Loading depth map from: {path}")

    try:
        if path.suffix.lower() == ".npy":
            values = np.load(path, allow_pickle=False)
        else:
            with Image.open(path) as image:
                if image.mode in _SIXTEEN_BIT_MODES:
                    values = np.asarray(image, dtype=np.float64) / 65535.0
                elif image.mode == "F":
                    values = np.asarray(image, dtype=np.float64)
                else:
                    values = np.asarray(image.convert("L"), dtype=np.float64) / 255.0
    except Exception as e:
        raise ValueError(f"Failed to load depth map: {e}") from e

    values = np.squeeze(values)
    if values.ndim != 2:
        raise ValueError(f"Depth map must be 2D, got shape {values.shape}")

    return _normalize_depth(values)


def load_mask(path: Union[str, Path]) -> np.ndarray:
    """
    Load a mask image as an (H, W, 4) uint8 RGBA array.

    Images without alpha are fully opaque after conversion.
    """
    path = Path(path)
    _require_file(path, "Mask")

    logger.info(f"Loading mask from: {path}")

    try:
        with Image.open(path) as image:
            return np.asarray(image.convert("RGBA"), dtype=np.uint8)
    except Exception as e:
        raise ValueError(f"Failed to load mask: {e}") from e


def format_analysis(analysis: GeometricAnalysis, title: str = "Print Analysis") -> str:
    """
    Format an analysis as a human-readable string.

    Args:
        analysis: The analysis to format
        title: Title for the output

    Returns:
        Formatted string
    """
    x, y, z = analysis.dimensions
    layer = analysis.layer_height
    lines = [
        f"\n{title}",
        "=" * 50,
        f"Vertices: {analysis.vertex_count:,}",
        f"Triangles: {analysis.triangle_count:,}",
        f"Dimensions: {x:.1f} x {y:.1f} x {z:.1f} mm (unit scale x{analysis.unit_scale:g})",
        f"Volume: {analysis.volume:.2f} cm³",
        f"Surface Area: {analysis.surface_area:.2f} cm²",
        f"Bounding Box Volume: {analysis.bounding_box_volume:.2f} cm³",
        f"Fill Ratio: {analysis.fill_ratio:.1%}",
        "",
        f"Overhang Regions: {len(analysis.overhangs)} "
        f"({analysis.severe_overhang_count} severe, {analysis.moderate_overhang_count} moderate)",
        f"Difficulty: {analysis.difficulty.value}",
        f"Layer Height: {layer.optimal:.2f} mm (range {layer.min:.2f}-{layer.max:.2f})",
        f"Estimated Support: {analysis.estimated_support_volume:.2f} cm³",
    ]
    for split in analysis.split_suggestions:
        lines.append(f"Split {split.axis.upper()} at {split.position:.1f} mm: {split.reason}")
    lines.append("=" * 50)
    return "\n".join(lines)


def print_analysis(analysis: GeometricAnalysis, title: str = "Print Analysis") -> None:
    """Print an analysis in a readable format."""
    print(format_analysis(analysis, title))
