# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""
Heightmap sampling from a dense depth buffer.

The depth estimate arrives as a flat ``width * height`` buffer of values in
[0, 1], optionally with an RGBA mask whose alpha marks the subject. This
module resamples it onto a coarser grid (one sample per ``resolution``
pixels), marks masked-out samples as void and pre-smooths interior samples
against their neighbors in the source buffer.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np

from .config import MASK_ALPHA_THRESHOLD
from .errors import InvalidParameterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Heightmap:
    """
    Resampled depth grid of shape (segments_y + 1, segments_x + 1).

    Attributes:
        depth: Sampled depth per grid point (0.0 where void)
        visible: False where the grid point is void (masked out)
        width: Source image width in pixels
        height: Source image height in pixels
        segments_x: Number of grid segments along X
        segments_y: Number of grid segments along Y
    """
    depth: np.ndarray
    visible: np.ndarray
    width: int
    height: int
    segments_x: int
    segments_y: int

    @property
    def shape(self) -> tuple[int, int]:
        return (self.segments_y + 1, self.segments_x + 1)

    @property
    def visible_count(self) -> int:
        return int(np.count_nonzero(self.visible))

    @property
    def aspect(self) -> float:
        """Source height / width ratio."""
        return self.height / self.width

    def sample(self, row: int, col: int) -> Optional[float]:
        """Depth at (row, col), or None if the grid point is void."""
        if not self.visible[row, col]:
            return None
        return float(self.depth[row, col])


def _alpha_channel(mask, width: int, height: int) -> np.ndarray:
    """Extract an (height, width) alpha array from the accepted mask layouts."""
    mask = np.asarray(mask)
    if mask.ndim == 3 and mask.shape[:2] == (height, width) and mask.shape[2] >= 4:
        return mask[:, :, 3]
    if mask.ndim == 2 and mask.shape == (height, width):
        return mask
    if mask.ndim == 1 and mask.size == width * height * 4:
        return mask.reshape((height, width, 4))[:, :, 3]
    raise InvalidParameterError(
        f"Mask shape {mask.shape} does not match a {width}x{height} RGBA image"
    )


def _grid_to_pixels(segments: int, size: int) -> np.ndarray:
    """Source pixel coordinate for each of the segments + 1 grid lines."""
    steps = np.arange(segments + 1, dtype=np.float64)
    if segments == 0:
        return np.zeros(1, dtype=np.int64)
    pixels = np.floor(steps / segments * size).astype(np.int64)
    return np.minimum(pixels, size - 1)


def _neighbor_average(source: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """Mean of the in-bounds 4-neighbors of each (y, x) pixel."""
    height, width = source.shape
    total = np.zeros(ys.shape, dtype=np.float64)
    count = np.zeros(ys.shape, dtype=np.float64)
    for dy, dx in ((0, -1), (0, 1), (-1, 0), (1, 0)):
        ny = ys + dy
        nx = xs + dx
        inside = (ny >= 0) & (ny < height) & (nx >= 0) & (nx < width)
        total[inside] += source[ny[inside], nx[inside]]
        count[inside] += 1
    return np.divide(total, count, out=np.zeros_like(total), where=count > 0)


def build_heightmap(
    depth,
    width: int,
    height: int,
    resolution: int,
    smoothness: float = 0.0,
    mask=None,
) -> Heightmap:
    """
    Resample a depth buffer onto a resolution-controlled grid.

    Args:
        depth: Flat (width * height) or (height, width) depth values in [0, 1]
        width: Source image width in pixels
        height: Source image height in pixels
        resolution: Source pixels per grid segment (>= 1)
        smoothness: Blend factor in [0, 1] toward the 4-neighbor average
        mask: Optional RGBA mask; pixels with alpha <= 128 become void

    Returns:
        Heightmap of shape (height // resolution + 1, width // resolution + 1)

    Raises:
        InvalidParameterError: If any argument is out of range
    """
    if isinstance(resolution, bool) or int(resolution) != resolution or resolution < 1:
        raise InvalidParameterError(f"resolution must be an integer >= 1, got {resolution}")
    if width < 1 or height < 1:
        raise InvalidParameterError(f"Image dimensions must be positive, got {width}x{height}")
    if not 0.0 <= smoothness <= 1.0:
        raise InvalidParameterError(f"smoothness must be in [0, 1], got {smoothness}")

    source = np.asarray(depth, dtype=np.float64)
    if source.size != width * height:
        raise InvalidParameterError(
            f"Depth buffer has {source.size} samples, expected {width * height}"
        )
    source = np.nan_to_num(source.reshape((height, width)), nan=0.0, posinf=0.0, neginf=0.0)

    resolution = int(resolution)
    segments_x = width // resolution
    segments_y = height // resolution

    xs = _grid_to_pixels(segments_x, width)
    ys = _grid_to_pixels(segments_y, height)
    pixel_y, pixel_x = np.meshgrid(ys, xs, indexing="ij")

    sampled = source[pixel_y, pixel_x]

    if mask is not None:
        alpha = _alpha_channel(mask, width, height)
        visible = alpha[pixel_y, pixel_x] > MASK_ALPHA_THRESHOLD
    else:
        visible = np.ones(sampled.shape, dtype=bool)

    if smoothness > 0:
        interior = np.zeros(sampled.shape, dtype=bool)
        interior[1:-1, 1:-1] = True
        blend = interior & visible
        average = _neighbor_average(source, pixel_y[blend], pixel_x[blend])
        sampled[blend] = sampled[blend] * (1.0 - smoothness) + average * smoothness

    sampled[~visible] = 0.0
    sampled.setflags(write=False)
    visible.setflags(write=False)

    logger.debug(
        f"Heightmap {segments_x + 1}x{segments_y + 1} from {width}x{height} "
        f"(resolution={resolution}, visible={int(np.count_nonzero(visible))})"
    )

    return Heightmap(
        depth=sampled,
        visible=visible,
        width=width,
        height=height,
        segments_x=segments_x,
        segments_y=segments_y,
    )
