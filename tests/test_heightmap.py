# Copyright 2025 Allard Peper (Dragon Ace / DragonAceNL)
# Licensed under the Apache License, Version 2.0 (see LICENSE).

"""Test heightmap sampling from depth buffers and masks."""

import numpy as np
import pytest

from reliefmesh.core import InvalidParameterError, build_heightmap


def opaque_mask(width, height):
    mask = np.zeros((height, width, 4), dtype=np.uint8)
    mask[:, :, 3] = 255
    return mask


class TestGridShape:
    """Test grid dimensions and sample positions."""

    def test_shape_follows_resolution(self):
        """Grid has (height // r + 1, width // r + 1) samples."""
        depth = np.zeros((30, 40))
        heightmap = build_heightmap(depth, 40, 30, resolution=3)

        assert heightmap.shape == (11, 14)
        assert heightmap.segments_x == 13
        assert heightmap.segments_y == 10

    def test_flat_buffer_accepted(self):
        """A flat width * height buffer is reshaped row-major."""
        depth = np.arange(12, dtype=np.float64) / 12
        heightmap = build_heightmap(depth, 4, 3, resolution=1)

        assert heightmap.shape == (4, 5)
        assert heightmap.sample(0, 1) == pytest.approx(1 / 12)

    def test_last_line_clamped_to_last_pixel(self):
        """The final grid line samples the last pixel, not one past it."""
        depth = np.zeros((10, 10))
        depth[0, 9] = 0.75
        heightmap = build_heightmap(depth, 10, 10, resolution=3)

        assert heightmap.sample(0, 3) == pytest.approx(0.75)

    def test_aspect_ratio(self):
        """Aspect is height / width of the source image."""
        heightmap = build_heightmap(np.zeros((20, 40)), 40, 20, resolution=4)
        assert heightmap.aspect == pytest.approx(0.5)


class TestMasking:
    """Test void samples from the mask alpha channel."""

    def test_no_mask_all_visible(self):
        """Without a mask every sample is visible."""
        heightmap = build_heightmap(np.full((8, 8), 0.3), 8, 8, resolution=2)

        assert heightmap.visible.all()
        assert heightmap.visible_count == 25

    def test_transparent_pixels_are_void(self):
        """Alpha <= 128 marks a sample void with zero depth."""
        mask = opaque_mask(4, 4)
        mask[2, 2, 3] = 128
        heightmap = build_heightmap(np.full((4, 4), 0.6), 4, 4, resolution=1, mask=mask)

        assert not heightmap.visible[2, 2]
        assert heightmap.depth[2, 2] == 0.0
        assert heightmap.sample(2, 2) is None
        assert heightmap.sample(1, 1) == pytest.approx(0.6)

    def test_alpha_above_threshold_is_visible(self):
        """Alpha 129 is kept."""
        mask = opaque_mask(4, 4)
        mask[:, :, 3] = 129
        heightmap = build_heightmap(np.zeros((4, 4)), 4, 4, resolution=1, mask=mask)

        assert heightmap.visible.all()

    def test_flat_rgba_mask(self):
        """A flat RGBA byte buffer is accepted."""
        mask = opaque_mask(4, 4)
        mask[0, 0, 3] = 0
        heightmap = build_heightmap(np.zeros((4, 4)), 4, 4, resolution=1, mask=mask.ravel())

        assert not heightmap.visible[0, 0]

    def test_mismatched_mask_rejected(self):
        """Mask dimensions must match the depth map."""
        with pytest.raises(InvalidParameterError):
            build_heightmap(np.zeros((4, 4)), 4, 4, resolution=1, mask=opaque_mask(5, 4))


class TestSmoothing:
    """Test the neighbor blend applied while sampling."""

    def test_zero_smoothness_samples_exactly(self):
        """Smoothness 0 reads the source pixel unchanged."""
        depth = np.zeros((5, 5))
        depth[2, 2] = 1.0
        heightmap = build_heightmap(depth, 5, 5, resolution=1, smoothness=0.0)

        assert heightmap.sample(2, 2) == pytest.approx(1.0)

    def test_interior_spike_is_blended(self):
        """An interior sample moves toward its 4-neighbor average."""
        depth = np.zeros((5, 5))
        depth[2, 2] = 1.0
        heightmap = build_heightmap(depth, 5, 5, resolution=1, smoothness=0.5)

        assert heightmap.sample(2, 2) == pytest.approx(0.5)

    def test_border_samples_not_blended(self):
        """Samples on the grid border keep their value."""
        depth = np.zeros((5, 5))
        depth[0, 2] = 1.0
        heightmap = build_heightmap(depth, 5, 5, resolution=1, smoothness=1.0)

        assert heightmap.sample(0, 2) == pytest.approx(1.0)

    def test_constant_depth_unchanged(self):
        """Blending a constant field leaves it constant."""
        heightmap = build_heightmap(np.full((16, 16), 0.4), 16, 16, resolution=2, smoothness=0.8)
        assert np.allclose(heightmap.depth, 0.4)

    def test_neighbors_do_not_wrap_rows(self):
        """The right neighbor of the last column is not the next row's first pixel."""
        depth = np.zeros((4, 4))
        depth[2, 0] = 1.0
        heightmap = build_heightmap(depth, 4, 4, resolution=1, smoothness=1.0)

        # Sample (1, 3) reads pixel (1, 3), which has only three in-bounds neighbors
        assert heightmap.sample(1, 3) == pytest.approx(0.0)

    def test_repeated_builds_identical(self):
        """The same inputs always give bit-identical samples."""
        rng = np.random.default_rng(7)
        depth = rng.random((40, 50))
        mask = rng.integers(0, 256, size=(40, 50, 4), dtype=np.uint8)

        first = build_heightmap(depth, 50, 40, resolution=3, smoothness=0.6, mask=mask)
        second = build_heightmap(depth, 50, 40, resolution=3, smoothness=0.6, mask=mask)

        assert np.array_equal(first.depth, second.depth)
        assert np.array_equal(first.visible, second.visible)


class TestValidation:
    """Test rejection of invalid arguments."""

    @pytest.mark.parametrize("resolution", [0, -1, 1.5])
    def test_bad_resolution(self, resolution):
        """Resolution must be a positive integer."""
        with pytest.raises(InvalidParameterError):
            build_heightmap(np.zeros((4, 4)), 4, 4, resolution=resolution)

    def test_bad_smoothness(self):
        """Smoothness must be in [0, 1]."""
        with pytest.raises(InvalidParameterError):
            build_heightmap(np.zeros((4, 4)), 4, 4, resolution=1, smoothness=1.5)

    def test_wrong_buffer_size(self):
        """Depth buffer size must equal width * height."""
        with pytest.raises(InvalidParameterError):
            build_heightmap(np.zeros(10), 4, 4, resolution=1)

    def test_nan_depth_treated_as_zero(self):
        """Non-finite depth values do not leak into the grid."""
        depth = np.full((4, 4), np.nan)
        heightmap = build_heightmap(depth, 4, 4, resolution=1)
        assert np.all(np.isfinite(heightmap.depth))

    def test_heightmap_is_read_only(self):
        """Heightmap arrays cannot be modified."""
        heightmap = build_heightmap(np.zeros((4, 4)), 4, 4, resolution=1)
        with pytest.raises(ValueError):
            heightmap.depth[0, 0] = 1.0
