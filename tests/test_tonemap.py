"""Tests for the tonemapping display transform.

Tests cover:
- Tonemapper configuration validation
- Each HDR curve and the display encodings
- Background for pixels without samples
- Non-finite means and the uint8 conversion
"""

import math

import numpy as np
import pytest


def _white_xyz():
    """XYZ that maps to linear sRGB (1, 1, 1)."""
    from prismtrace.preview.tonemap import XYZ_TO_LINEAR_SRGB

    return np.linalg.solve(XYZ_TO_LINEAR_SRGB.astype(np.float64), np.ones(3))


def _frame(xyz, height=2, width=3):
    mean = np.broadcast_to(np.asarray(xyz, dtype=np.float64), (height, width, 3)).copy()
    counts = np.ones((height, width), dtype=np.int64)
    return mean, counts


class TestTonemapperConfig:
    """Tests for Tonemapper validation."""

    def test_defaults(self):
        """Test the default display transform."""
        from prismtrace.preview.tonemap import Tonemapper

        mapper = Tonemapper()
        assert mapper.exposure == 1.0
        assert mapper.curve == "filmic"
        assert mapper.gamma is None
        assert mapper.background == (0.0, 0.0, 0.0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"exposure": 0.0},
            {"exposure": float("nan")},
            {"curve": "hable"},
            {"gamma": 0.0},
            {"gamma": -2.2},
            {"background": (0.0, 0.0)},
            {"background": (0.0, 1.5, 0.0)},
        ],
    )
    def test_invalid(self, kwargs):
        """Test that invalid settings raise ConfigurationError."""
        from prismtrace.errors import ConfigurationError
        from prismtrace.preview.tonemap import Tonemapper

        with pytest.raises(ConfigurationError):
            Tonemapper(**kwargs)


class TestCurves:
    """Tests for the HDR compression curves."""

    def test_reinhard(self):
        """Test c / (1 + c) at c = 1."""
        from prismtrace.preview.tonemap import Tonemapper

        image = Tonemapper(curve="reinhard", gamma=1.0).tonemap_xyz(*_frame(_white_xyz()))
        np.testing.assert_allclose(image, 0.5, atol=1e-4)

    def test_exposure_curve(self):
        """Test 1 - exp(-c) with an exposure multiplier."""
        from prismtrace.preview.tonemap import Tonemapper

        mapper = Tonemapper(exposure=3.0, curve="exposure", gamma=1.0)
        image = mapper.tonemap_xyz(*_frame(_white_xyz()))
        np.testing.assert_allclose(image, 1.0 - math.exp(-3.0), atol=1e-4)

    def test_filmic(self):
        """Test the ACES fit at c = 1."""
        from prismtrace.preview.tonemap import Tonemapper

        image = Tonemapper(curve="filmic", gamma=1.0).tonemap_xyz(*_frame(_white_xyz()))
        np.testing.assert_allclose(image, 2.54 / 3.16, atol=1e-4)

    def test_clamp(self):
        """Test that clamp saturates bright values at 1."""
        from prismtrace.preview.tonemap import Tonemapper

        image = Tonemapper(curve="clamp", gamma=1.0).tonemap_xyz(*_frame(4.0 * _white_xyz()))
        np.testing.assert_allclose(image, 1.0, atol=1e-6)

    @pytest.mark.parametrize("curve", ["clamp", "reinhard", "exposure", "filmic"])
    def test_output_range(self, curve):
        """Test that every curve maps arbitrary input into [0, 1]."""
        from prismtrace.preview.tonemap import Tonemapper

        rng = np.random.default_rng(0)
        mean = rng.random((6, 5, 3)) * 50.0
        image = Tonemapper(curve=curve).tonemap_xyz(mean, np.ones((6, 5), dtype=np.int64))

        assert image.dtype == np.float32
        assert image.min() >= 0.0
        assert image.max() <= 1.0

    @pytest.mark.parametrize("curve", ["reinhard", "exposure", "filmic"])
    def test_monotonic(self, curve):
        """Test that brighter input never gives darker output."""
        from prismtrace.preview.tonemap import Tonemapper

        levels = np.array([0.01, 0.1, 0.5, 1.0, 2.0, 8.0])
        mean = levels[:, None, None] * _white_xyz()[None, None, :]
        counts = np.ones((len(levels), 1), dtype=np.int64)
        image = Tonemapper(curve=curve).tonemap_xyz(mean, counts)

        assert np.all(np.diff(image[:, 0, 0]) > 0.0)


class TestEncoding:
    """Tests for the display encodings."""

    def test_power_gamma(self):
        """Test c ** (1 / gamma) after the curve."""
        from prismtrace.preview.tonemap import Tonemapper

        image = Tonemapper(curve="reinhard", gamma=2.2).tonemap_xyz(*_frame(_white_xyz()))
        np.testing.assert_allclose(image, 0.5 ** (1.0 / 2.2), atol=1e-4)

    def test_srgb_transfer(self):
        """Test both segments of the sRGB transfer function."""
        from prismtrace.preview.tonemap import Tonemapper

        mapper = Tonemapper(curve="clamp")
        bright = mapper.tonemap_xyz(*_frame(0.5 * _white_xyz()))
        dark = mapper.tonemap_xyz(*_frame(0.001 * _white_xyz()))

        np.testing.assert_allclose(bright, 1.055 * 0.5 ** (1.0 / 2.4) - 0.055, atol=1e-4)
        np.testing.assert_allclose(dark, 12.92 * 0.001, atol=1e-5)


class TestFrames:
    """Tests for whole-frame behaviour."""

    def test_empty_pixels_show_background(self):
        """Test that pixels with no samples get the background colour."""
        from prismtrace.preview.tonemap import Tonemapper

        mean, counts = _frame(_white_xyz(), height=2, width=2)
        counts[0, 1] = 0
        image = Tonemapper(background=(0.1, 0.2, 0.3)).tonemap_xyz(mean, counts)

        np.testing.assert_allclose(image[0, 1], [0.1, 0.2, 0.3], atol=1e-6)
        assert not np.allclose(image[0, 0], [0.1, 0.2, 0.3])

    def test_empty_snapshot(self):
        """Test tonemapping a frame nothing has been merged into."""
        from prismtrace.core.accumulator import Accumulator
        from prismtrace.preview.tonemap import tonemap

        image = tonemap(Accumulator(4, 3).snapshot(), background=(0.5, 0.5, 0.5))
        assert image.shape == (3, 4, 3)
        np.testing.assert_allclose(image, 0.5, atol=1e-6)

    def test_snapshot_call(self):
        """Test that calling a Tonemapper on a snapshot uses its mean."""
        from prismtrace.core.accumulator import Accumulator, PartialBuffer
        from prismtrace.preview.tonemap import Tonemapper

        acc = Accumulator(2, 1)
        buffer = PartialBuffer(2, 1)
        buffer.add_row(0, np.tile(2.0 * _white_xyz(), (2, 1)))
        buffer.add_row(0, np.zeros((2, 3)))
        acc.merge(buffer)

        image = Tonemapper(curve="reinhard", gamma=1.0)(acc.snapshot())
        np.testing.assert_allclose(image, 0.5, atol=1e-4)

    def test_non_finite_mean_is_black(self):
        """Test that NaN and infinite means do not leak into the image."""
        from prismtrace.preview.tonemap import Tonemapper

        mean = np.array([[[np.nan, 1.0, 1.0], [np.inf, np.inf, np.inf]]])
        image = Tonemapper().tonemap_xyz(mean, np.ones((1, 2), dtype=np.int64))

        assert np.all(np.isfinite(image))
        np.testing.assert_allclose(image[0, 1], 0.0, atol=1e-6)

    def test_xyz_to_linear_srgb(self):
        """Test the colour matrix on the sRGB white point."""
        from prismtrace.preview.tonemap import xyz_to_linear_srgb

        np.testing.assert_allclose(xyz_to_linear_srgb(_white_xyz()), [1.0, 1.0, 1.0], atol=1e-6)
        # D65 white (Y = 1) is close to sRGB white
        d65 = xyz_to_linear_srgb([0.95047, 1.0, 1.08883])
        np.testing.assert_allclose(d65, [1.0, 1.0, 1.0], atol=2e-3)

    def test_image_to_uint8(self):
        """Test quantization with rounding and clipping."""
        from prismtrace.preview.tonemap import image_to_uint8

        image = np.array([[[0.0, 0.5, 1.0], [-0.2, 1.7, 0.999]]], dtype=np.float32)
        result = image_to_uint8(image)

        assert result.dtype == np.uint8
        np.testing.assert_array_equal(result, [[[0, 128, 255], [0, 255, 255]]])
