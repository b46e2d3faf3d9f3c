"""Tests for fx.dim filter."""

import numpy as np
import pytest

from engine.buffer import PixelBuffer
from filters.fx.dim import MAX_DIM, apply, dim_factor


def _solid(r=200, g=100, b=50, a=255):
    frame = np.zeros((4, 6, 4), dtype=np.uint8)
    frame[:, :] = [r, g, b, a]
    return PixelBuffer.from_array(frame)


def test_factor():
    assert dim_factor(0.0) == 1.0
    assert dim_factor(1.0) == pytest.approx(0.35)
    assert dim_factor(5.0) == dim_factor(1.0)


def test_scales_channels_by_factor():
    factor = 1.0 - MAX_DIM * 0.4
    result = apply(_solid(a=33), 0.4).to_array()
    assert result[0, 0, 0] == int(200.0 * factor)
    assert result[0, 0, 1] == int(100.0 * factor)
    assert result[0, 0, 2] == int(50.0 * factor)
    np.testing.assert_array_equal(result[:, :, 3], 33)


def test_full_strength_keeps_about_35_percent():
    result = apply(_solid(), 1.0).to_array()
    assert abs(int(result[0, 0, 0]) - 70) <= 1
    assert abs(int(result[0, 0, 1]) - 35) <= 1


def test_black_stays_black():
    result = apply(_solid(0, 0, 0), 1.0).to_array()
    np.testing.assert_array_equal(result[:, :, :3], 0)


def test_twice_applies_factor_twice():
    once = apply(_solid(), 1.0)
    twice = apply(once, 1.0).to_array()
    assert twice[0, 0, 0] == int(float(once.to_array()[0, 0, 0]) * dim_factor(1.0))
