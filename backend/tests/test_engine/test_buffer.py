"""Tests for PixelBuffer — layout, bounds, value semantics."""

import numpy as np
import pytest

from engine.buffer import OutOfBoundsError, PixelBuffer
from engine.pixel import pack, unpack

pytestmark = pytest.mark.smoke


def _bytes(w, h):
    return bytes(range(256)) * ((w * h * 4) // 256 + 1)


def test_constructs_from_rgba_bytes():
    data = bytes([10, 20, 30, 40, 50, 60, 70, 80])
    buf = PixelBuffer(2, 1, data)
    assert buf.width == 2
    assert buf.height == 1
    assert buf.size == 2
    assert unpack(buf.get(0, 0)) == (10, 20, 30, 40)
    assert unpack(buf.get(1, 0)) == (50, 60, 70, 80)


def test_wrong_byte_count_rejected():
    with pytest.raises(ValueError, match="Expected 16 bytes"):
        PixelBuffer(2, 2, b"\x00" * 15)


@pytest.mark.parametrize("w,h", [(0, 1), (1, 0), (-2, 3)])
def test_invalid_dimensions_rejected(w, h):
    with pytest.raises(ValueError, match="Invalid dimensions"):
        PixelBuffer(w, h, b"")


def test_row_major_index():
    w, h = 3, 2
    frame = np.zeros((h, w, 4), dtype=np.uint8)
    frame[1, 2] = [9, 8, 7, 6]  # row y=1, column x=2
    buf = PixelBuffer.from_array(frame)
    assert unpack(buf.get(2, 1)) == (9, 8, 7, 6)
    assert buf.to_bytes()[(1 * w + 2) * 4 : (1 * w + 2) * 4 + 4] == bytes([9, 8, 7, 6])


def test_bytes_round_trip_exact():
    data = _bytes(5, 7)[: 5 * 7 * 4]
    assert PixelBuffer(5, 7, data).to_bytes() == data


def test_array_round_trip_exact():
    rng = np.random.default_rng(1)
    frame = rng.integers(0, 256, (6, 9, 4), dtype=np.uint8)
    np.testing.assert_array_equal(PixelBuffer.from_array(frame).to_array(), frame)


def test_from_array_rejects_wrong_shape_and_dtype():
    with pytest.raises(ValueError, match="RGBA"):
        PixelBuffer.from_array(np.zeros((4, 4, 3), dtype=np.uint8))
    with pytest.raises(ValueError, match="uint8"):
        PixelBuffer.from_array(np.zeros((4, 4, 4), dtype=np.float32))


@pytest.mark.parametrize("x,y", [(3, 0), (0, 2), (-1, 0), (0, -1), (10, 10)])
def test_out_of_bounds_access_raises(x, y):
    buf = PixelBuffer(3, 2, b"\x00" * 24)
    with pytest.raises(OutOfBoundsError):
        buf.get(x, y)
    with pytest.raises(OutOfBoundsError):
        buf.set(x, y, 0)


def test_out_of_bounds_is_index_error():
    assert issubclass(OutOfBoundsError, IndexError)


def test_set_writes_single_pixel():
    buf = PixelBuffer(2, 2, b"\x00" * 16)
    buf.set(1, 1, pack(1, 2, 3, 4))
    assert unpack(buf.get(1, 1)) == (1, 2, 3, 4)
    assert buf.get(0, 0) == 0


def test_set_rejects_values_beyond_32_bits():
    buf = PixelBuffer(1, 1, b"\x00" * 4)
    with pytest.raises(ValueError):
        buf.set(0, 0, 1 << 32)


def test_constructor_does_not_alias_caller_data():
    data = bytearray(16)
    buf = PixelBuffer(2, 2, data)
    data[0] = 255
    assert buf.get(0, 0) == 0


def test_to_array_is_a_copy():
    buf = PixelBuffer(2, 2, b"\x00" * 16)
    arr = buf.to_array()
    arr[:] = 255
    assert buf.get(0, 0) == 0


def test_copy_is_independent_and_equal():
    buf = PixelBuffer(2, 2, bytes(range(16)))
    dup = buf.copy()
    assert dup == buf
    assert dup is not buf
    dup.set(0, 0, 0)
    assert dup != buf


def test_equality_checks_dimensions():
    assert PixelBuffer(4, 1, b"\x00" * 16) != PixelBuffer(1, 4, b"\x00" * 16)


def test_repr_shows_dimensions():
    assert repr(PixelBuffer(3, 2, b"\x00" * 24)) == "PixelBuffer(3x2)"
