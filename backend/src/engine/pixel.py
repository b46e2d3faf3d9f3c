"""Packed 32-bit pixel — four 8-bit channels, red in the low byte.

Layout (bit offsets): red 0, green 8, blue 16, alpha 24. All functions work
on plain ints and element-wise on numpy uint32 arrays.
"""

import numpy as np

RED_SHIFT = 0
GREEN_SHIFT = 8
BLUE_SHIFT = 16
ALPHA_SHIFT = 24

CHANNEL_MASK = 0xFF
PIXEL_MASK = 0xFFFFFFFF


def _check_channel(value):
    arr = np.asarray(value)
    if np.any(arr < 0) or np.any(arr > 255):
        raise ValueError(f"Channel value out of range [0, 255]: {value!r}")
    # NaN fails this too
    if np.any(arr % 1 != 0):
        raise ValueError(f"Channel value must be a whole number: {value!r}")


def _read(pixel, shift: int):
    return (pixel >> shift) & CHANNEL_MASK


def _write(pixel, value, shift: int):
    _check_channel(value)
    if isinstance(pixel, np.ndarray):
        value = np.asarray(value, dtype=np.uint32)
        keep = np.uint32(PIXEL_MASK ^ (CHANNEL_MASK << shift))
        return (pixel & keep) | (value << np.uint32(shift))
    keep = PIXEL_MASK ^ (CHANNEL_MASK << shift)
    return (int(pixel) & keep) | (int(value) << shift)


def channel_red(pixel):
    return _read(pixel, RED_SHIFT)


def channel_green(pixel):
    return _read(pixel, GREEN_SHIFT)


def channel_blue(pixel):
    return _read(pixel, BLUE_SHIFT)


def channel_alpha(pixel):
    return _read(pixel, ALPHA_SHIFT)


def with_red(pixel, value):
    """Return ``pixel`` with its red byte replaced by ``value``."""
    return _write(pixel, value, RED_SHIFT)


def with_green(pixel, value):
    return _write(pixel, value, GREEN_SHIFT)


def with_blue(pixel, value):
    return _write(pixel, value, BLUE_SHIFT)


def with_alpha(pixel, value):
    return _write(pixel, value, ALPHA_SHIFT)


def pack(red: int, green: int, blue: int, alpha: int = 255) -> int:
    """Pack four channel values into one 32-bit pixel."""
    for value in (red, green, blue, alpha):
        _check_channel(value)
    return (
        (int(red) << RED_SHIFT)
        | (int(green) << GREEN_SHIFT)
        | (int(blue) << BLUE_SHIFT)
        | (int(alpha) << ALPHA_SHIFT)
    )


def unpack(pixel) -> tuple[int, int, int, int]:
    """Split a pixel into (red, green, blue, alpha)."""
    return (
        int(channel_red(pixel)),
        int(channel_green(pixel)),
        int(channel_blue(pixel)),
        int(channel_alpha(pixel)),
    )
