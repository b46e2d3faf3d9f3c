"""PixelBuffer — owned, row-major array of packed RGBA pixels."""

import numpy as np

from engine.pixel import PIXEL_MASK

# Little-endian uint32 puts the first byte of each RGBA quad (red) in the low byte.
PACKED_DTYPE = np.dtype("<u4")
BYTES_PER_PIXEL = 4


class OutOfBoundsError(IndexError):
    """Coordinate outside the buffer extent. Indicates a caller defect."""


class PixelBuffer:
    """Fixed-size image of ``width * height`` packed pixels.

    Index of (x, y) is ``y * width + x``. Filters treat buffers as values:
    they read one buffer and return a new one, never writing to their input.
    """

    __slots__ = ("_width", "_height", "_pixels")

    def __init__(self, width: int, height: int, data: bytes):
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid dimensions {width}x{height}")
        expected = width * height * BYTES_PER_PIXEL
        if len(data) != expected:
            raise ValueError(
                f"Expected {expected} bytes for {width}x{height} RGBA, got {len(data)}"
            )
        self._width = width
        self._height = height
        # frombuffer is read-only and may alias the caller's bytes; own a copy.
        self._pixels = np.frombuffer(bytes(data), dtype=PACKED_DTYPE).copy()

    @classmethod
    def from_array(cls, rgba: np.ndarray) -> "PixelBuffer":
        """Build a buffer from an (H, W, 4) uint8 array."""
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"Expected RGBA array (H, W, 4), got shape {rgba.shape}")
        if rgba.dtype != np.uint8:
            raise ValueError(f"Expected uint8 dtype, got {rgba.dtype}")
        height, width = rgba.shape[:2]
        return cls(width, height, np.ascontiguousarray(rgba).tobytes())

    @classmethod
    def _from_packed(cls, width: int, height: int, pixels: np.ndarray) -> "PixelBuffer":
        buf = cls.__new__(cls)
        buf._width = width
        buf._height = height
        buf._pixels = pixels
        return buf

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> int:
        return self._width * self._height

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBoundsError(
                f"({x}, {y}) outside {self._width}x{self._height} buffer"
            )
        return y * self._width + x

    def get(self, x: int, y: int) -> int:
        """Packed pixel at (x, y)."""
        return int(self._pixels[self._index(x, y)])

    def set(self, x: int, y: int, pixel: int) -> None:
        if not 0 <= int(pixel) <= PIXEL_MASK:
            raise ValueError(f"Pixel value out of 32-bit range: {pixel!r}")
        self._pixels[self._index(x, y)] = pixel

    def to_array(self) -> np.ndarray:
        """Fresh (H, W, 4) uint8 copy in R, G, B, A order."""
        return (
            self._pixels.view(np.uint8)
            .reshape(self._height, self._width, BYTES_PER_PIXEL)
            .copy()
        )

    def to_bytes(self) -> bytes:
        return self._pixels.tobytes()

    def copy(self) -> "PixelBuffer":
        return PixelBuffer._from_packed(self._width, self._height, self._pixels.copy())

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self._width == other._width
            and self._height == other._height
            and np.array_equal(self._pixels, other._pixels)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer({self._width}x{self._height})"
