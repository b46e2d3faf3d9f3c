"""Image decode/encode via Pillow — platform image <-> PixelBuffer."""

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from engine.buffer import PixelBuffer

logger = logging.getLogger(__name__)

# Formats that cannot carry an alpha channel
_NO_ALPHA_FORMATS = {"JPEG", "BMP"}

_EXTENSION_FORMATS = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".bmp": "BMP",
    ".gif": "GIF",
    ".tif": "TIFF",
    ".tiff": "TIFF",
    ".webp": "WEBP",
}


# Everything Pillow raises for data it cannot or will not decode.
# DecompressionBombError derives from Exception only.
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    ValueError,
)


class ImageTooLargeError(Exception):
    """Header dimensions exceed Pillow's decompression-bomb limit."""


def _to_buffer(img: Image.Image) -> PixelBuffer:
    rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    return PixelBuffer.from_array(rgba)


def decode_image(data: bytes) -> PixelBuffer | None:
    """Decode encoded image bytes. Returns None if the data cannot be decoded."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _to_buffer(img)
    except _DECODE_ERRORS as e:
        logger.warning("Image decode failed: %s", type(e).__name__)
        logger.debug("Image decode detail: %s", e)
        return None


def read_image(path: str | Path) -> PixelBuffer | None:
    """Decode an image file. Returns None if missing or undecodable."""
    try:
        with Image.open(path) as img:
            return _to_buffer(img)
    except FileNotFoundError:
        logger.warning("Image not found: %s", path)
        return None
    except _DECODE_ERRORS as e:
        logger.warning("Image read failed for %s: %s", path, type(e).__name__)
        return None


def read_image_size(path: str | Path) -> tuple[int, int] | None:
    """(width, height) from the file header; pixel data is not decoded.

    Returns None if the file is missing or not an image. Raises
    ImageTooLargeError when Pillow refuses the header as a decompression bomb.
    """
    try:
        with Image.open(path) as img:
            return img.size
    except Image.DecompressionBombError as e:
        raise ImageTooLargeError(str(e)) from e
    except FileNotFoundError:
        return None
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug("Image header unreadable for %s: %s", path, type(e).__name__)
        return None


def _to_image(buffer: PixelBuffer, fmt: str) -> Image.Image:
    img = Image.fromarray(buffer.to_array())
    if fmt.upper() in _NO_ALPHA_FORMATS:
        img = img.convert("RGB")  # RGBA → RGB
    return img


def encode_image(buffer: PixelBuffer, fmt: str = "PNG", **save_kwargs) -> bytes:
    """Encode a buffer. PNG is lossless; JPEG/BMP drop alpha."""
    img = _to_image(buffer, fmt)
    out = io.BytesIO()
    img.save(out, format=fmt, **save_kwargs)
    return out.getvalue()


def format_for_path(path: str | Path) -> str:
    """Pillow format name for a file extension (PNG when unknown)."""
    return _EXTENSION_FORMATS.get(Path(path).suffix.lower(), "PNG")


def write_image(buffer: PixelBuffer, path: str | Path, fmt: str | None = None) -> None:
    fmt = fmt or format_for_path(path)
    _to_image(buffer, fmt).save(path, format=fmt)
