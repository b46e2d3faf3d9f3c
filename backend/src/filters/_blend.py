"""Shared strength handling and source/target blending for color filters."""

import math
from typing import Callable

import numpy as np

from engine.buffer import PixelBuffer

TargetFn = Callable[[np.ndarray], np.ndarray]

STRENGTH_PARAM: dict = {
    "strength": {
        "type": "float",
        "min": 0.0,
        "max": 1.0,
        "default": 1.0,
        "label": "Strength",
        "curve": "linear",
        "unit": "%",
        "description": "Blend toward the filtered color (0=original, 1=full filter)",
    },
}


def clamp_strength(strength: float) -> float:
    """Clamp to [0, 1]. NaN counts as 0."""
    strength = float(strength)
    if math.isnan(strength):
        return 0.0
    return max(0.0, min(1.0, strength))


def split_rgb(buffer: PixelBuffer) -> tuple[np.ndarray, np.ndarray]:
    """Return (float64 RGB, uint8 alpha) planes of a buffer."""
    frame = buffer.to_array()
    return frame[:, :, :3].astype(np.float64), frame[:, :, 3:4]


def merge_rgb(rgb: np.ndarray, alpha: np.ndarray) -> PixelBuffer:
    """Clip to [0, 255], truncate to uint8 and reattach the untouched alpha."""
    result_rgb = np.clip(rgb, 0, 255).astype(np.uint8)
    return PixelBuffer.from_array(np.concatenate([result_rgb, alpha], axis=2))


def blend_toward(
    buffer: PixelBuffer | None, strength: float, target_fn: TargetFn
) -> PixelBuffer | None:
    """Blend every pixel toward ``target_fn(rgb)`` by ``strength``.

    ``target_fn`` receives the (H, W, 3) float RGB plane and returns a plane of
    the same shape. Alpha is never modified.
    """
    if buffer is None:
        return None
    strength = clamp_strength(strength)
    if strength == 0.0:
        return buffer.copy()

    rgb, alpha = split_rgb(buffer)
    target = target_fn(rgb)
    result = rgb * (1.0 - strength) + target * strength
    return merge_rgb(result, alpha)
