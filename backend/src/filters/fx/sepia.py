"""Sepia — warm brown toning via a 3x3 color matrix."""

import numpy as np

from engine.buffer import PixelBuffer
from filters._blend import STRENGTH_PARAM, blend_toward
from filters.kinds import FilterKind

FILTER_KIND = FilterKind.SEPIA
FILTER_ID = "fx.sepia"
FILTER_NAME = FILTER_KIND.value
FILTER_CATEGORY = "color"

PARAMS: dict = dict(STRENGTH_PARAM)

# Rows produce output R, G, B; columns weight input R, G, B
SEPIA_MATRIX = (
    (0.65, 0.70, 0.19),
    (0.40, 0.45, 0.09),
    (0.18, 0.34, 0.04),
)


def _target(rgb: np.ndarray) -> np.ndarray:
    r, g, b = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]
    channels = [
        np.clip(r * wr + g * wg + b * wb, 0, 255) for wr, wg, wb in SEPIA_MATRIX
    ]
    return np.stack(channels, axis=2)


def apply(buffer: PixelBuffer | None, strength: float) -> PixelBuffer | None:
    """Sepia tone. Target channels are clipped before blending."""
    return blend_toward(buffer, strength, _target)
