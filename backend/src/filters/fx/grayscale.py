"""Grayscale — BT.601 luma desaturation."""

import numpy as np

from engine.buffer import PixelBuffer
from filters._blend import STRENGTH_PARAM, blend_toward
from filters.kinds import FilterKind

FILTER_KIND = FilterKind.GRAYSCALE
FILTER_ID = "fx.grayscale"
FILTER_NAME = FILTER_KIND.value
FILTER_CATEGORY = "color"

PARAMS: dict = dict(STRENGTH_PARAM)

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def _target(rgb: np.ndarray) -> np.ndarray:
    luma = (
        rgb[:, :, 0] * LUMA_WEIGHTS[0]
        + rgb[:, :, 1] * LUMA_WEIGHTS[1]
        + rgb[:, :, 2] * LUMA_WEIGHTS[2]
    )
    return np.stack([luma, luma, luma], axis=2)


def apply(buffer: PixelBuffer | None, strength: float) -> PixelBuffer | None:
    return blend_toward(buffer, strength, _target)
