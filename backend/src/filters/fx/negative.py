"""Negative — inverts RGB channels, preserves alpha."""

import numpy as np

from engine.buffer import PixelBuffer
from filters._blend import STRENGTH_PARAM, blend_toward
from filters.kinds import FilterKind

FILTER_KIND = FilterKind.NEGATIVE
FILTER_ID = "fx.negative"
FILTER_NAME = FILTER_KIND.value
FILTER_CATEGORY = "tone"

PARAMS: dict = dict(STRENGTH_PARAM)


def _target(rgb: np.ndarray) -> np.ndarray:
    return 255.0 - rgb


def apply(buffer: PixelBuffer | None, strength: float) -> PixelBuffer | None:
    """Blendable inversion. Stateless."""
    return blend_toward(buffer, strength, _target)
