"""Freeze — cold blue/cyan toning driven by mean intensity."""

import numpy as np

from engine.buffer import PixelBuffer
from filters._blend import STRENGTH_PARAM, blend_toward
from filters.kinds import FilterKind

FILTER_KIND = FilterKind.FREEZE
FILTER_ID = "fx.freeze"
FILTER_NAME = FILTER_KIND.value
FILTER_CATEGORY = "color"

PARAMS: dict = dict(STRENGTH_PARAM)

# Per-channel gain applied to the mean intensity (R, G, B)
FREEZE_GAINS = (0.25, 1.05, 1.40)


def _target(rgb: np.ndarray) -> np.ndarray:
    intensity = (rgb[:, :, 0] + rgb[:, :, 1] + rgb[:, :, 2]) / 3.0
    r = np.clip(intensity * FREEZE_GAINS[0], 0, 255)
    g = np.clip(intensity * FREEZE_GAINS[1], 0, 255)
    b = np.clip(intensity * FREEZE_GAINS[2], 0, 255)
    return np.stack([r, g, b], axis=2)


def apply(buffer: PixelBuffer | None, strength: float) -> PixelBuffer | None:
    """Freeze tone — mutes red, lifts green slightly and blue strongly."""
    return blend_toward(buffer, strength, _target)
