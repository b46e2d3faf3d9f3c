"""Dim — scales RGB down by a strength-dependent factor.

Unlike the other filters there is no target color: strength is folded into
the scale factor, ``factor = 1 - 0.65 * strength``, so full strength keeps
35% of the original brightness.
"""

from engine.buffer import PixelBuffer
from filters._blend import STRENGTH_PARAM, clamp_strength, merge_rgb, split_rgb
from filters.kinds import FilterKind

FILTER_KIND = FilterKind.DIM
FILTER_ID = "fx.dim"
FILTER_NAME = FILTER_KIND.value
FILTER_CATEGORY = "tone"

PARAMS: dict = dict(STRENGTH_PARAM)

MAX_DIM = 0.65


def dim_factor(strength: float) -> float:
    return 1.0 - MAX_DIM * clamp_strength(strength)


def apply(buffer: PixelBuffer | None, strength: float) -> PixelBuffer | None:
    if buffer is None:
        return None
    strength = clamp_strength(strength)
    if strength == 0.0:
        return buffer.copy()

    rgb, alpha = split_rgb(buffer)
    return merge_rgb(rgb * dim_factor(strength), alpha)
