"""The closed set of filter kinds, keyed by canonical name."""

from enum import Enum


class FilterKind(Enum):
    NEGATIVE = "Negative Filter"
    FREEZE = "Freeze Filter"
    GRAYSCALE = "Grayscale Filter"
    SEPIA = "Sepia Filter"
    DIM = "Dim Filter"


# Explicit-mode application order
CANONICAL_ORDER: tuple[FilterKind, ...] = (
    FilterKind.NEGATIVE,
    FilterKind.FREEZE,
    FilterKind.GRAYSCALE,
    FilterKind.SEPIA,
    FilterKind.DIM,
)

_BY_NAME: dict[str, FilterKind] = {kind.value: kind for kind in FilterKind}


def resolve(name) -> FilterKind | None:
    """Exact, case-sensitive canonical-name lookup. Anything else is None."""
    if not isinstance(name, str):
        return None
    return _BY_NAME.get(name)
