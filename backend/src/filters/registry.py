"""Filter registry — central lookup for the five built-in filters."""

from dataclasses import dataclass, field
from typing import Callable

from engine.buffer import PixelBuffer
from filters.kinds import CANONICAL_ORDER, FilterKind, resolve

FilterFn = Callable[[PixelBuffer | None, float], PixelBuffer | None]


@dataclass(frozen=True)
class Filter:
    """A named, pure buffer transformation."""

    name: str
    apply: FilterFn
    filter_id: str
    category: str
    params: dict = field(default_factory=dict)


_REGISTRY: dict[FilterKind, Filter] = {}


def register(
    kind: FilterKind, fn: FilterFn, params: dict, filter_id: str, category: str
):
    """Register the implementation of a filter kind."""
    _REGISTRY[kind] = Filter(
        name=kind.value,
        apply=fn,
        filter_id=filter_id,
        category=category,
        params=params,
    )


def get(kind: FilterKind) -> Filter | None:
    return _REGISTRY.get(kind)


def get_by_name(name: str) -> Filter | None:
    """Get a filter by canonical name. Unrecognized names return None."""
    kind = resolve(name)
    if kind is None:
        return None
    return _REGISTRY.get(kind)


def list_all() -> list[dict]:
    """List all registered filters with metadata, in canonical order."""
    return [
        {
            "id": f.filter_id,
            "name": f.name,
            "category": f.category,
            "params": f.params,
        }
        for f in (_REGISTRY[kind] for kind in CANONICAL_ORDER if kind in _REGISTRY)
    ]


def _auto_register():
    """Import and register all built-in filters."""
    from filters.fx import dim, freeze, grayscale, negative, sepia

    for mod in [negative, freeze, grayscale, sepia, dim]:
        register(
            mod.FILTER_KIND, mod.apply, mod.PARAMS, mod.FILTER_ID, mod.FILTER_CATEGORY
        )

    missing = set(FilterKind) - set(_REGISTRY)
    if missing:
        names = sorted(k.name for k in missing)
        raise RuntimeError(f"No implementation registered for {names}")


_auto_register()
