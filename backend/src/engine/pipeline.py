"""Filter pipeline — applies filters to a buffer in explicit or named-sequence mode.

Explicit mode: each of the five canonical slots carries (selected, strength);
selected slots with strength > 0 run in canonical order.

Named-sequence mode: an ordered list of filter names (repeats allowed) runs
in the given order; unknown names are skipped.

Includes rolling timing stats per filter.
"""

import logging
import threading
from collections import defaultdict, deque
from typing import Iterable, Mapping, NamedTuple

from engine.buffer import PixelBuffer
from engine.container import FilterContainer
from filters import registry
from filters.kinds import CANONICAL_ORDER, FilterKind, resolve

logger = logging.getLogger(__name__)

DEFAULT_STRENGTHS: dict[str, float] = {kind.value: 1.0 for kind in FilterKind}

# Per-filter timing threshold (milliseconds)
FILTER_WARN_MS = 250

_timing_lock = threading.Lock()
_filter_timing: dict[str, deque] = defaultdict(lambda: deque(maxlen=100))


class Selection(NamedTuple):
    """One explicit-mode slot.

    ``selected`` is a bool, or a string that selects the slot only when it
    equals the slot's canonical name.
    """

    selected: bool | str
    strength: float


def record_timing(filter_id: str, elapsed_ms: float):
    """Record a timing sample for a filter."""
    with _timing_lock:
        _filter_timing[filter_id].append(elapsed_ms)


def get_filter_stats() -> dict[str, dict]:
    """Return p50/p95/max per filter."""
    result = {}
    with _timing_lock:
        snapshot = {fid: sorted(samples) for fid, samples in _filter_timing.items()}
    for fid, s in snapshot.items():
        result[fid] = {
            "p50": s[len(s) // 2] if s else 0,
            "p95": s[int(len(s) * 0.95)] if len(s) >= 20 else None,
            "max": max(s) if s else 0,
            "samples": len(s),
        }
    return result


def flush_timing():
    """Clear all timing stats."""
    with _timing_lock:
        _filter_timing.clear()


def apply_filter(
    buffer: PixelBuffer | None, kind: FilterKind, strength: float
) -> PixelBuffer | None:
    """Run a single filter kind through its container."""
    filter_ = registry.get(kind)
    if filter_ is None:
        raise RuntimeError(f"No implementation registered for {kind}")

    container = FilterContainer(filter_)
    output = container.process(buffer, strength)

    elapsed_ms = container.last_elapsed_ms
    record_timing(filter_.filter_id, elapsed_ms)
    if elapsed_ms > FILTER_WARN_MS:
        logger.warning(
            "Filter %s took %.0fms (>%dms warn threshold) on %s",
            filter_.filter_id,
            elapsed_ms,
            FILTER_WARN_MS,
            buffer,
            extra={"filter_id": filter_.filter_id, "strength": strength},
        )
    return output


def _is_selected(kind: FilterKind, selected) -> bool:
    if isinstance(selected, str):
        return selected == kind.value
    return bool(selected)


def apply_explicit(
    source: PixelBuffer | None, selections: Mapping[str, Selection | tuple]
) -> PixelBuffer | None:
    """Apply the selected filters in canonical order.

    Args:
        source:     Decoded source buffer, or None when decoding failed.
        selections: Canonical filter name -> (selected, strength). Missing
                    slots and unknown names count as not selected.

    Returns:
        The filtered buffer, or None if ``source`` is None.
    """
    if source is None:
        logger.debug("No source buffer; skipping explicit pipeline")
        return None

    for name in selections:
        if resolve(name) is None:
            logger.debug("Ignoring unknown filter slot %r", name)

    output = source
    for kind in CANONICAL_ORDER:
        slot = selections.get(kind.value)
        if slot is None:
            continue
        selected, strength = slot
        strength = float(strength)
        if not _is_selected(kind, selected) or not strength > 0:
            continue
        output = apply_filter(output, kind, strength)

    if output is source:
        return source.copy()
    return output


def _split_entry(entry) -> tuple[object, float | None]:
    """A sequence entry is a bare name or a (name, strength) pair."""
    if isinstance(entry, str):
        return entry, None
    if isinstance(entry, (tuple, list)) and len(entry) == 2:
        return entry[0], float(entry[1])
    return entry, None


def apply_named(
    source: PixelBuffer | None,
    filter_names: Iterable,
    default_strengths: Mapping[str, float] | None = None,
) -> PixelBuffer | None:
    """Apply filters in the given order.

    Args:
        source:            Decoded source buffer, or None when decoding failed.
        filter_names:      Ordered names; an entry may also be a
                           ``(name, strength)`` pair. Repeats run repeatedly.
        default_strengths: Overrides for DEFAULT_STRENGTHS, used for bare names.

    Returns:
        The filtered buffer, or None if ``source`` is None.
    """
    if source is None:
        logger.debug("No source buffer; skipping named pipeline")
        return None

    strengths = dict(DEFAULT_STRENGTHS)
    if default_strengths:
        strengths.update(default_strengths)

    output = source
    for entry in filter_names:
        name, strength = _split_entry(entry)
        kind = resolve(name)
        if kind is None:
            logger.debug("Skipping unrecognized filter %r", name)
            continue
        if strength is None:
            strength = strengths.get(kind.value, 1.0)
        output = apply_filter(output, kind, strength)

    if output is source:
        return source.copy()
    return output


def apply_recipe(source: PixelBuffer | None, recipe: dict) -> PixelBuffer | None:
    """Run a validated recipe dict (see recipe.schema) in its declared mode."""
    mode = recipe.get("mode")
    if mode == "named":
        entries = []
        for item in recipe.get("filters", []):
            if isinstance(item, dict):
                if "strength" in item:
                    entries.append((item.get("name"), item["strength"]))
                else:
                    entries.append(item.get("name"))
            else:
                entries.append(item)
        return apply_named(source, entries)
    if mode == "explicit":
        selections = {
            name: Selection(slot.get("selected", False), slot.get("strength", 0.0))
            for name, slot in recipe.get("selections", {}).items()
        }
        return apply_explicit(source, selections)
    raise ValueError(f"unknown recipe mode: {mode}")
