"""Filter strength calibration — verifies strength produces graded visible change.

Run:  cd backend/src && python -m filters._calibration
"""

import sys
from pathlib import Path

import numpy as np

# Ensure src/ is on the path when running as module
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from engine.buffer import PixelBuffer  # noqa: E402
from filters.kinds import CANONICAL_ORDER  # noqa: E402
from filters.registry import get, list_all  # noqa: E402

VALID_CURVES = {"linear", "logarithmic", "exponential", "s-curve"}

LEVELS_PCT = (0, 25, 50, 75, 100)


def _test_buffer(w: int = 200, h: int = 150) -> PixelBuffer:
    """Create a deterministic test buffer."""
    rng = np.random.default_rng(42)
    return PixelBuffer.from_array(rng.integers(0, 256, (h, w, 4), dtype=np.uint8))


def _mean_diff(a: PixelBuffer, b: PixelBuffer) -> float:
    """Mean absolute pixel difference across RGB channels."""
    fa = a.to_array()[:, :, :3].astype(np.float32)
    fb = b.to_array()[:, :, :3].astype(np.float32)
    return float(np.mean(np.abs(fa - fb)))


def calibrate_all() -> list[dict]:
    """Render every filter at each strength level against the source.

    Returns a list of result dicts:
      {filter_id, name, level_pct, strength, mean_pixel_diff}
    """
    source = _test_buffer()
    results: list[dict] = []

    for kind in CANONICAL_ORDER:
        filter_ = get(kind)
        if filter_ is None:
            continue
        for level_pct in LEVELS_PCT:
            strength = level_pct / 100.0
            out = filter_.apply(source, strength)
            results.append(
                {
                    "filter_id": filter_.filter_id,
                    "name": filter_.name,
                    "level_pct": level_pct,
                    "strength": strength,
                    "mean_pixel_diff": round(_mean_diff(source, out), 2),
                }
            )

    return results


def validate_curves() -> list[str]:
    """Check that every numeric param declares a valid curve name."""
    errors: list[str] = []
    for filter_info in list_all():
        for param_key, pdef in filter_info["params"].items():
            curve = pdef.get("curve")
            if pdef.get("type") in ("float", "int") and curve not in VALID_CURVES:
                errors.append(
                    f"{filter_info['id']}.{param_key}: invalid curve '{curve}' "
                    f"(valid: {VALID_CURVES})"
                )
    return errors


def validate_monotonic(results: list[dict]) -> list[str]:
    """Flag filters whose difference from the source shrinks as strength grows."""
    errors: list[str] = []
    grouped: dict[str, list[dict]] = {}
    for r in results:
        grouped.setdefault(r["filter_id"], []).append(r)

    for fid, entries in grouped.items():
        entries = sorted(entries, key=lambda e: e["strength"])
        diffs = [e["mean_pixel_diff"] for e in entries]
        if diffs[0] != 0:
            errors.append(f"{fid}: strength 0 changed the image ({diffs[0]})")
        for prev, cur in zip(diffs, diffs[1:]):
            if cur < prev:
                errors.append(f"{fid}: difference drops from {prev} to {cur}")
                break
    return errors


def print_report(results: list[dict]) -> None:
    """Pretty-print calibration results."""
    print(f"{'Filter':<20} {'Level%':>6} {'Strength':>9} {'PixDiff':>8}")
    print("-" * 47)

    current = ""
    for r in results:
        name = r["name"] if r["name"] != current else ""
        current = r["name"]
        print(
            f"{name:<20} {r['level_pct']:>5}% {r['strength']:>9.2f} "
            f"{r['mean_pixel_diff']:>8.2f}"
        )

    issues = validate_monotonic(results)
    print("\n--- Strength response ---")
    for issue in issues:
        print(f"  WARNING: {issue}")
    if not issues:
        print("  All filters respond monotonically to strength.")


if __name__ == "__main__":
    curve_errors = validate_curves()
    if curve_errors:
        print("CURVE VALIDATION ERRORS:")
        for e in curve_errors:
            print(f"  {e}")
        sys.exit(1)

    results = calibrate_all()
    print_report(results)
