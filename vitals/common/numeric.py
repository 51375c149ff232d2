"""
Numeric helpers shared by every stage of the vitals pipeline.

- safe_number: coerce anything to a finite float (never NaN/inf downstream)
- wrap_into_cap: decompose accumulated truth into (banked cycles, remainder)
- normalize_weights: pool weights summing to 1 with a safe default split
"""

import math
from typing import Any, Dict, Mapping, Optional, Tuple


POOLS = ("health", "mana", "stamina", "essence")

# Used when configured weights sum to (almost) zero.
DEFAULT_WEIGHTS: Dict[str, float] = {
    "health": 0.1,
    "mana": 0.3,
    "stamina": 0.5,
    "essence": 0.1,
}

WEIGHT_SUM_EPS = 1e-9


def safe_number(v: Any, default: float = 0.0) -> float:
    """Return v as a finite float, or default when it is not one."""
    if v is None or isinstance(v, bool):
        return float(default)
    try:
        x = float(v)
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(x):
        return float(default)
    return x


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def wrap_into_cap(truth: float, cap: float) -> Tuple[int, float]:
    """Split truth into whole cap cycles and the visible remainder.

    Returns (banked_cycles, remainder) with 0 <= remainder < cap.
    A non-positive cap yields (0, 0.0).
    """
    t = safe_number(truth)
    c = safe_number(cap)
    if c <= 0.0:
        return 0, 0.0
    banked = math.floor(t / c)
    remainder = t - banked * c
    # Float error at exact multiples: roll over into the next cycle
    if remainder >= c:
        banked += 1
        remainder -= c
    if remainder < 0.0:
        if remainder > -1e-9 * c:
            remainder = 0.0
        else:
            banked -= 1
            remainder += c
    remainder = clamp(remainder, 0.0, c)
    if remainder >= c:
        remainder = 0.0
        banked += 1
    return int(banked), remainder


def normalize_weights(
    weights: Optional[Mapping[str, Any]],
    default: Optional[Mapping[str, float]] = None,
    eps: float = WEIGHT_SUM_EPS,
) -> Dict[str, float]:
    """Normalize per-pool weights by their sum.

    Negative and non-finite weights count as 0. If the sum falls below eps
    the default split is returned (already normalized).
    """
    fallback = dict(default or DEFAULT_WEIGHTS)
    raw = {p: max(0.0, safe_number((weights or {}).get(p, 0.0))) for p in POOLS}
    total = sum(raw.values())
    if total < eps:
        fb_total = sum(max(0.0, safe_number(fallback.get(p, 0.0))) for p in POOLS)
        if fb_total < eps:
            return dict(DEFAULT_WEIGHTS)
        return {p: max(0.0, safe_number(fallback.get(p, 0.0))) / fb_total for p in POOLS}
    return {p: raw[p] / total for p in POOLS}


def round_floats(obj: Any, dp: int = 6) -> Any:
    """Recursively round floats in nested dict/list payloads."""
    if isinstance(obj, float):
        return round(obj, dp)
    if isinstance(obj, dict):
        return {k: round_floats(v, dp) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [round_floats(v, dp) for v in obj]
    return obj
