"""
Remainder-first ghost projection.

Shows what a pool will look like once pending liabilities settle. The
liability first eats the visible remainder, then whole banked cycles, then
borrows one more cycle and renders the rest against a full bar. The overlay
is always expressed relative to the currently displayed cap cycle.
"""

import math
from typing import Dict, Mapping

from vitals.common.models import GhostProjection, Pool
from vitals.common.numeric import clamp, safe_number, wrap_into_cap


DEFAULT_EPSILON = 1e-6


def _pct(value: float, cap: float) -> float:
    return clamp(value / cap * 100.0, 0.0, 100.0)


def project(truth: float, cap: float, liability: float, eps: float = DEFAULT_EPSILON) -> GhostProjection:
    """Project one pool under pending liability L.

    Never mutates truth. L <= eps (or cap <= 0) is a no-op projection.
    """
    c = safe_number(cap)
    banked, remainder = wrap_into_cap(max(0.0, safe_number(truth)), c)
    L = max(0.0, safe_number(liability))

    if c <= 0.0 or L <= eps:
        return GhostProjection(
            remainder_before=remainder,
            remainder_after=remainder,
            banked_before=banked,
            banked_after=banked,
        )

    if L <= remainder:
        after = remainder - L
        return GhostProjection(
            remainder_before=remainder,
            remainder_after=after,
            banked_before=banked,
            banked_after=banked,
            overlay_start_pct=_pct(after, c),
            overlay_width_pct=_pct(remainder - after, c),
        )

    leftover = L - remainder
    banked_after = banked
    whole = min(banked_after, int(math.floor(leftover / c)))
    if whole > 0:
        banked_after -= whole
        leftover -= whole * c

    start = 0.0
    if leftover > 0.0 and banked_after > 0:
        banked_after -= 1
        start = c
    after = max(0.0, start - leftover)
    return GhostProjection(
        remainder_before=remainder,
        remainder_after=after,
        banked_before=banked,
        banked_after=banked_after,
        overlay_start_pct=_pct(after, c),
        overlay_width_pct=_pct(start - after, c),
    )


def project_pools(
    truths: Mapping[str, float],
    caps: Mapping[str, float],
    liabilities: Mapping[str, float],
    eps: float = DEFAULT_EPSILON,
) -> Dict[Pool, GhostProjection]:
    return {
        p: project(truths.get(p.value, 0.0), caps.get(p.value, 0.0), liabilities.get(p.value, 0.0), eps)
        for p in Pool
    }
