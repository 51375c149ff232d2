"""
Trend / nudge control.

Compares trailing usage against the baseline expectation for the same
window and returns an adjusted effective regen rate with a trend label.
Stateless: no integral term, no smoothing across recomputes.
"""

from typing import Optional, Tuple

from vitals.common.config import NudgeConfig
from vitals.common.models import Trend
from vitals.common.numeric import safe_number


def nudge(
    baseline_per_day: float,
    usage_last_window: float,
    cfg: Optional[NudgeConfig] = None,
    window_days: float = 7.0,
) -> Tuple[float, Trend]:
    """Return (effective_per_day, trend) for one pool.

    expected = baseline * window_days. Usage above expected*over_threshold
    trims regen by over_factor; usage below expected*under_threshold boosts
    it by under_factor. A non-positive expectation is always on target.
    """
    c = cfg or NudgeConfig()
    baseline = safe_number(baseline_per_day)
    used = safe_number(usage_last_window)
    expected = baseline * safe_number(window_days, 7.0)
    if expected > 0:
        if used > expected * c.over_threshold:
            return baseline * c.over_factor, Trend.OVERSPENDING
        if used < expected * c.under_threshold:
            return baseline * c.under_factor, Trend.UNDERSPENDING
    return baseline, Trend.ON_TARGET
