"""
Focus view: daily / weekly budget bars.

cap = baseline * days_in_period, current = clamp(cap - spent, 0, cap).
Pending liability eats into current with a simple clip (no cycle wrap).
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Mapping, Tuple

from pydantic import BaseModel

from vitals.common.config import MS_PER_DAY
from vitals.common.models import GatewaySnapshot, Pool, PoolAmounts
from vitals.common.numeric import clamp, safe_number


OVERLAY_EPS = 1e-4


class FocusPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class FocusBar(BaseModel):
    pool: Pool
    cap_minor: float = 0.0
    spent_minor: float = 0.0
    current_minor: float = 0.0
    after_minor: float = 0.0
    overlay_start_pct: float = 0.0
    overlay_width_pct: float = 0.0


def period_bounds(now_ms: int, period: FocusPeriod) -> Tuple[int, int]:
    """[start, end) of the UTC day, or of the Monday-start UTC week."""
    dt = datetime.fromtimestamp(now_ms / 1000.0, tz=timezone.utc)
    day = datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)
    if FocusPeriod(period) == FocusPeriod.DAILY:
        start = day
        length = 1
    else:
        start = day - timedelta(days=dt.weekday())
        length = 7
    start_ms = int(start.timestamp() * 1000)
    return start_ms, start_ms + length * MS_PER_DAY


def focus_bar(pool: Pool, baseline_per_day: float, days: float, spent: float, liability: float) -> FocusBar:
    cap = max(0.0, safe_number(baseline_per_day) * max(1.0, safe_number(days, 1.0)))
    s = safe_number(spent)
    current = clamp(cap - s, 0.0, cap)
    L = max(0.0, safe_number(liability))
    bar = FocusBar(pool=pool, cap_minor=cap, spent_minor=s, current_minor=current, after_minor=current)
    if cap > 0 and L > OVERLAY_EPS and current > OVERLAY_EPS:
        eat = min(L, current)
        bar.after_minor = current - eat
        bar.overlay_start_pct = clamp(bar.after_minor / cap * 100.0, 0.0, 100.0)
        bar.overlay_width_pct = clamp(eat / cap * 100.0, 0.0, 100.0)
    return bar


def focus_view(
    snapshot: GatewaySnapshot,
    spent: PoolAmounts,
    liabilities: Mapping[str, float],
    now_ms: int,
    period: FocusPeriod = FocusPeriod.DAILY,
) -> Dict[Pool, FocusBar]:
    """Per-pool focus bars for the period containing now_ms."""
    start, end = period_bounds(now_ms, period)
    days = (end - start) / MS_PER_DAY
    return {
        p: focus_bar(
            p,
            snapshot.pool(p).regen_baseline_per_day,
            days,
            spent.get(p),
            liabilities.get(p.value, 0.0),
        )
        for p in Pool
    }
