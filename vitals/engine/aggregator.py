"""
Usage aggregator.

Single pass over ledger entries since the pay-cycle anchor producing, per
pool, spent/credited sums for three buckets: since-anchor, the trailing
window (nudge input) and the pending preview (never part of truth).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from pydantic import ValidationError

from vitals.common.config import MS_PER_DAY
from vitals.common.models import (
    CreditMode,
    EntryStatus,
    LedgerEntry,
    Pool,
    PoolAmounts,
    PoolUsage,
    UsageBucket,
)
from vitals.common.numeric import safe_number
from vitals.engine.allocation import allocate_unbounded


logger = logging.getLogger(__name__)

EntryLike = Union[LedgerEntry, Dict[str, Any]]


def month_start_ms(now_ms: int) -> int:
    """First instant of the UTC month containing now_ms."""
    dt = datetime.fromtimestamp(now_ms / 1000.0, tz=timezone.utc)
    start = datetime(dt.year, dt.month, 1, tzinfo=timezone.utc)
    return int(start.timestamp() * 1000)


def resolve_anchor_ms(anchor_ms: Optional[float], now_ms: int) -> int:
    """Configured anchor, or the start of the current UTC month when unset."""
    a = safe_number(anchor_ms)
    if a <= 0:
        return month_start_ms(now_ms)
    return int(a)


def window_start_ms(anchor_ms: int, now_ms: int, window_days: float = 7.0) -> int:
    return int(max(anchor_ms, now_ms - window_days * MS_PER_DAY))


def empty_usage() -> Dict[Pool, PoolUsage]:
    return {p: PoolUsage() for p in Pool}


def coerce_entry(raw: EntryLike) -> Optional[LedgerEntry]:
    """Validate a raw entry; None (and a warning) when it is malformed."""
    if isinstance(raw, LedgerEntry):
        return raw
    try:
        return LedgerEntry.model_validate(raw)
    except (ValidationError, TypeError) as e:
        logger.warning("Skipping malformed ledger entry: %s", str(e).splitlines()[0])
        return None


def credit_split(amount: float, entry: LedgerEntry, credit_mode: CreditMode) -> PoolAmounts:
    """Per-pool credit for a positive amount under the given credit mode."""
    if credit_mode == CreditMode.ALLOCATE:
        return allocate_unbounded(amount, entry.intent())
    if credit_mode == CreditMode.HEALTH:
        return PoolAmounts(health=amount)
    return PoolAmounts(essence=amount)


def _add(bucket: UsageBucket, spent: float = 0.0, credited: float = 0.0) -> None:
    bucket.spent += spent
    bucket.credited += credited


def aggregate(
    entries: Iterable[EntryLike],
    credit_mode: CreditMode = CreditMode.ESSENCE,
    anchor_ms: Optional[int] = None,
    now_ms: int = 0,
    window_days: float = 7.0,
) -> Dict[Pool, PoolUsage]:
    """Aggregate ledger usage per pool.

    Confirmed debits use their applied allocation verbatim, falling back to
    the waterfall by intent against unbounded headroom. Confirmed credits
    follow credit_mode: essence credits Essence, allocate and health offset
    spend in both the since-anchor and trailing buckets. Pending entries
    only ever land in pending_preview.
    """
    mode = CreditMode(credit_mode)
    anchor = resolve_anchor_ms(anchor_ms, now_ms)
    recent_from = window_start_ms(anchor, now_ms, window_days)
    usage = empty_usage()

    for raw in entries:
        entry = coerce_entry(raw)
        if entry is None:
            continue
        if entry.is_core or entry.timestamp_ms < anchor:
            continue
        amount = safe_number(entry.amount_minor)
        if amount == 0.0:
            continue
        recent = entry.timestamp_ms >= recent_from

        if entry.status == EntryStatus.PENDING:
            if amount < 0:
                split = allocate_unbounded(-amount, entry.intent())
                for p in Pool:
                    _add(usage[p].pending_preview, spent=split.get(p))
            else:
                split = credit_split(amount, entry, mode)
                for p in Pool:
                    _add(usage[p].pending_preview, credited=split.get(p))
            continue

        if amount < 0:
            split = entry.applied_allocation or allocate_unbounded(-amount, entry.intent())
            for p in Pool:
                v = split.get(p)
                _add(usage[p].since_anchor, spent=v)
                if recent:
                    _add(usage[p].last_7_days, spent=v)
            continue

        split = credit_split(amount, entry, mode)
        for p in Pool:
            v = split.get(p)
            if v == 0.0:
                continue
            if mode == CreditMode.ESSENCE:
                _add(usage[p].since_anchor, credited=v)
                if recent:
                    _add(usage[p].last_7_days, credited=v)
            else:
                _add(usage[p].since_anchor, spent=-v)
                if recent:
                    _add(usage[p].last_7_days, spent=-v)
    return usage


def confirmed_spend_in_range(entries: Iterable[EntryLike], start_ms: int, end_ms: int) -> PoolAmounts:
    """Sum confirmed non-core debit allocations with start <= ts < end."""
    totals = PoolAmounts()
    for raw in entries:
        entry = coerce_entry(raw)
        if entry is None or entry.is_core:
            continue
        if entry.status != EntryStatus.CONFIRMED or entry.amount_minor >= 0:
            continue
        if not (start_ms <= entry.timestamp_ms < end_ms):
            continue
        split = entry.applied_allocation or allocate_unbounded(-entry.amount_minor, entry.intent())
        totals = totals.add(split)
    return totals


def spend_and_credit(usage: Dict[Pool, PoolUsage], pool: Pool) -> Tuple[float, float]:
    u = usage.get(pool) or PoolUsage()
    return u.since_anchor.spent, u.since_anchor.credited
