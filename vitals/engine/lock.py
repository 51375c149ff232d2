"""
Pending lock: confirm pending entries whose ghost window expired or that
overflow the pending queue.

Debits are allocated in queue order against the current snapshot truth so
the allocation stamped on the entry reflects the headroom at lock time.
Credits and core-classified entries confirm with no allocation.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from vitals.common.models import (
    EntryStatus,
    GatewaySnapshot,
    LedgerEntry,
    LockReason,
    Pool,
    PoolAmounts,
)
from vitals.engine.allocation import allocate, headroom_from_truth


logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAP = 50


@dataclass
class LockDecision:
    entry_id: str
    reason: LockReason
    locked_at_ms: int
    applied_allocation: Optional[PoolAmounts] = None

    def apply_to(self, entry: LedgerEntry) -> LedgerEntry:
        """Confirmed copy of entry carrying this decision."""
        return entry.model_copy(update={
            "status": EntryStatus.CONFIRMED,
            "locked_at_ms": self.locked_at_ms,
            "lock_reason": self.reason,
            "applied_allocation": self.applied_allocation,
            "intent_pool": entry.intent(),
        })


@dataclass
class LockResult:
    decisions: List[LockDecision] = field(default_factory=list)
    applied_totals: PoolAmounts = field(default_factory=PoolAmounts)

    @property
    def locked(self) -> int:
        return len(self.decisions)


def select_due(
    pending: Iterable[LedgerEntry],
    now_ms: int,
    queue_cap: int = DEFAULT_QUEUE_CAP,
) -> List[Tuple[LedgerEntry, LockReason]]:
    """Entries to lock, oldest queue position first.

    Expired entries (expiry_ms <= now) lock with reason expiry; the oldest
    entries beyond queue_cap lock with reason queue_cap.
    """
    items = [e for e in pending if e.status == EntryStatus.PENDING]
    by_queue = sorted(items, key=lambda e: (e.queue_ms, e.id))
    overflow = max(0, len(by_queue) - max(0, int(queue_cap)))
    overflow_ids = {e.id for e in by_queue[:overflow]}

    due: List[Tuple[LedgerEntry, LockReason]] = []
    for e in by_queue:
        if e.expiry_ms is not None and e.expiry_ms <= now_ms:
            due.append((e, LockReason.EXPIRY))
        elif e.id in overflow_ids:
            due.append((e, LockReason.QUEUE_CAP))
    return due


def lock_pending(
    pending: Iterable[LedgerEntry],
    snapshot: GatewaySnapshot,
    now_ms: int,
    queue_cap: int = DEFAULT_QUEUE_CAP,
) -> LockResult:
    """Decide allocations for every due pending entry."""
    due = select_due(pending, now_ms, queue_cap)
    result = LockResult()
    if not due:
        return result

    available = headroom_from_truth({p.value: snapshot.pool(p).truth_total_minor for p in Pool})
    totals = PoolAmounts()
    for entry, reason in due:
        if entry.amount_minor >= 0 or entry.is_core:
            result.decisions.append(LockDecision(entry.id, reason, int(now_ms)))
            continue
        split = allocate(-entry.amount_minor, entry.intent(), available)
        totals = totals.add(split)
        result.decisions.append(LockDecision(entry.id, reason, int(now_ms), split))

    result.applied_totals = totals
    logger.info("Locked %d pending entries (debit total %.2f)", result.locked, totals.total())
    return result
