"""
Intent-based spend allocation waterfall.

A spend first drains its intent pool (Mana or Stamina) up to the headroom
left in `available`; whatever does not fit overflows to Health, which is
never capped. Essence is never debited here.

Running `allocate` repeatedly over a chronologically ordered batch against
one mutable `available` map makes simultaneous pending debits compete for
the same headroom: earlier entries get first claim.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, MutableMapping, Tuple

from vitals.common.models import Intent, LedgerEntry, Pool, PoolAmounts
from vitals.common.numeric import safe_number


logger = logging.getLogger(__name__)

INFINITE = float("inf")


def unbounded_availability() -> Dict[str, float]:
    """Headroom map used when historical spend must not compete."""
    return {"health": INFINITE, "mana": INFINITE, "stamina": INFINITE, "essence": 0.0}


def _intent_key(intent) -> str:
    try:
        return Intent(intent).value
    except ValueError:
        return Intent.STAMINA.value


def allocate(spend: float, intent, available: MutableMapping[str, float]) -> PoolAmounts:
    """Split spend between the intent pool and Health.

    Mutates available[intent] in place. The returned amounts always sum to
    the (non-negative) spend.
    """
    amount = max(0.0, safe_number(spend))
    if amount <= 0.0:
        return PoolAmounts()
    key = _intent_key(intent)
    raw = available.get(key, 0.0)
    headroom = INFINITE if raw == INFINITE else max(0.0, safe_number(raw))
    to_intent = min(amount, headroom)
    if to_intent > 0.0 and headroom != INFINITE:
        available[key] = safe_number(raw) - to_intent
    out = {"health": 0.0, "mana": 0.0, "stamina": 0.0, "essence": 0.0}
    out[key] = to_intent
    # Exact conservation: health takes the literal difference
    out["health"] = amount - to_intent
    return PoolAmounts(**out)


def allocate_unbounded(spend: float, intent) -> PoolAmounts:
    return allocate(spend, intent, unbounded_availability())


@dataclass
class BatchResult:
    splits: List[Tuple[str, PoolAmounts]] = field(default_factory=list)
    totals: PoolAmounts = field(default_factory=PoolAmounts)


def chronological(entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
    return sorted(entries, key=lambda e: (e.timestamp_ms, e.id))


def allocate_batch(
    entries: Iterable[LedgerEntry],
    available: MutableMapping[str, float],
) -> BatchResult:
    """Allocate every debit in entries against one shared headroom map.

    Entries are processed in timestamp order (ties broken by id). Credits
    are skipped.
    """
    result = BatchResult()
    totals = PoolAmounts()
    for entry in chronological(entries):
        if entry.amount_minor >= 0:
            continue
        split = allocate(abs(entry.amount_minor), entry.intent(), available)
        result.splits.append((entry.id, split))
        totals = totals.add(split)
    result.totals = totals
    return result


def liability_by_pool(
    entries: Iterable[LedgerEntry],
    available: MutableMapping[str, float],
) -> PoolAmounts:
    return allocate_batch(entries, available).totals


def headroom_from_truth(truths: Dict[str, float]) -> Dict[str, float]:
    """Non-negative headroom copy of per-pool truth values."""
    return {p.value: max(0.0, safe_number(truths.get(p.value, 0.0))) for p in Pool}
