"""
Ledger entry factory and fixed timestamps shared by the test suites.
"""

from vitals.common.config import MS_PER_DAY
from vitals.common.models import LedgerEntry


# 2024-03-01T00:00:00Z
ANCHOR_MS = 1_709_251_200_000
NOW_MS = ANCHOR_MS + 10 * MS_PER_DAY


def make_entry(entry_id, amount, ts_ms, status="confirmed", intent=None, classification="other", **kw):
    return LedgerEntry(
        id=entry_id,
        amount_minor=amount,
        timestamp_ms=ts_ms,
        status=status,
        classification=classification,
        intent_pool=intent,
        **kw,
    )
