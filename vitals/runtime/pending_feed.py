"""
Live pending-entry feed.

The working set is an immutable tuple swapped wholesale by replace(), so a
frame that has read current() never sees a half-applied update.
"""

import logging
from typing import Callable, Iterable, List, Tuple

from vitals.common.models import LedgerEntry


logger = logging.getLogger(__name__)

PendingCallback = Callable[[Tuple[LedgerEntry, ...]], None]


class PendingFeed:
    def __init__(self, entries: Iterable[LedgerEntry] = ()):
        self._entries: Tuple[LedgerEntry, ...] = tuple(entries)
        self._version = 0
        self._subscribers: List[PendingCallback] = []

    @property
    def version(self) -> int:
        return self._version

    def current(self) -> Tuple[LedgerEntry, ...]:
        return self._entries

    def replace(self, entries: Iterable[LedgerEntry]) -> None:
        """Atomically swap the pending set and notify subscribers."""
        self._entries = tuple(entries)
        self._version += 1
        logger.debug("pending feed replaced version=%d size=%d", self._version, len(self._entries))
        for cb in list(self._subscribers):
            cb(self._entries)

    def subscribe(self, callback: PendingCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe
