"""
Ledger sources.

The engine only reads classified entries (filtered by anchor, status and
core classification) and confirms pending entries on lock. Every mutation
pushes the full pending tuple to subscribers.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import orjson
from pydantic import ValidationError

from vitals.common.errors import raise_one_line
from vitals.common.models import EntryStatus, LedgerEntry
from vitals.engine.lock import LockDecision


logger = logging.getLogger(__name__)

PendingCallback = Callable[[Tuple[LedgerEntry, ...]], None]


class LedgerSource:
    """Read/confirm interface consumed by the service."""

    def entries_since(
        self,
        anchor_ms: int,
        status: Optional[EntryStatus] = None,
        include_core: bool = False,
    ) -> List[LedgerEntry]:
        raise NotImplementedError

    def pending(self) -> Tuple[LedgerEntry, ...]:
        raise NotImplementedError

    def confirm(self, decisions: Iterable[LockDecision]) -> int:
        raise NotImplementedError

    def subscribe_pending(self, callback: PendingCallback) -> Callable[[], None]:
        raise NotImplementedError


class InMemoryLedger(LedgerSource):
    def __init__(self, entries: Iterable[LedgerEntry] = ()):
        self._entries: Dict[str, LedgerEntry] = {}
        self._subscribers: List[PendingCallback] = []
        for e in entries:
            self._entries[e.id] = e

    def all(self) -> List[LedgerEntry]:
        return list(self._entries.values())

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        return self._entries.get(entry_id)

    def entries_since(self, anchor_ms, status=None, include_core=False):
        out = []
        for e in self._entries.values():
            if e.timestamp_ms < anchor_ms:
                continue
            if status is not None and e.status != EntryStatus(status):
                continue
            if e.is_core and not include_core:
                continue
            out.append(e)
        out.sort(key=lambda e: (e.timestamp_ms, e.id))
        return out

    def pending(self) -> Tuple[LedgerEntry, ...]:
        return tuple(sorted(
            (e for e in self._entries.values() if e.status == EntryStatus.PENDING),
            key=lambda e: (e.timestamp_ms, e.id),
        ))

    def add(self, entry: LedgerEntry) -> None:
        """Insert or replace an entry by id."""
        entries = dict(self._entries)
        entries[entry.id] = entry
        self._commit(entries)

    def remove(self, entry_id: str) -> None:
        if entry_id in self._entries:
            entries = dict(self._entries)
            del entries[entry_id]
            self._commit(entries)

    def confirm(self, decisions: Iterable[LockDecision]) -> int:
        """Apply lock decisions; unknown or already confirmed ids are skipped.

        Nothing changes in memory unless the new state was persisted.
        """
        entries = dict(self._entries)
        n = 0
        for d in decisions:
            entry = entries.get(d.entry_id)
            if entry is None or entry.status != EntryStatus.PENDING:
                logger.warning("Lock decision for non-pending entry id=%s skipped", d.entry_id)
                continue
            entries[d.entry_id] = d.apply_to(entry)
            n += 1
        if n:
            self._commit(entries)
        return n

    def subscribe_pending(self, callback: PendingCallback) -> Callable[[], None]:
        """Register callback and push the current pending set immediately."""
        self._subscribers.append(callback)
        callback(self.pending())

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _commit(self, entries: Dict[str, LedgerEntry]) -> None:
        self._persist(entries)
        self._entries = entries
        snapshot = self.pending()
        for cb in list(self._subscribers):
            cb(snapshot)

    def _persist(self, entries: Dict[str, LedgerEntry]) -> None:
        pass


class JsonlLedger(InMemoryLedger):
    """Ledger backed by a JSON Lines file, rewritten atomically on change."""

    def __init__(self, path: str):
        self.path = str(path)
        super().__init__(self._load())

    def _load(self) -> List[LedgerEntry]:
        p = Path(self.path)
        if not p.exists():
            return []
        out = []
        with open(p, "rb") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    out.append(LedgerEntry.model_validate(orjson.loads(line)))
                except (orjson.JSONDecodeError, ValidationError) as e:
                    logger.warning("Skipping malformed ledger line %s:%d (%s)", self.path, lineno, type(e).__name__)
        return out

    def _persist(self, entries: Dict[str, LedgerEntry]) -> None:
        tmp = self.path + ".tmp"
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                for e in sorted(entries.values(), key=lambda e: (e.timestamp_ms, e.id)):
                    f.write(orjson.dumps(e.model_dump(mode="json", exclude_none=True)))
                    f.write(b"\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise_one_line("E_LEDGER_WRITE", f"cannot write ledger {self.path}: {e}")
