"""
Gateway service: wires settings, ledger and snapshot store around the pure
engine.

recompute_and_store() is the recompute context: load inputs, aggregate,
rebuild the snapshot in memory and write it once. lock_and_recompute()
confirms due pending entries and then recomputes.
"""

import logging
import time
from typing import Dict, Mapping, Optional

from vitals.common.di import VitalsContext
from vitals.common.errors import VitalsError
from vitals.common.models import EntryStatus, GatewaySnapshot, Pool
from vitals.engine.aggregator import aggregate, confirmed_spend_in_range, resolve_anchor_ms
from vitals.engine.focus import FocusBar, FocusPeriod, focus_view, period_bounds
from vitals.engine.gateway import recompute
from vitals.engine.lock import LockResult, lock_pending
from vitals.runtime.clock import SystemClock


logger = logging.getLogger(__name__)


class GatewayService:
    def __init__(self, ctx: VitalsContext, clock=None):
        self.ctx = ctx
        self.clock = clock or SystemClock()

    def _now(self, now_ms: Optional[int]) -> int:
        return int(now_ms) if now_ms is not None else self.clock.now_ms()

    def compute(self, now_ms: Optional[int] = None) -> GatewaySnapshot:
        """Build a fresh snapshot without persisting it."""
        now = self._now(now_ms)
        cfg = self.ctx.cfg
        config, weights = self.ctx.settings.load() if self.ctx.settings is not None else (None, None)
        if config is None or weights is None:
            return recompute(None, None, {}, now)

        anchor = resolve_anchor_ms(config.pay_cycle_anchor_ms, now)
        entries = self.ctx.ledger.entries_since(anchor) if self.ctx.ledger is not None else []
        usage = aggregate(entries, config.credit_mode, anchor, now, cfg.engine.trailing_window_days)
        return recompute(config, weights, usage, now, cfg.engine, cfg.nudge, cfg.weights)

    def recompute_and_store(self, now_ms: Optional[int] = None) -> GatewaySnapshot:
        """Recompute and write the snapshot as one whole document."""
        t0 = time.perf_counter()
        metrics = self.ctx.metrics
        try:
            snapshot = self.compute(now_ms)
            if self.ctx.snapshots is not None:
                self.ctx.snapshots.write(snapshot)
        except VitalsError as e:
            logger.error("Recompute aborted, previous snapshot kept: %s", e)
            if metrics is not None:
                metrics.inc_recompute("error", (time.perf_counter() - t0) * 1000.0)
                metrics.snapshot_writes_total.labels(result="error").inc()
            raise
        if metrics is not None:
            metrics.inc_recompute("ok", (time.perf_counter() - t0) * 1000.0)
            metrics.snapshot_writes_total.labels(result="ok").inc()
            metrics.observe_snapshot(snapshot)
        logger.info(
            "Recomputed snapshot configured=%s net_daily=%.4f",
            snapshot.configured, snapshot.net_daily_minor,
        )
        return snapshot

    def lock_and_recompute(self, now_ms: Optional[int] = None) -> LockResult:
        """Confirm expired / overflowing pending entries, then recompute."""
        now = self._now(now_ms)
        if self.ctx.ledger is None:
            return LockResult()
        # headroom comes from truth at lock time, not the last stored snapshot
        snapshot = self.compute(now)
        if not snapshot.configured:
            logger.info("Lock skipped: account not configured")
            return LockResult()

        pending = [e for e in self.ctx.ledger.pending() if e.status == EntryStatus.PENDING]
        result = lock_pending(pending, snapshot, now, self.ctx.cfg.runtime.queue_cap)
        if not result.decisions:
            return result

        self.ctx.ledger.confirm(result.decisions)
        if self.ctx.metrics is not None:
            for d in result.decisions:
                self.ctx.metrics.inc_locked(d.reason.value)
        self.recompute_and_store(now)
        return result

    def focus(
        self,
        snapshot: GatewaySnapshot,
        liabilities: Mapping[str, float],
        now_ms: Optional[int] = None,
        period: FocusPeriod = FocusPeriod.DAILY,
    ) -> Dict[Pool, FocusBar]:
        """Daily or weekly bars from confirmed spend in the period containing now."""
        now = self._now(now_ms)
        start, end = period_bounds(now, period)
        entries = []
        if self.ctx.ledger is not None:
            entries = self.ctx.ledger.entries_since(start, status=EntryStatus.CONFIRMED)
        spent = confirmed_spend_in_range(entries, start, end)
        return focus_view(snapshot, spent, liabilities, now, period)

    def bind_pending_feed(self):
        """Push ledger pending updates into the context's PendingFeed."""
        if self.ctx.ledger is None or self.ctx.pending_feed is None:
            return None
        return self.ctx.ledger.subscribe_pending(self.ctx.pending_feed.replace)
