"""
Runtime (animation) loop.

Owns the client-side extrapolation of pool truth between recomputes and
produces one FrameView per frame tick:

1. extrapolate truth by regen_effective * elapsed (scaled by the time
   multiplier), floored at 0
2. read the pending set from the feed (atomic tuple)
3. waterfall pending debits, oldest first, against a copy of truth
4. ghost-project every pool
5. hand the FrameView to on_frame

Expired pending entries are left out of the liability and reported once
per baseline through on_expired so the owner can lock them; rebase() lets
unlocked ones be reported again. Core-classified entries never add
liability.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from pydantic import ValidationError

from vitals.common.config import RuntimeConfig
from vitals.common.logging import RateLimitedLogger
from vitals.common.models import GatewaySnapshot, LedgerEntry, Pool, PoolAmounts, Trend
from vitals.common.numeric import safe_number
from vitals.engine.allocation import chronological, liability_by_pool
from vitals.engine.ghost import project_pools
from vitals.runtime.clock import IntervalFrameSource, SystemClock
from vitals.runtime.pending_feed import PendingFeed


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400.0
VITAL_POOLS = (Pool.HEALTH, Pool.MANA, Pool.STAMINA)


@dataclass
class PoolFrame:
    pool: Pool
    cap_minor: float
    truth_minor: float
    remainder_before: float
    remainder_after: float
    banked_before: int
    banked_after: int
    overlay_start_pct: float
    overlay_width_pct: float
    liability_minor: float
    trend: Trend
    surplus_days_before: int = 0
    surplus_days_after: int = 0

    @property
    def current_minor(self) -> float:
        return self.remainder_after if self.overlay_width_pct > 0 else self.remainder_before


@dataclass
class FrameView:
    now_ms: int
    pools: Dict[Pool, PoolFrame]
    total_current_minor: float = 0.0
    total_cap_minor: float = 0.0
    expired_ids: List[str] = field(default_factory=list)
    dropped: int = 0


def surplus_days(truth: float, cap: float, daily: float) -> int:
    """Whole days of regen banked beyond one full cap."""
    if daily <= 0:
        return 0
    return int(math.floor(max(0.0, truth - cap) / daily))


class RuntimeLoopContext:
    """Explicit owner of the runtime loop state with start()/stop()."""

    def __init__(
        self,
        snapshot: GatewaySnapshot,
        feed: Optional[PendingFeed] = None,
        clock: Any = None,
        frames: Any = None,
        on_frame: Optional[Callable[[FrameView], None]] = None,
        on_expired: Optional[Callable[[List[LedgerEntry]], None]] = None,
        cfg: Optional[RuntimeConfig] = None,
        metrics: Any = None,
    ):
        self.cfg = cfg or RuntimeConfig()
        self.feed = feed or PendingFeed()
        self.clock = clock or SystemClock()
        self.frames = frames or IntervalFrameSource(self.cfg.frame_interval_ms)
        self.on_frame = on_frame
        self.on_expired = on_expired
        self.metrics = metrics
        self._rl = RateLimitedLogger(logger, rate_limit_seconds=self.cfg.log_rate_limit_sec)
        self._task: Optional[asyncio.Task] = None
        self._notified_expired: Set[str] = set()
        self.last_frame: Optional[FrameView] = None
        self.rebase(snapshot)

    @property
    def snapshot(self) -> GatewaySnapshot:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def truth(self) -> Dict[str, float]:
        return dict(self._truth)

    def rebase(self, snapshot: GatewaySnapshot, now_ms: Optional[int] = None) -> None:
        """Replace the extrapolation baseline with a fresh snapshot."""
        self._snapshot = snapshot
        self._truth = {
            p.value: snapshot.pool(p).banked_cycles * snapshot.pool(p).cap_minor + snapshot.pool(p).remainder_minor
            for p in Pool
        }
        self._last_ms = int(now_ms if now_ms is not None else snapshot.updated_at_ms)
        self._notified_expired = set()

    def apply_locked(self, totals: PoolAmounts) -> None:
        """Subtract locked debit totals from runtime truth, floored at 0."""
        for p in Pool:
            self._truth[p.value] = max(0.0, self._truth[p.value] - safe_number(totals.get(p)))

    def _extrapolate(self, now_ms: int) -> None:
        elapsed_s = max(0.0, (now_ms - self._last_ms) / 1000.0) * self.cfg.time_multiplier
        self._last_ms = max(self._last_ms, int(now_ms))
        if elapsed_s <= 0:
            return
        for p in Pool:
            regen = self._snapshot.pool(p).regen_effective_per_day
            self._truth[p.value] = max(0.0, self._truth[p.value] + regen * elapsed_s / SECONDS_PER_DAY)

    def _coerce(self, raw: Any) -> Optional[LedgerEntry]:
        if isinstance(raw, LedgerEntry):
            return raw
        try:
            return LedgerEntry.model_validate(raw)
        except (ValidationError, TypeError) as e:
            self._rl.warn_once("Dropping malformed pending entry from ghost: %s",
                               type(e).__name__, key="ghost_malformed")
            if self.metrics is not None:
                self.metrics.ghost_dropped_total.inc()
            return None

    def _liability(self, now_ms: int, view_expired: List[LedgerEntry]) -> Tuple[PoolAmounts, int]:
        available = dict(self._truth)
        dropped = 0
        entries: List[LedgerEntry] = []
        for raw in self.feed.current():
            entry = self._coerce(raw)
            if entry is None:
                dropped += 1
                continue
            entries.append(entry)
        live: List[LedgerEntry] = []
        for entry in chronological(entries):
            if entry.expiry_ms is not None and entry.expiry_ms <= now_ms:
                view_expired.append(entry)
            elif not entry.is_core:
                live.append(entry)
        return liability_by_pool(live, available), dropped

    def tick(self, now_ms: int) -> FrameView:
        """Compute one frame at now_ms and emit it."""
        self._extrapolate(now_ms)
        expired: List[LedgerEntry] = []
        liability, dropped = self._liability(now_ms, expired)

        caps = {p.value: self._snapshot.pool(p).cap_minor for p in Pool}
        ghosts = project_pools(self._truth, caps, liability.as_dict(), self.cfg.ghost_epsilon)

        pools: Dict[Pool, PoolFrame] = {}
        total_current = 0.0
        total_cap = 0.0
        for p in Pool:
            ps = self._snapshot.pool(p)
            g = ghosts[p]
            cap = ps.cap_minor
            daily = ps.regen_baseline_per_day
            frame = PoolFrame(
                pool=p,
                cap_minor=cap,
                truth_minor=self._truth[p.value],
                remainder_before=g.remainder_before,
                remainder_after=g.remainder_after,
                banked_before=g.banked_before,
                banked_after=g.banked_after,
                overlay_start_pct=g.overlay_start_pct,
                overlay_width_pct=g.overlay_width_pct,
                liability_minor=liability.get(p),
                trend=ps.trend,
                surplus_days_before=surplus_days(g.banked_before * cap + g.remainder_before, cap, daily),
                surplus_days_after=surplus_days(g.banked_after * cap + g.remainder_after, cap, daily),
            )
            pools[p] = frame
            if p in VITAL_POOLS:
                total_current += frame.current_minor
                total_cap += cap

        view = FrameView(
            now_ms=int(now_ms),
            pools=pools,
            total_current_minor=total_current,
            total_cap_minor=total_cap,
            expired_ids=[e.id for e in expired],
            dropped=dropped,
        )
        self.last_frame = view

        # ids that left the feed may be reported again if they come back
        self._notified_expired &= {e.id for e in expired}
        fresh = [e for e in expired if e.id not in self._notified_expired]
        if fresh and self.on_expired is not None:
            self._notified_expired.update(e.id for e in fresh)
            self.on_expired(fresh)

        if self.metrics is not None:
            self.metrics.frames_total.inc()
            for p in Pool:
                self.metrics.set_liability(p.value, liability.get(p))
        if self.on_frame is not None:
            self.on_frame(view)
        return view

    async def run(self) -> None:
        """Frame loop; runs until cancelled."""
        logger.info("Runtime loop started")
        try:
            while True:
                await self.frames.next_frame()
                self.tick(self.clock.now_ms())
        except asyncio.CancelledError:
            logger.info("Runtime loop stopped")
            raise

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
