#!/usr/bin/env python3
"""
Terminal HUD: run the runtime loop against the persisted snapshot and the
live pending set, printing ASCII bars with ghost overlays.

Expired pending entries trigger a lock + recompute; the locked totals are
subtracted from runtime truth at once and the loop is rebased on the next
periodic recompute. --view daily|weekly shows focus bars instead of the
cycle bars.
"""

import argparse
import asyncio
import logging
import math
import sys
from typing import Dict, List, Optional

from vitals.common.config import AVG_MONTH_DAYS
from vitals.common.logging import setup_logging
from vitals.common.models import LedgerEntry, Pool
from vitals.engine.focus import FocusBar, FocusPeriod
from vitals.runtime.loop import FrameView, RuntimeLoopContext
from vitals.service import GatewayService

from cli.recompute import build_context


logger = logging.getLogger(__name__)

BAR_WIDTH = 30


def format_surplus(days: float, style: str = "dwm") -> str:
    """Surplus pill text: "+12" or month/week/day split like "+1M +2W +1D"."""
    whole = max(0, int(math.floor(days)))
    if style != "dwm":
        return f"+{whole}"
    months = int(math.floor(whole / AVG_MONTH_DAYS))
    whole -= int(math.floor(months * AVG_MONTH_DAYS))
    weeks = whole // 7
    whole -= weeks * 7
    parts = []
    if months > 0:
        parts.append(f"+{months}M")
    if weeks > 0:
        parts.append(f"+{weeks}W")
    if whole > 0 or not parts:
        parts.append(f"+{whole}D")
    return " ".join(parts)


def render_bar(remainder: float, cap: float, start_pct: float, width_pct: float, width: int = BAR_WIDTH) -> str:
    if cap <= 0:
        return "[" + " " * width + "]"
    filled = int(round(min(1.0, remainder / cap) * width))
    ghost_from = int(round(start_pct / 100.0 * width))
    ghost_to = int(round((start_pct + width_pct) / 100.0 * width))
    cells = []
    for i in range(width):
        if ghost_from <= i < ghost_to and width_pct > 0:
            cells.append("~")
        elif i < filled:
            cells.append("#")
        else:
            cells.append(".")
    return "[" + "".join(cells) + "]"


def render_frame(view: FrameView) -> List[str]:
    lines = []
    for p in Pool:
        f = view.pools[p]
        shown = f.current_minor
        pill = ""
        if f.surplus_days_before > 0 or f.surplus_days_after > 0:
            pill = format_surplus(f.surplus_days_before)
            if f.surplus_days_after != f.surplus_days_before:
                pill += " -> " + format_surplus(f.surplus_days_after)
        lines.append(
            f"{p.value:<8} {render_bar(f.remainder_before, f.cap_minor, f.overlay_start_pct, f.overlay_width_pct)} "
            f"{shown:>9.2f} / {f.cap_minor:<9.2f} {pill}".rstrip()
        )
    lines.append(f"vitals   {view.total_current_minor:.2f} / {view.total_cap_minor:.2f}")
    return lines


def render_focus(bars: Dict[Pool, FocusBar], period: FocusPeriod) -> List[str]:
    lines = [f"focus    {FocusPeriod(period).value}"]
    for p in Pool:
        b = bars[p]
        shown = b.after_minor if b.overlay_width_pct > 0 else b.current_minor
        lines.append(
            f"{p.value:<8} {render_bar(b.current_minor, b.cap_minor, b.overlay_start_pct, b.overlay_width_pct)} "
            f"{shown:>9.2f} / {b.cap_minor:<9.2f} spent={b.spent_minor:.2f}"
        )
    return lines


async def run_hud(service: GatewayService, duration_sec: float, view: str = "vitals") -> int:
    ctx = service.ctx
    snapshot = service.recompute_and_store()
    lock_requested = asyncio.Event()

    def on_frame(frame: FrameView) -> None:
        if view == "vitals":
            lines = render_frame(frame)
        else:
            liabilities = {p.value: f.liability_minor for p, f in frame.pools.items()}
            period = FocusPeriod(view)
            lines = render_focus(service.focus(loop_ctx.snapshot, liabilities, frame.now_ms, period), period)
        sys.stdout.write("\x1b[H\x1b[2J" + "\n".join(lines) + "\n")
        sys.stdout.flush()

    def on_expired(entries: List[LedgerEntry]) -> None:
        logger.info("%d pending entries expired, requesting lock", len(entries))
        lock_requested.set()

    loop_ctx = RuntimeLoopContext(
        snapshot,
        feed=ctx.pending_feed,
        on_frame=on_frame,
        on_expired=on_expired,
        cfg=ctx.cfg.runtime,
        metrics=ctx.metrics,
    )
    unsubscribe = service.bind_pending_feed()
    loop_ctx.start()

    async def lock_worker() -> None:
        while True:
            await lock_requested.wait()
            lock_requested.clear()
            result = service.lock_and_recompute()
            if result.decisions:
                # Runtime truth catches up now; the next recompute rebases it.
                loop_ctx.apply_locked(result.applied_totals)

    async def periodic_recompute() -> None:
        interval = max(1.0, ctx.cfg.runtime.recompute_interval_sec)
        while True:
            await asyncio.sleep(interval)
            loop_ctx.rebase(service.recompute_and_store())

    workers = [asyncio.create_task(lock_worker()), asyncio.create_task(periodic_recompute())]
    try:
        await asyncio.sleep(duration_sec)
    finally:
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        await loop_ctx.stop()
        if unsubscribe is not None:
            unsubscribe()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Vitals terminal HUD")
    parser.add_argument("--config", default=None, help="YAML config path (default: config.yaml)")
    parser.add_argument("--settings", default=None)
    parser.add_argument("--ledger", default=None)
    parser.add_argument("--snapshot", default=None)
    parser.add_argument("--duration-sec", type=float, default=30.0, help="Run duration in seconds")
    parser.add_argument("--time-multiplier", type=float, default=None, help="Accelerate regen for demos")
    parser.add_argument("--view", choices=["vitals", "daily", "weekly"], default="vitals",
                        help="Cycle bars (vitals) or daily/weekly focus bars")
    args = parser.parse_args(argv)

    ctx = build_context(args.config, args.settings, args.ledger, args.snapshot)
    setup_logging(ctx.cfg.monitoring.log_level)
    if args.time_multiplier is not None:
        ctx.cfg.runtime.time_multiplier = max(1e-6, args.time_multiplier)
    return asyncio.run(run_hud(GatewayService(ctx), args.duration_sec, args.view))


if __name__ == "__main__":
    sys.exit(main())
