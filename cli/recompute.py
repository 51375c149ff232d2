"""
CLI: recompute the gateway snapshot (optionally locking due pending
entries first) and print one ASCII line per pool.

Exit code 0 on success, 1 on a coded engine error.
"""

import argparse
import logging
import sys
from typing import List, Optional

from vitals.common.config import ConfigLoader, cfg_hash_sanitized
from vitals.common.di import VitalsContext
from vitals.common.errors import VitalsError
from vitals.common.logging import setup_logging
from vitals.common.models import GatewaySnapshot, Pool
from vitals.metrics.exporter import Metrics, start_exporter
from vitals.runtime.pending_feed import PendingFeed
from vitals.service import GatewayService
from vitals.storage.ledger import JsonlLedger
from vitals.storage.settings import FileSettingsSource
from vitals.storage.snapshot_store import FileSnapshotStore


logger = logging.getLogger(__name__)


def build_context(config_path: Optional[str], settings: Optional[str], ledger: Optional[str],
                  snapshot: Optional[str]) -> VitalsContext:
    cfg = ConfigLoader(config_path).load()
    st = cfg.storage
    return VitalsContext(
        cfg=cfg,
        settings=FileSettingsSource(settings or st.settings_path),
        ledger=JsonlLedger(ledger or st.ledger_path),
        snapshots=FileSnapshotStore(snapshot or st.snapshot_path, cfg.engine.round_dp),
        pending_feed=PendingFeed(),
        metrics=Metrics(),
    )


def format_snapshot(snapshot: GatewaySnapshot) -> List[str]:
    lines = [
        f"configured={str(snapshot.configured).lower()} net_daily={snapshot.net_daily_minor:.2f} "
        f"credit_mode={snapshot.credit_mode.value} updated_at_ms={snapshot.updated_at_ms}"
    ]
    for p in Pool:
        ps = snapshot.pool(p)
        lines.append(
            f"{p.value:<8} {ps.remainder_minor:>10.2f} / {ps.cap_minor:<10.2f} "
            f"banked={ps.banked_cycles} regen={ps.regen_effective_per_day:.2f}/d trend={ps.trend.value}"
        )
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute the vitals gateway snapshot")
    parser.add_argument("--config", default=None, help="YAML config path (default: config.yaml)")
    parser.add_argument("--settings", default=None, help="Settings JSON path")
    parser.add_argument("--ledger", default=None, help="Ledger JSONL path")
    parser.add_argument("--snapshot", default=None, help="Snapshot output path")
    parser.add_argument("--now-ms", type=int, default=None, help="Override wall clock (epoch ms)")
    parser.add_argument("--lock", action="store_true", help="Lock expired/overflowing pending entries first")
    args = parser.parse_args(argv)

    ctx = build_context(args.config, args.settings, args.ledger, args.snapshot)
    setup_logging(ctx.cfg.monitoring.log_level)
    logger.info("Config loaded version=%d hash=%s", ctx.cfg.config_version, cfg_hash_sanitized(ctx.cfg))
    start_exporter(ctx.cfg.monitoring.metrics_port, ctx.metrics)
    service = GatewayService(ctx)

    try:
        if args.lock:
            result = service.lock_and_recompute(args.now_ms)
            print(f"locked={result.locked} applied_total={result.applied_totals.total():.2f}")
        snapshot = service.recompute_and_store(args.now_ms)
    except VitalsError as e:
        print(str(e), file=sys.stderr)
        return 1

    for line in format_snapshot(snapshot):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
