"""
Prometheus metrics exporter for the vitals engine.

- No global singletons: every collector lives on a Metrics instance
- Optional CollectorRegistry so tests and embedders can isolate series
- Helper methods for the common per-recompute / per-frame updates
"""

import math
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from vitals.common.models import GatewaySnapshot, Trend


TREND_CODES = {
    Trend.ON_TARGET: 0,
    Trend.OVERSPENDING: 1,
    Trend.UNDERSPENDING: -1,
}


class Metrics:
    """Vitals metrics with fixed names/labels; no globals."""

    @staticmethod
    def _finite(x: float) -> float:
        if x is None:
            return 0.0
        try:
            xx = float(x)
        except (TypeError, ValueError):
            return 0.0
        return xx if math.isfinite(xx) else 0.0

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        r = self.registry

        # Recompute pipeline
        self.recompute_total = Counter('vitals_recompute_total', 'Gateway recomputes', ['result'], registry=r)
        self.recompute_latency_ms = Histogram(
            'vitals_recompute_latency_ms', 'Recompute latency in milliseconds',
            buckets=(1, 2, 5, 10, 25, 50, 100, 250, 1000), registry=r,
        )
        self.snapshot_writes_total = Counter('vitals_snapshot_writes_total', 'Snapshot writes', ['result'], registry=r)
        self.configured = Gauge('vitals_configured', 'Cashflow config present (0/1)', registry=r)

        # Per-pool state
        self.pool_cap = Gauge('vitals_pool_cap_minor', 'Pool cap in minor units', ['pool'], registry=r)
        self.pool_remainder = Gauge('vitals_pool_remainder_minor', 'Visible remainder in minor units', ['pool'], registry=r)
        self.pool_banked = Gauge('vitals_pool_banked_cycles', 'Banked cap cycles', ['pool'], registry=r)
        self.pool_regen = Gauge('vitals_pool_regen_effective_per_day', 'Trend-adjusted regen per day', ['pool'], registry=r)
        self.pool_trend = Gauge('vitals_pool_trend', 'Trend code (1=over, 0=on target, -1=under)', ['pool'], registry=r)

        # Runtime loop / ghost
        self.frames_total = Counter('vitals_frames_total', 'Runtime frames rendered', registry=r)
        self.ghost_dropped_total = Counter(
            'vitals_ghost_dropped_entries_total', 'Malformed pending entries dropped from ghost liability', registry=r,
        )
        self.pending_liability = Gauge('vitals_pending_liability_minor', 'Pending liability per pool', ['pool'], registry=r)

        # Lock
        self.locked_entries_total = Counter('vitals_locked_entries_total', 'Pending entries locked', ['reason'], registry=r)

    def observe_snapshot(self, snapshot: GatewaySnapshot) -> None:
        self.configured.set(1 if snapshot.configured else 0)
        for pool, ps in snapshot.pools.items():
            p = pool.value
            self.pool_cap.labels(pool=p).set(self._finite(ps.cap_minor))
            self.pool_remainder.labels(pool=p).set(self._finite(ps.remainder_minor))
            self.pool_banked.labels(pool=p).set(ps.banked_cycles)
            self.pool_regen.labels(pool=p).set(self._finite(ps.regen_effective_per_day))
            self.pool_trend.labels(pool=p).set(TREND_CODES.get(ps.trend, 0))

    def inc_recompute(self, result: str, latency_ms: float) -> None:
        self.recompute_total.labels(result=result).inc()
        self.recompute_latency_ms.observe(max(0.0, self._finite(latency_ms)))

    def inc_locked(self, reason: str, n: int = 1) -> None:
        if n > 0:
            self.locked_entries_total.labels(reason=reason).inc(n)

    def set_liability(self, pool: str, value: float) -> None:
        self.pending_liability.labels(pool=pool).set(self._finite(value))


def start_exporter(port: int, metrics: Metrics) -> bool:
    """Expose metrics over HTTP; port 0 disables the exporter."""
    if not port:
        return False
    start_http_server(int(port), registry=metrics.registry)
    return True
