"""
Gateway recompute.

Pure function of (cashflow config, weights, aggregated usage, now) that
rebuilds the authoritative GatewaySnapshot wholesale. Identical inputs give
byte-identical serialized output.
"""

import logging
from typing import Dict, Optional

from vitals.common.artifacts import dumps_deterministic
from vitals.common.config import MS_PER_DAY, EngineConfig, NudgeConfig, WeightsConfig
from vitals.common.models import (
    CashflowConfig,
    EnergyMode,
    GatewaySnapshot,
    Pool,
    PoolSnapshot,
    PoolUsage,
    PoolWeights,
)
from vitals.common.numeric import normalize_weights, round_floats, safe_number, wrap_into_cap
from vitals.engine.aggregator import resolve_anchor_ms, spend_and_credit
from vitals.engine.nudge import nudge


logger = logging.getLogger(__name__)


def days_since_anchor(anchor_ms: Optional[int], now_ms: int) -> float:
    """Fractional days elapsed since the (resolved) anchor, never negative."""
    anchor = resolve_anchor_ms(anchor_ms, now_ms)
    return max(0.0, (now_ms - anchor) / MS_PER_DAY)


def empty_snapshot(now_ms: int) -> GatewaySnapshot:
    """All-zero snapshot for an account that is not configured yet."""
    return GatewaySnapshot(
        pools={p: PoolSnapshot(pool=p) for p in Pool},
        net_daily_minor=0.0,
        updated_at_ms=int(now_ms),
        configured=False,
    )


def recompute(
    config: Optional[CashflowConfig],
    weights: Optional[PoolWeights],
    usage: Dict[Pool, PoolUsage],
    now_ms: int,
    engine_cfg: Optional[EngineConfig] = None,
    nudge_cfg: Optional[NudgeConfig] = None,
    weights_cfg: Optional[WeightsConfig] = None,
) -> GatewaySnapshot:
    """Rebuild every pool from config, weights and usage.

    Missing config or weights degrade to empty_snapshot(now_ms).
    """
    if config is None or weights is None:
        logger.info("Cashflow config or weights missing; emitting empty snapshot")
        return empty_snapshot(now_ms)

    ec = engine_cfg or EngineConfig()
    wc = weights_cfg or WeightsConfig()
    if config.mode == EnergyMode.FINITE:
        # Finite mode has no distinct behaviour yet; continuous math applies.
        logger.debug("finite energy mode requested, using continuous regen")

    net_daily = (safe_number(config.inflow_monthly) - safe_number(config.outflow_monthly)) / ec.days_per_month
    norm = normalize_weights(weights.as_dict(), default=wc.as_dict(), eps=wc.sum_eps)
    days = days_since_anchor(config.pay_cycle_anchor_ms, now_ms)

    pools: Dict[Pool, PoolSnapshot] = {}
    for p in Pool:
        u = usage.get(p) or PoolUsage()
        baseline = net_daily * norm[p.value]
        effective, trend = nudge(baseline, u.last_7_days.spent, nudge_cfg, ec.trailing_window_days)
        cap = max(0.0, effective * ec.cycle_length_days)
        spent, credited = spend_and_credit(usage, p)
        carry = max(0.0, config.seed_carry.get(p)) if ec.anchor_carry_over else 0.0
        truth = effective * days - spent + credited - carry
        banked, remainder = wrap_into_cap(max(0.0, truth), cap)
        pools[p] = PoolSnapshot(
            pool=p,
            cap_minor=cap,
            regen_baseline_per_day=baseline,
            regen_effective_per_day=effective,
            remainder_minor=remainder,
            banked_cycles=banked,
            truth_total_minor=safe_number(truth),
            spent_since_anchor=spent,
            credit_since_anchor=credited,
            pending_debit=u.pending_preview.spent,
            pending_credit=u.pending_preview.credited,
            trend=trend,
        )

    return GatewaySnapshot(
        pools=pools,
        net_daily_minor=net_daily,
        updated_at_ms=int(now_ms),
        mode=config.mode,
        credit_mode=config.credit_mode,
        pay_cycle_anchor_ms=config.pay_cycle_anchor_ms,
        last_anchor_update_ms=config.last_anchor_update_ms,
        configured=True,
    )


def snapshot_payload(snapshot: GatewaySnapshot, round_dp: int = 6) -> Dict:
    return round_floats(snapshot.to_payload(), round_dp)


def serialize_snapshot(snapshot: GatewaySnapshot, round_dp: int = 6) -> bytes:
    """Deterministic bytes (sorted keys, rounded floats) of a snapshot."""
    return dumps_deterministic(snapshot_payload(snapshot, round_dp))
