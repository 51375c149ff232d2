"""
Unit tests for gateway recompute.
"""
import orjson
import pytest

from vitals.common.config import MS_PER_DAY, EngineConfig
from vitals.common.models import CashflowConfig, CreditMode, Pool, PoolWeights, Trend
from vitals.engine.aggregator import aggregate
from vitals.engine.gateway import days_since_anchor, empty_snapshot, recompute, serialize_snapshot

from tests.helpers.factories import ANCHOR_MS, NOW_MS, make_entry


def _snap(cashflow, weights, entries=(), now=NOW_MS):
    usage = aggregate(entries, cashflow.credit_mode, cashflow.pay_cycle_anchor_ms, now)
    return recompute(cashflow, weights, usage, now)


class TestEmptySnapshot:
    def test_missing_config(self, weights):
        snap = recompute(None, weights, {}, NOW_MS)
        assert snap.configured is False
        assert snap.updated_at_ms == NOW_MS
        for p in Pool:
            ps = snap.pool(p)
            assert ps.cap_minor == 0.0
            assert ps.remainder_minor == 0.0
            assert ps.banked_cycles == 0

    def test_missing_weights(self, cashflow):
        assert recompute(cashflow, None, {}, NOW_MS) == empty_snapshot(NOW_MS)


class TestRecompute:
    def test_baseline_and_cap(self, cashflow, weights):
        snap = _snap(cashflow, weights)
        assert snap.configured is True
        assert snap.net_daily_minor == pytest.approx(100.0)
        mana = snap.pool(Pool.MANA)
        assert mana.regen_baseline_per_day == pytest.approx(30.0)
        # no usage in the trailing window -> underspending boost
        assert mana.trend == Trend.UNDERSPENDING
        assert mana.regen_effective_per_day == pytest.approx(31.5)
        assert mana.cap_minor == pytest.approx(31.5 * 30.44)
        assert mana.truth_total_minor == pytest.approx(315.0)
        assert mana.banked_cycles == 0
        assert mana.remainder_minor == pytest.approx(315.0)

    def test_wrap_invariant_holds_per_pool(self, cashflow, weights):
        entries = [make_entry("a", -500, ANCHOR_MS + MS_PER_DAY, intent="stamina")]
        snap = _snap(cashflow, weights, entries, now=ANCHOR_MS + 80 * MS_PER_DAY)
        for p in Pool:
            ps = snap.pool(p)
            if ps.cap_minor > 0:
                assert 0.0 <= ps.remainder_minor < ps.cap_minor
                clamped = max(0.0, ps.truth_total_minor)
                assert ps.banked_cycles * ps.cap_minor + ps.remainder_minor == pytest.approx(clamped)

    def test_spend_and_credit_move_truth(self, cashflow, weights):
        base = _snap(cashflow, weights).pool(Pool.STAMINA).truth_total_minor
        spent = _snap(cashflow, weights, [make_entry("d", -40, ANCHOR_MS + MS_PER_DAY)])
        assert spent.pool(Pool.STAMINA).truth_total_minor == pytest.approx(base - 40)
        assert spent.pool(Pool.STAMINA).spent_since_anchor == 40.0
        credited = _snap(cashflow, weights, [make_entry("c", 25, ANCHOR_MS + MS_PER_DAY)])
        assert credited.pool(Pool.ESSENCE).credit_since_anchor == 25.0

    def test_overspending_trims_cap(self, cashflow, weights):
        # mana baseline 30/day, expected7 = 210; spend 300 in window
        entries = [make_entry("d", -300, NOW_MS - MS_PER_DAY, intent="mana")]
        mana = _snap(cashflow, weights, entries).pool(Pool.MANA)
        assert mana.trend == Trend.OVERSPENDING
        assert mana.regen_effective_per_day == pytest.approx(28.5)

    def test_negative_truth_wraps_to_zero(self, cashflow, weights):
        entries = [make_entry("d", -10_000, ANCHOR_MS + MS_PER_DAY, intent="mana")]
        mana = _snap(cashflow, weights, entries).pool(Pool.MANA)
        assert mana.truth_total_minor < 0
        assert mana.banked_cycles == 0
        assert mana.remainder_minor == 0.0

    def test_negative_net_gives_zero_caps(self, weights):
        cfg = CashflowConfig(inflow_monthly=100, outflow_monthly=500, pay_cycle_anchor_ms=ANCHOR_MS)
        snap = _snap(cfg, weights)
        assert snap.net_daily_minor < 0
        for p in Pool:
            assert snap.pool(p).cap_minor == 0.0
            assert snap.pool(p).remainder_minor == 0.0

    def test_zero_weights_use_default_split(self, cashflow):
        snap = _snap(cashflow, PoolWeights())
        assert snap.pool(Pool.STAMINA).regen_baseline_per_day == pytest.approx(50.0)

    def test_carries_config_fields(self, weights):
        cfg = CashflowConfig(inflow_monthly=3044, pay_cycle_anchor_ms=ANCHOR_MS, credit_mode="allocate")
        snap = _snap(cfg, weights)
        assert snap.credit_mode == CreditMode.ALLOCATE
        assert snap.pay_cycle_anchor_ms == ANCHOR_MS

    def test_seed_carry_subtracted_when_enabled(self, weights):
        cfg = CashflowConfig(inflow_monthly=3044, pay_cycle_anchor_ms=ANCHOR_MS, seed_carry={"mana": 100.0})
        usage = aggregate([], cfg.credit_mode, ANCHOR_MS, NOW_MS)
        plain = recompute(CashflowConfig(inflow_monthly=3044, pay_cycle_anchor_ms=ANCHOR_MS), weights, usage, NOW_MS)
        carried = recompute(cfg, weights, usage, NOW_MS)
        ignored = recompute(cfg, weights, usage, NOW_MS, EngineConfig(anchor_carry_over=False))
        mana = plain.pool(Pool.MANA).truth_total_minor
        assert carried.pool(Pool.MANA).truth_total_minor == pytest.approx(mana - 100.0)
        assert carried.pool(Pool.STAMINA).truth_total_minor == pytest.approx(plain.pool(Pool.STAMINA).truth_total_minor)
        assert ignored.pool(Pool.MANA).truth_total_minor == pytest.approx(mana)

    def test_invalid_seed_carry_ignored(self):
        assert CashflowConfig(seed_carry=None).seed_carry.total() == 0.0
        assert CashflowConfig(seed_carry={"mana": "nan"}).seed_carry.mana == 0.0

    def test_engine_config_cycle_length(self, cashflow, weights):
        usage = aggregate([], cashflow.credit_mode, ANCHOR_MS, NOW_MS)
        snap = recompute(cashflow, weights, usage, NOW_MS, EngineConfig(cycle_length_days=7.0))
        mana = snap.pool(Pool.MANA)
        assert mana.cap_minor == pytest.approx(mana.regen_effective_per_day * 7.0)


class TestDaysSinceAnchor:
    def test_elapsed_days(self):
        assert days_since_anchor(ANCHOR_MS, ANCHOR_MS + MS_PER_DAY // 2) == pytest.approx(0.5)

    def test_future_anchor_clamped(self):
        assert days_since_anchor(NOW_MS + MS_PER_DAY, NOW_MS) == 0.0

    def test_missing_anchor_uses_month_start(self):
        assert days_since_anchor(None, NOW_MS) == pytest.approx(10.0)


class TestSerialization:
    def test_idempotent_bytes(self, cashflow, weights):
        entries = [
            make_entry("a", -12.5, ANCHOR_MS + MS_PER_DAY, intent="mana"),
            make_entry("b", 40, ANCHOR_MS + 2 * MS_PER_DAY),
            make_entry("p", -3, NOW_MS - 1000, status="pending"),
        ]
        a = serialize_snapshot(_snap(cashflow, weights, entries))
        b = serialize_snapshot(_snap(cashflow, weights, list(reversed(entries))))
        assert a == b

    def test_sorted_keys_and_finite(self, cashflow, weights):
        raw = serialize_snapshot(_snap(cashflow, weights))
        assert raw.endswith(b"\n")
        doc = orjson.loads(raw)
        assert list(doc.keys()) == sorted(doc.keys())
        assert set(doc["pools"].keys()) == {"health", "mana", "stamina", "essence"}
        assert b"NaN" not in raw and b"Infinity" not in raw
