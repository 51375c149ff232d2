"""
Unit tests for the usage aggregator.

Tests verify:
- Anchor and trailing-window bucketing
- Core / zero / pre-anchor exclusion
- Credit modes (essence, allocate, health)
- Pending entries only reach the preview bucket
- Malformed entries are skipped
"""
import logging

import pytest

from vitals.common.config import MS_PER_DAY
from vitals.common.models import CreditMode, Pool, PoolAmounts
from vitals.engine.aggregator import (
    aggregate,
    confirmed_spend_in_range,
    month_start_ms,
    resolve_anchor_ms,
    window_start_ms,
)

from tests.helpers.factories import ANCHOR_MS, NOW_MS, make_entry


NOW = NOW_MS
OLD = ANCHOR_MS + 1 * MS_PER_DAY
RECENT = ANCHOR_MS + 5 * MS_PER_DAY


def _agg(entries, mode=CreditMode.ESSENCE, anchor=ANCHOR_MS):
    return aggregate(entries, mode, anchor, NOW)


class TestAnchorResolution:
    def test_month_start(self):
        # 2024-03-11 -> 2024-03-01T00:00Z
        assert month_start_ms(NOW) == ANCHOR_MS

    @pytest.mark.parametrize("anchor", [None, 0, -5, "junk"])
    def test_missing_anchor_falls_back_to_month_start(self, anchor):
        assert resolve_anchor_ms(anchor, NOW) == ANCHOR_MS

    def test_configured_anchor_kept(self):
        assert resolve_anchor_ms(ANCHOR_MS + 5, NOW) == ANCHOR_MS + 5

    def test_window_start_never_before_anchor(self):
        assert window_start_ms(ANCHOR_MS, NOW) == NOW - 7 * MS_PER_DAY
        assert window_start_ms(ANCHOR_MS, ANCHOR_MS + MS_PER_DAY) == ANCHOR_MS


class TestConfirmedDebits:
    def test_since_anchor_and_trailing_buckets(self):
        usage = _agg([
            make_entry("old", -30, OLD, intent="mana"),
            make_entry("new", -20, RECENT, intent="mana"),
        ])
        mana = usage[Pool.MANA]
        assert mana.since_anchor.spent == pytest.approx(50.0)
        assert mana.last_7_days.spent == pytest.approx(20.0)
        assert usage[Pool.HEALTH].since_anchor.spent == 0.0

    def test_applied_allocation_is_authoritative(self):
        e = make_entry("x", -20, RECENT, intent="stamina",
                       applied_allocation=PoolAmounts(stamina=5, health=15))
        usage = _agg([e])
        assert usage[Pool.STAMINA].since_anchor.spent == 5.0
        assert usage[Pool.HEALTH].since_anchor.spent == 15.0

    def test_missing_intent_defaults_to_stamina(self):
        usage = _agg([make_entry("x", -12, RECENT)])
        assert usage[Pool.STAMINA].since_anchor.spent == 12.0

    def test_exclusions(self):
        usage = _agg([
            make_entry("pre", -10, ANCHOR_MS - 1, intent="mana"),
            make_entry("core", -10, RECENT, intent="mana", classification="core_outflow"),
            make_entry("zero", 0, RECENT, intent="mana"),
        ])
        for p in Pool:
            assert usage[p].since_anchor.spent == 0.0
            assert usage[p].since_anchor.credited == 0.0


class TestCredits:
    def test_essence_mode(self):
        usage = _agg([make_entry("c", 100, RECENT, intent="mana")], CreditMode.ESSENCE)
        assert usage[Pool.ESSENCE].since_anchor.credited == 100.0
        assert usage[Pool.MANA].since_anchor.spent == 0.0
        assert usage[Pool.ESSENCE].last_7_days.spent == 0.0

    def test_allocate_mode_offsets_intent_spend(self):
        usage = _agg([
            make_entry("d", -150, RECENT, intent="mana"),
            make_entry("c", 100, RECENT, intent="mana"),
        ], CreditMode.ALLOCATE)
        assert usage[Pool.MANA].since_anchor.spent == pytest.approx(50.0)
        assert usage[Pool.MANA].last_7_days.spent == pytest.approx(50.0)
        assert usage[Pool.ESSENCE].since_anchor.credited == 0.0

    def test_health_mode_offsets_health(self):
        usage = _agg([make_entry("c", 40, OLD, intent="mana")], CreditMode.HEALTH)
        assert usage[Pool.HEALTH].since_anchor.spent == -40.0
        assert usage[Pool.HEALTH].last_7_days.spent == 0.0


class TestPending:
    def test_pending_only_in_preview(self):
        usage = _agg([
            make_entry("p1", -25, RECENT, status="pending", intent="mana"),
            make_entry("p2", 10, RECENT, status="pending"),
        ])
        assert usage[Pool.MANA].pending_preview.spent == 25.0
        assert usage[Pool.MANA].since_anchor.spent == 0.0
        assert usage[Pool.MANA].last_7_days.spent == 0.0
        assert usage[Pool.ESSENCE].pending_preview.credited == 10.0

    def test_pending_credit_follows_credit_mode(self):
        usage = _agg([make_entry("p", 10, RECENT, status="pending")], CreditMode.HEALTH)
        assert usage[Pool.HEALTH].pending_preview.credited == 10.0


def test_malformed_entries_skipped(caplog):
    with caplog.at_level(logging.WARNING):
        usage = _agg([
            {"amount_minor": -5, "timestamp_ms": RECENT},
            {"id": "ok", "amount_minor": "-7", "timestamp_ms": RECENT, "status": "confirmed"},
            {"id": "bad-status", "amount_minor": -9, "timestamp_ms": RECENT, "status": "weird"},
        ])
    assert usage[Pool.STAMINA].since_anchor.spent == 7.0
    assert "malformed" in caplog.text


def test_non_finite_amount_is_ignored():
    usage = _agg([make_entry("nan", float("nan"), RECENT)])
    assert usage[Pool.STAMINA].since_anchor.spent == 0.0


def test_confirmed_spend_in_range():
    entries = [
        make_entry("a", -10, ANCHOR_MS, intent="mana"),
        make_entry("b", -20, ANCHOR_MS + MS_PER_DAY, intent="mana"),
        make_entry("p", -30, ANCHOR_MS, status="pending", intent="mana"),
        make_entry("c", 50, ANCHOR_MS),
    ]
    totals = confirmed_spend_in_range(entries, ANCHOR_MS, ANCHOR_MS + MS_PER_DAY)
    assert totals.mana == 10.0
    assert totals.total() == 10.0
