"""
Unit tests for numeric helpers: safe_number, clamp, wrap_into_cap,
normalize_weights.
"""
import math

import pytest

from vitals.common.numeric import (
    DEFAULT_WEIGHTS,
    clamp,
    normalize_weights,
    round_floats,
    safe_number,
    wrap_into_cap,
)


class TestSafeNumber:
    def test_finite_values_pass_through(self):
        assert safe_number(3) == 3.0
        assert safe_number("2.5") == 2.5
        assert safe_number(-1.25) == -1.25

    @pytest.mark.parametrize("bad", [None, "abc", float("nan"), float("inf"), float("-inf"), True, False, [1], {}])
    def test_bad_values_map_to_default(self, bad):
        assert safe_number(bad) == 0.0
        assert safe_number(bad, default=7.0) == 7.0

    def test_result_is_never_nan(self):
        assert not math.isnan(safe_number("nan"))


def test_clamp():
    assert clamp(5, 0, 10) == 5
    assert clamp(-1, 0, 10) == 0
    assert clamp(11, 0, 10) == 10


class TestWrapIntoCap:
    def test_concrete_scenario(self):
        banked, remainder = wrap_into_cap(500.0, 304.4)
        assert banked == 1
        assert remainder == pytest.approx(195.6)

    def test_below_cap(self):
        assert wrap_into_cap(100.0, 304.4) == (0, 100.0)

    def test_exact_multiple_rolls_over(self):
        banked, remainder = wrap_into_cap(300.0, 100.0)
        assert banked == 3
        assert remainder == pytest.approx(0.0)

    @pytest.mark.parametrize("cap", [0.0, -5.0, float("nan")])
    def test_degenerate_cap(self, cap):
        assert wrap_into_cap(123.0, cap) == (0, 0.0)

    def test_zero_truth(self):
        assert wrap_into_cap(0.0, 50.0) == (0, 0.0)

    def test_float_multiple(self):
        cap = 0.1 * 3
        banked, remainder = wrap_into_cap(cap * 7, cap)
        assert 0.0 <= remainder < cap
        assert banked * cap + remainder == pytest.approx(cap * 7)


class TestNormalizeWeights:
    def test_sums_to_one(self):
        w = normalize_weights({"health": 1, "mana": 1, "stamina": 2, "essence": 0})
        assert sum(w.values()) == pytest.approx(1.0)
        assert w["stamina"] == pytest.approx(0.5)
        assert w["essence"] == 0.0

    def test_zero_sum_uses_default(self):
        w = normalize_weights({"health": 0, "mana": 0, "stamina": 0, "essence": 0})
        assert w == pytest.approx(DEFAULT_WEIGHTS)

    def test_none_uses_default(self):
        assert normalize_weights(None) == pytest.approx(DEFAULT_WEIGHTS)

    def test_negative_and_nan_count_as_zero(self):
        w = normalize_weights({"health": -3, "mana": float("nan"), "stamina": 1, "essence": 1})
        assert w["health"] == 0.0
        assert w["mana"] == 0.0
        assert w["stamina"] == pytest.approx(0.5)

    def test_custom_default(self):
        w = normalize_weights({}, default={"health": 1, "mana": 0, "stamina": 0, "essence": 1})
        assert w == pytest.approx({"health": 0.5, "mana": 0.0, "stamina": 0.0, "essence": 0.5})


def test_round_floats_nested():
    out = round_floats({"a": 1.23456789, "b": [0.1 + 0.2, {"c": 2}]}, dp=3)
    assert out == {"a": 1.235, "b": [0.3, {"c": 2}]}
