"""
tests/test_weights.py — Weighted OECD composite and slider weight redistribution.

Requires: pytest
"""

from __future__ import annotations

import random

import pytest

from indexatlas.constants import OECD_DIMENSION_KEYS
from indexatlas.weights import (
    EQUAL_WEIGHTS,
    compute_weighted_average,
    normalize_weights,
    redistribute_weights,
    to_fractions,
    to_percentages,
)


def _full(value: float) -> dict[str, float]:
    return {k: value for k in OECD_DIMENSION_KEYS}


# ---------------------------------------------------------------------------
# Composite score
# ---------------------------------------------------------------------------

class TestComputeWeightedAverage:

    def test_equal_weights_plain_mean(self):
        values = {k: float(i) for i, k in enumerate(OECD_DIMENSION_KEYS)}
        assert compute_weighted_average(values) == pytest.approx(5.0)

    def test_nulls_skipped_and_weights_renormalized(self):
        values = {k: None for k in OECD_DIMENSION_KEYS}
        values["income"] = 8.0
        values["jobs"] = 6.0
        assert compute_weighted_average(values) == pytest.approx(7.0)

    def test_all_null_is_none(self):
        assert compute_weighted_average({k: None for k in OECD_DIMENSION_KEYS}) is None
        assert compute_weighted_average({}) is None

    def test_single_value_returned_as_is(self):
        assert compute_weighted_average({"safety": 3.3}) == pytest.approx(3.3)

    def test_custom_weights(self):
        values = {"income": 10.0, "jobs": 0.0}
        weights = {"income": 3.0, "jobs": 1.0}
        assert compute_weighted_average(values, weights) == pytest.approx(7.5)

    def test_zero_surviving_weight_is_none(self):
        values = {"income": 5.0, "jobs": None}
        assert compute_weighted_average(values, {"income": 0.0, "jobs": 1.0}) is None

    def test_result_stays_within_value_range(self):
        rng = random.Random(3)
        for _ in range(100):
            values = {k: (rng.uniform(0, 10) if rng.random() > 0.3 else None) for k in OECD_DIMENSION_KEYS}
            weights = {k: rng.uniform(0, 5) for k in OECD_DIMENSION_KEYS}
            result = compute_weighted_average(values, weights)
            present = [v for v in values.values() if v is not None]
            if result is not None:
                assert min(present) - 1e-9 <= result <= max(present) + 1e-9


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

class TestConversions:

    def test_equal_weights_sum_to_one(self):
        assert sum(EQUAL_WEIGHTS.values()) == pytest.approx(1.0)
        assert set(EQUAL_WEIGHTS) == set(OECD_DIMENSION_KEYS)

    def test_percentages_and_fractions(self):
        pct = to_percentages(EQUAL_WEIGHTS)
        assert sum(pct.values()) == pytest.approx(100.0)
        back = to_fractions(pct)
        for k in OECD_DIMENSION_KEYS:
            assert back[k] == pytest.approx(EQUAL_WEIGHTS[k])

    def test_normalize_all_zero_is_equal_split(self):
        assert normalize_weights({"a": 0.0, "b": 0.0}) == {"a": 0.5, "b": 0.5}

    def test_normalize_empty(self):
        assert normalize_weights({}) == {}


# ---------------------------------------------------------------------------
# Redistribution
# ---------------------------------------------------------------------------

class TestRedistributeWeights:

    def test_raise_one_from_equal(self):
        result = redistribute_weights(EQUAL_WEIGHTS, "income", 50)
        assert result["income"] == 50
        for k in OECD_DIMENSION_KEYS:
            if k != "income":
                assert result[k] == pytest.approx(5.0)

    def test_always_sums_to_100(self):
        rng = random.Random(19)
        weights = to_percentages(EQUAL_WEIGHTS)
        for _ in range(200):
            key = rng.choice(OECD_DIMENSION_KEYS)
            weights = redistribute_weights(weights, key, rng.uniform(-10, 110))
            assert sum(weights.values()) == pytest.approx(100.0)
            assert all(w >= 0 for w in weights.values())

    def test_proportions_of_others_preserved(self):
        current = {"a": 50.0, "b": 30.0, "c": 20.0}
        result = redistribute_weights(current, "a", 20)
        assert result["b"] / result["c"] == pytest.approx(1.5)
        assert result["b"] == pytest.approx(48.0)
        assert result["c"] == pytest.approx(32.0)

    def test_full_weight_zeroes_others(self):
        result = redistribute_weights(EQUAL_WEIGHTS, "safety", 100)
        assert result["safety"] == 100
        assert all(result[k] == 0 for k in OECD_DIMENSION_KEYS if k != "safety")

    def test_zero_weight(self):
        current = {"a": 50.0, "b": 25.0, "c": 25.0}
        result = redistribute_weights(current, "a", 0)
        assert result == pytest.approx({"a": 0.0, "b": 50.0, "c": 50.0})

    def test_others_all_zero_split_evenly(self):
        current = {"a": 100.0, "b": 0.0, "c": 0.0}
        result = redistribute_weights(current, "a", 40)
        assert result == pytest.approx({"a": 40.0, "b": 30.0, "c": 30.0})

    def test_clamped(self):
        current = {"a": 50.0, "b": 50.0}
        assert redistribute_weights(current, "a", 150)["a"] == 100
        assert redistribute_weights(current, "a", -5)["a"] == 0

    def test_single_key(self):
        assert redistribute_weights({"a": 1.0}, "a", 30) == {"a": 100.0}

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            redistribute_weights(EQUAL_WEIGHTS, "wealth", 10)

    def test_input_not_mutated(self):
        current = _full(1.0)
        redistribute_weights(current, "jobs", 30)
        assert current == _full(1.0)
