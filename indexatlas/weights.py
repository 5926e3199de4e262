"""
indexatlas.weights — Weighted composite scores and interactive weight tuning.

Two representations of DimensionWeights exist and must not be mixed:

    fractional   — values sum to 1.0. What compute_weighted_average expects
                   (any positive scale works, it renormalizes).
    percentage   — values sum to 100. What a slider UI edits, and what
                   redistribute_weights returns.

Convert explicitly with to_fractions() / to_percentages().

Design contract:
    - compute_weighted_average skips null dimensions and renormalizes the
      surviving weights. A country missing 6 of 11 dimensions gets a real
      0-10 average over its 5, not one depressed by implicit zeros.
    - redistribute_weights always returns percentages summing to 100.
      Others keep their relative proportions. If they were all 0, the
      remaining mass is split evenly.
"""

from __future__ import annotations

from collections.abc import Mapping

from indexatlas.constants import NUM_DIMENSIONS, OECD_DIMENSION_KEYS

DimensionWeights = dict[str, float]

PERCENT_TOTAL: float = 100.0

EQUAL_WEIGHTS: Mapping[str, float] = {k: 1.0 / NUM_DIMENSIONS for k in OECD_DIMENSION_KEYS}


# ---------------------------------------------------------------------------
# Representation conversions
# ---------------------------------------------------------------------------

def _scaled(weights: Mapping[str, float], total: float) -> DimensionWeights:
    current = sum(weights.values())
    if current <= 0:
        if not weights:
            return {}
        share = total / len(weights)
        return {k: share for k in weights}
    return {k: w * total / current for k, w in weights.items()}


def normalize_weights(weights: Mapping[str, float]) -> DimensionWeights:
    """Rescale so the weights sum to 1. All-zero input becomes equal weights."""
    return _scaled(weights, 1.0)


def to_fractions(weights: Mapping[str, float]) -> DimensionWeights:
    """Percentage (or any-scale) weights → fractional form, sum 1."""
    return _scaled(weights, 1.0)


def to_percentages(weights: Mapping[str, float]) -> DimensionWeights:
    """Fractional (or any-scale) weights → percentage form, sum 100."""
    return _scaled(weights, PERCENT_TOTAL)


# ---------------------------------------------------------------------------
# Composite score
# ---------------------------------------------------------------------------

def compute_weighted_average(
    values: Mapping[str, float | None],
    weights: Mapping[str, float] = EQUAL_WEIGHTS,
) -> float | None:
    """Weighted mean over the non-null dimensions of ``values``.

    Returns None if no dimension has a value, or if the surviving weights
    sum to zero.
    """
    pairs = [
        (value, weights[k])
        for k in weights
        if (value := values.get(k)) is not None
    ]
    if not pairs:
        return None

    total_weight = sum(w for _, w in pairs)
    if total_weight <= 0:
        return None

    return sum(v * (w / total_weight) for v, w in pairs)


# ---------------------------------------------------------------------------
# Interactive redistribution
# ---------------------------------------------------------------------------

def redistribute_weights(
    current_weights: Mapping[str, float],
    changed_key: str,
    new_percentage: float,
) -> DimensionWeights:
    """Set one weight to ``new_percentage`` and rescale the rest to fill 100.

    ``current_weights`` may be in either representation; it is brought to
    percentage form first. ``new_percentage`` is clamped to [0, 100].

    Raises:
        KeyError: if ``changed_key`` is not one of the weight keys.
    """
    if changed_key not in current_weights:
        raise KeyError(f"Unknown weight key: '{changed_key}'")

    percentages = to_percentages(current_weights)
    new_value = min(PERCENT_TOTAL, max(0.0, float(new_percentage)))
    others = [k for k in percentages if k != changed_key]

    if not others:
        return {changed_key: PERCENT_TOTAL}

    remaining = PERCENT_TOTAL - new_value
    others_total = sum(percentages[k] for k in others)

    result: DimensionWeights = {}
    for k in percentages:
        if k == changed_key:
            result[k] = new_value
        elif others_total > 0:
            result[k] = percentages[k] * remaining / others_total
        else:
            result[k] = remaining / len(others)
    return result
