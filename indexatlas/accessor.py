"""
indexatlas.accessor — Value lookup functions for the presentation layer.

make_accessor() returns a pure ``(region_code, country_code) → float | None``
function for one index. Country-keyed indices ignore the region code, so
every subnational region of a country shares one value.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from indexatlas.constants import INDEX_HDI, INDEX_OECD_BLI, INDEX_WHR, WEIGHTED_AVERAGE_DIMENSION_ID
from indexatlas.registry import dimension_key
from indexatlas.weights import EQUAL_WEIGHTS, compute_weighted_average

ValueAccessor = Callable[[str, str], "float | None"]
ValueStore = Mapping[str, Mapping[str, Any]]


def make_accessor(
    index_id: str,
    values: ValueStore,
    dimension_id: str | None = None,
    weights: Mapping[str, float] | None = None,
) -> ValueAccessor:
    """Build the lookup function for ``index_id``.

    Raises:
        KeyError: unknown index id, or unknown OECD dimension id.
    """
    if index_id == INDEX_HDI:
        def hdi(region_code: str, country_code: str) -> float | None:
            entry = values.get(region_code)
            return entry.get("hdi") if entry else None
        return hdi

    if index_id == INDEX_WHR:
        def whr(region_code: str, country_code: str) -> float | None:
            entry = values.get(country_code)
            return entry.get("score") if entry else None
        return whr

    if index_id != INDEX_OECD_BLI:
        raise KeyError(f"Unknown index id: '{index_id}'")

    if dimension_id is not None and dimension_id != WEIGHTED_AVERAGE_DIMENSION_ID:
        key = dimension_key(dimension_id)

        def oecd_dimension(region_code: str, country_code: str) -> float | None:
            entry = values.get(country_code)
            return entry.get(key) if entry else None
        return oecd_dimension

    active_weights = weights if weights is not None else EQUAL_WEIGHTS

    def oecd_weighted(region_code: str, country_code: str) -> float | None:
        entry = values.get(country_code)
        if not entry:
            return None
        return compute_weighted_average(entry, active_weights)
    return oecd_weighted
