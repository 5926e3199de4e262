"""
indexatlas.extractors — Per-source transforms into index value stores.

Three independent, pure transforms. Each has its own null/duplicate policy:

    HDI       — region-keyed. Records with a null composite are filtered out.
                No aggregation.
    WHR       — country-keyed. Latest year per country wins (ties: first
                seen). Absent sub-factors become None.
    OECD-BLI  — country-keyed. Subnational rows are averaged per country,
                independently per dimension, over the rows that have a value
                for that dimension. Rounded to 1 decimal. None if no row in
                the group has a value.

Country names are mapped to ISO-3 through an external table. Unmapped
names, and names deliberately mapped to None, are dropped silently.

Outputs are plain dicts in wire (camelCase) form, validated against the
matching schema in indexatlas.schemas before they are returned.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from indexatlas.constants import (
    INDEX_HDI,
    INDEX_OECD_BLI,
    INDEX_WHR,
    OECD_DIMENSION_KEYS,
    OECD_PRECISION,
    WHR_COUNTRY_COLUMN,
    WHR_SCORE_COLUMN,
    WHR_SUBFACTOR_COLUMNS,
    WHR_YEAR_COLUMN,
)
from indexatlas.schemas import validate_value_store
from indexatlas.tabular import RegionRecord, dedupe_latest

CountryMapping = Mapping[str, Optional[str]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float, places: int) -> float:
    """Round half away from zero, not Python's banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _cell_number(value: Any) -> float | None:
    """Spreadsheet cell → float, or None when absent, blank or non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            f = float(text)
        except ValueError:
            return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _lookup_iso(country: Any, country_to_iso: CountryMapping) -> str | None:
    if not country:
        return None
    return country_to_iso.get(str(country).strip()) or None


# ---------------------------------------------------------------------------
# HDI
# ---------------------------------------------------------------------------

def extract_hdi_values(records: Iterable[RegionRecord]) -> dict[str, dict[str, Any]]:
    """Region-keyed HDI value store from deduplicated SHDI records."""
    values: dict[str, dict[str, Any]] = {}
    for r in records:
        if r.hdi is None:
            continue
        values[r.gdl_code] = {
            "hdi": r.hdi,
            "educationIndex": r.education_index,
            "healthIndex": r.health_index,
            "incomeIndex": r.income_index,
            "year": r.year,
        }
    return validate_value_store(INDEX_HDI, values)


# ---------------------------------------------------------------------------
# WHR
# ---------------------------------------------------------------------------

def _whr_year(row: Mapping[str, Any]) -> int:
    year = _cell_number(row.get(WHR_YEAR_COLUMN))
    return int(year) if year is not None else 0


def extract_whr_values(
    rows: Iterable[Mapping[str, Any]],
    country_to_iso: CountryMapping,
) -> dict[str, dict[str, Any]]:
    """Country-keyed WHR value store, latest year per country."""
    mapped: list[tuple[str, Mapping[str, Any]]] = []
    for row in rows:
        iso = _lookup_iso(row.get(WHR_COUNTRY_COLUMN), country_to_iso)
        if iso is None:
            continue
        mapped.append((iso, row))

    latest = dedupe_latest(mapped, key=lambda item: item[0], year=lambda item: _whr_year(item[1]))

    values: dict[str, dict[str, Any]] = {}
    for iso, row in latest:
        record: dict[str, Any] = {"score": _cell_number(row.get(WHR_SCORE_COLUMN))}
        for key, column in WHR_SUBFACTOR_COLUMNS.items():
            record[key] = _cell_number(row.get(column))
        record["year"] = _whr_year(row)
        values[iso] = record

    return validate_value_store(INDEX_WHR, values)


# ---------------------------------------------------------------------------
# OECD Better Life Index
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OecdRow:
    """One TL2 region row of the Regional Well-Being score sheet."""

    country: str
    region: str
    code: str
    scores: dict[str, float | None]

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> OecdRow:
        return cls(
            country=str(row.get("country") or "").strip(),
            region=str(row.get("region") or "").strip(),
            code=str(row.get("code") or "").strip(),
            scores={dim: _cell_number(row.get(dim)) for dim in OECD_DIMENSION_KEYS},
        )


def average_dimensions(rows: Iterable[OecdRow]) -> dict[str, float | None]:
    """Per-dimension mean over rows with a value, rounded to 1 decimal.

    Null exclusion is independent per dimension: each dimension is averaged
    over its own subset of rows.
    """
    sums = {dim: 0.0 for dim in OECD_DIMENSION_KEYS}
    counts = {dim: 0 for dim in OECD_DIMENSION_KEYS}

    for row in rows:
        for dim in OECD_DIMENSION_KEYS:
            value = row.scores.get(dim)
            if value is not None:
                sums[dim] += value
                counts[dim] += 1

    return {
        dim: round_half_up(sums[dim] / counts[dim], OECD_PRECISION) if counts[dim] else None
        for dim in OECD_DIMENSION_KEYS
    }


def extract_oecd_values(
    rows: Iterable[OecdRow | Mapping[str, Any]],
    country_to_iso: CountryMapping,
) -> dict[str, dict[str, Any]]:
    """Country-keyed OECD BLI value store from subnational rows."""
    by_iso: dict[str, list[OecdRow]] = {}

    for raw in rows:
        row = raw if isinstance(raw, OecdRow) else OecdRow.from_mapping(raw)
        iso = _lookup_iso(row.country, country_to_iso)
        if iso is None:
            continue
        by_iso.setdefault(iso, []).append(row)

    values = {iso: average_dimensions(group) for iso, group in by_iso.items()}
    return validate_value_store(INDEX_OECD_BLI, values)
