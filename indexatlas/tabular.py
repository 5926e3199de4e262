"""
indexatlas.tabular — Delimited-text parsing with latest-year deduplication.

Parses the Subnational HDI (SHDI) CSV into typed RegionRecords.

Design contract:
    - Quoted spans suspend delimiter recognition. Quote characters are
      dropped. Escaped quotes ("") are not supported.
    - Blank lines are ignored. Fewer than 2 non-blank lines → empty result.
    - Rows shorter than the header are padded with "".
    - Missing or unparsable numeric fields become None. Never 0, never NaN.
      Parsing never raises on bad cells: source coverage is known to be sparse.
    - Deduplication keeps exactly one record per key: the one with the
      greatest year. Ties keep the first occurrence.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from indexatlas.constants import LEVEL_MAP, LEVEL_SUBNATIONAL

T = TypeVar("T")


# ---------------------------------------------------------------------------
# RegionRecord — immutable value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegionRecord:
    """One SHDI row for one region and one year."""

    gdl_code: str
    name: str
    country: str
    country_iso: str
    level: str
    year: int
    hdi: float | None
    education_index: float | None
    health_index: float | None
    income_index: float | None


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------

def parse_numeric_or_null(value: str | None) -> float | None:
    """Parse a numeric cell. Empty, unparsable, NaN or Inf → None."""
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    try:
        num = float(trimmed)
    except ValueError:
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def _parse_year(value: str | None) -> int:
    num = parse_numeric_or_null(value)
    if num is None:
        return 0
    return int(num)


def parse_delimited_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one line into fields, honouring double-quoted spans."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))

    return fields


def parse_table(text: str, delimiter: str = ",") -> list[dict[str, str]]:
    """Parse delimited text with a header row into a list of row dicts.

    Keys are the header names; every row has every header key.
    """
    lines = [line.rstrip("\r") for line in text.split("\n")]
    lines = [line for line in lines if line.strip()]

    if len(lines) < 2:
        return []

    headers = parse_delimited_line(lines[0], delimiter)
    header_index = {name: i for i, name in enumerate(headers)}

    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        values = parse_delimited_line(line, delimiter)
        rows.append({
            name: values[i] if i < len(values) else ""
            for name, i in header_index.items()
        })
    return rows


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------

def dedupe_latest(
    records: Iterable[T],
    key: Callable[[T], str],
    year: Callable[[T], int],
) -> list[T]:
    """Keep one record per key: the one with the greatest year.

    A later record replaces an earlier one only when its year is strictly
    greater, so ties keep the first occurrence.
    """
    latest: dict[str, T] = {}
    for record in records:
        k = key(record)
        existing = latest.get(k)
        if existing is None or year(record) > year(existing):
            latest[k] = record
    return list(latest.values())


# ---------------------------------------------------------------------------
# SHDI
# ---------------------------------------------------------------------------

def _to_region_record(row: dict[str, str]) -> RegionRecord:
    iso = row.get("iso_code") or row.get("isocode3") or ""
    return RegionRecord(
        gdl_code=row.get("gdlcode", "").strip(),
        name=row.get("region", "").strip(),
        country=row.get("country", "").strip(),
        country_iso=iso.strip(),
        level=LEVEL_MAP.get(row.get("level", "").strip(), LEVEL_SUBNATIONAL),
        year=_parse_year(row.get("year")),
        hdi=parse_numeric_or_null(row.get("shdi")),
        education_index=parse_numeric_or_null(row.get("edindex")),
        health_index=parse_numeric_or_null(row.get("healthindex")),
        income_index=parse_numeric_or_null(row.get("incindex")),
    )


def parse_shdi_csv(text: str) -> list[RegionRecord]:
    """Parse SHDI CSV text into deduplicated RegionRecords (latest year wins)."""
    records = [_to_region_record(row) for row in parse_table(text)]
    return dedupe_latest(records, key=lambda r: r.gdl_code, year=lambda r: r.year)
