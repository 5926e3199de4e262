"""
indexatlas.join — Geometry ↔ record join with data-quality auditing.

Joins region geometries against deduplicated SHDI records by GDL code,
computes a rounded centroid per geometry, and reports join quality.

Design contract:
    - Every input feature yields exactly one JoinedRegion, in input order.
    - Matched: descriptive fields come from the record.
    - Unmatched: synthetic fallback (name = key, country = "", ISO from the
      feature, level from the trailing "t", index values None, year 0).
    - matched + len(geo_only) == len(features). Always.
    - csv_only lists every record key never matched, in record order.
    - match_rate = matched / len(features); 0.0 when there are no features.
    - If min_match_rate is given and match_rate < min_match_rate, raise
      MatchRateError. This is a hard build gate, not a warning.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from indexatlas.constants import (
    LEVEL_NATIONAL,
    LEVEL_SUBNATIONAL,
    NATIONAL_CODE_SUFFIX,
)
from indexatlas.schemas import RegionProperties
from indexatlas.tabular import RegionRecord
from indexatlas.topology import GeoFeature, compute_centroid

logger = logging.getLogger("indexatlas.join")


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class JoinedRegion:
    """Unchanged geometry plus normalized properties."""

    geometry: dict[str, Any] | None
    properties: RegionProperties

    @property
    def gdl_code(self) -> str:
        return self.properties.gdl_code

    def to_feature(self) -> dict[str, Any]:
        return {
            "type": "Feature",
            "properties": self.properties.to_wire(),
            "geometry": self.geometry,
        }


@dataclass(frozen=True, slots=True)
class JoinReport:
    """Data-quality report. Derived once, never mutated."""

    matched: int
    geo_only: tuple[str, ...]
    csv_only: tuple[str, ...]
    match_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "geo_only": list(self.geo_only),
            "csv_only": list(self.csv_only),
            "match_rate": self.match_rate,
        }


@dataclass(frozen=True, slots=True)
class JoinResult:
    joined: tuple[JoinedRegion, ...]
    report: JoinReport


class MatchRateError(ValueError):
    """Raised when the join match rate falls below the configured minimum."""

    def __init__(self, match_rate: float, min_match_rate: float) -> None:
        self.match_rate = match_rate
        self.min_match_rate = min_match_rate
        super().__init__(
            f"Match rate {match_rate * 100:.1f}% is below minimum "
            f"{min_match_rate * 100:.1f}%"
        )


# ---------------------------------------------------------------------------
# Property builders
#
# Built with model_construct: the join is total over its features and must
# not fail on a raw identity block. Map-data loading validates a sample.
# ---------------------------------------------------------------------------

def derive_level(gdl_code: str) -> str:
    """National if the code ends with the literal "t", else subnational."""
    return LEVEL_NATIONAL if gdl_code.endswith(NATIONAL_CODE_SUFFIX) else LEVEL_SUBNATIONAL


def _matched_properties(record: RegionRecord, centroid: tuple[float, float]) -> RegionProperties:
    return RegionProperties.model_construct(
        gdl_code=record.gdl_code,
        name=record.name,
        country=record.country,
        country_iso=record.country_iso,
        level=record.level,
        year=record.year,
        hdi=record.hdi,
        education_index=record.education_index,
        health_index=record.health_index,
        income_index=record.income_index,
        centroid=centroid,
    )


def _fallback_properties(feature: GeoFeature, centroid: tuple[float, float]) -> RegionProperties:
    return RegionProperties.model_construct(
        gdl_code=feature.gdlcode,
        name=feature.gdlcode,
        country="",
        country_iso=feature.iso_code,
        level=derive_level(feature.gdlcode),
        year=0,
        hdi=None,
        education_index=None,
        health_index=None,
        income_index=None,
        centroid=centroid,
    )


# ---------------------------------------------------------------------------
# Join
# ---------------------------------------------------------------------------

def join_records_to_geometry(
    features: Sequence[GeoFeature],
    records: Iterable[RegionRecord],
    min_match_rate: float | None = None,
) -> JoinResult:
    """Join geometries to records by GDL code.

    Args:
        features: Region geometries with their raw identity.
        records: Deduplicated SHDI records.
        min_match_rate: Optional gate in [0, 1]. A computed rate strictly
            below it raises MatchRateError.

    Returns:
        JoinResult with one JoinedRegion per feature and a JoinReport.

    Raises:
        MatchRateError: if the match rate is below min_match_rate.
    """
    record_list = list(records)
    by_code: dict[str, RegionRecord] = {r.gdl_code: r for r in record_list}

    matched_codes: set[str] = set()
    matched = 0
    geo_only: list[str] = []
    joined: list[JoinedRegion] = []

    for feature in features:
        centroid = compute_centroid(feature.geometry)
        record = by_code.get(feature.gdlcode)

        if record is not None:
            matched += 1
            matched_codes.add(feature.gdlcode)
            properties = _matched_properties(record, centroid)
        else:
            geo_only.append(feature.gdlcode)
            properties = _fallback_properties(feature, centroid)

        joined.append(JoinedRegion(geometry=feature.geometry, properties=properties))

    csv_only = [r.gdl_code for r in record_list if r.gdl_code not in matched_codes]
    match_rate = matched / len(features) if features else 0.0

    report = JoinReport(
        matched=matched,
        geo_only=tuple(geo_only),
        csv_only=tuple(csv_only),
        match_rate=match_rate,
    )

    logger.info(json.dumps({
        "event": "join_report",
        "features": len(features),
        "matched": report.matched,
        "geo_only": len(report.geo_only),
        "csv_only": len(report.csv_only),
        "match_rate": round(report.match_rate, 4),
    }))

    if min_match_rate is not None and match_rate < min_match_rate:
        logger.error(json.dumps({
            "event": "join_below_threshold",
            "match_rate": round(match_rate, 4),
            "min_match_rate": min_match_rate,
        }))
        raise MatchRateError(match_rate, min_match_rate)

    return JoinResult(joined=tuple(joined), report=report)
