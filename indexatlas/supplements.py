"""
indexatlas.supplements — Curated overrides for regions the primary source misses.

Three regions are known to be null or zero in the SHDI release even though
real-world figures exist from a named secondary source. Each supplement
carries the corrected identity, an optional corrected HDI record, and the
provenance string shown to users.

Design contract:
    - The table is static and ordered.
    - Application REPLACES a matched region's properties entirely. No field
      merge: anything the override omits is absent downstream.
    - Application is pure. Inputs are never mutated; a new list is returned.
    - get_region_source() returns DEFAULT_SOURCE for non-supplemented codes.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from indexatlas.constants import DEFAULT_SOURCE, LEVEL_NATIONAL
from indexatlas.join import JoinedRegion
from indexatlas.schemas import HdiRegionValue, RegionProperties


@dataclass(frozen=True, slots=True)
class RegionSupplement:
    gdl_code: str
    properties: RegionProperties
    source: str
    hdi_value: HdiRegionValue | None = None


def _national(gdl_code: str, name: str, iso: str, centroid: tuple[float, float]) -> RegionProperties:
    return RegionProperties(
        gdl_code=gdl_code,
        name=name,
        country=name,
        country_iso=iso,
        level=LEVEL_NATIONAL,
        centroid=centroid,
    )


def _hdi(hdi: float, year: int) -> HdiRegionValue:
    return HdiRegionValue(
        hdi=hdi,
        education_index=None,
        health_index=None,
        income_index=None,
        year=year,
    )


REGION_SUPPLEMENTS: tuple[RegionSupplement, ...] = (
    RegionSupplement(
        gdl_code="CHNr133",
        properties=_national("CHNr133", "Taiwan", "TWN", (120.960, 23.697)),
        source="DGBAS (Taiwan)",
        hdi_value=_hdi(0.926, 2021),
    ),
    RegionSupplement(
        gdl_code="CHNr132",
        properties=_national("CHNr132", "Hong Kong", "HKG", (114.134, 22.384)),
        source="UNDP HDR",
        hdi_value=_hdi(0.956, 2022),
    ),
    RegionSupplement(
        gdl_code="SMRt",
        properties=_national("SMRt", "San Marino", "SMR", (12.461, 43.939)),
        source="UNDP HDR",
        hdi_value=_hdi(0.915, 2022),
    ),
)


def find_supplement(
    gdl_code: str,
    supplements: Sequence[RegionSupplement] = REGION_SUPPLEMENTS,
) -> RegionSupplement | None:
    """First supplement for ``gdl_code``, or None."""
    for supplement in supplements:
        if supplement.gdl_code == gdl_code:
            return supplement
    return None


def apply_supplements(
    regions: Iterable[JoinedRegion],
    supplements: Sequence[RegionSupplement] = REGION_SUPPLEMENTS,
) -> list[JoinedRegion]:
    """Return regions with supplemented properties replaced wholesale."""
    out: list[JoinedRegion] = []
    for region in regions:
        supplement = find_supplement(region.gdl_code, supplements)
        if supplement is None:
            out.append(region)
        else:
            out.append(dataclasses.replace(region, properties=supplement.properties))
    return out


def get_region_source(
    gdl_code: str,
    supplements: Sequence[RegionSupplement] = REGION_SUPPLEMENTS,
) -> str:
    supplement = find_supplement(gdl_code, supplements)
    return supplement.source if supplement is not None else DEFAULT_SOURCE


def supplement_hdi_values(
    values: Mapping[str, Mapping[str, Any]],
    supplements: Sequence[RegionSupplement] = REGION_SUPPLEMENTS,
) -> dict[str, dict[str, Any]]:
    """Add each supplement's corrected HDI record to a wire-form HDI store.

    Existing entries for a supplemented code are replaced, not merged.
    Supplements without a value record leave the store untouched.
    """
    out = {code: dict(record) for code, record in values.items()}
    for supplement in supplements:
        if supplement.hdi_value is not None:
            out[supplement.gdl_code] = supplement.hdi_value.to_wire()
    return out
