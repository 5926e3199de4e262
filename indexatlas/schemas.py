"""
indexatlas.schemas — Pydantic contracts for every persisted artifact.

One explicit model per index value record. The three indices evolved
independently and have different null policies, so they do NOT share a
generic "record of optionals":

    HdiRegionValue       — keyed by region (GDL) code, values in [0, 1]
    WhrCountryValue      — keyed by ISO-3, score in [0, 10], sub-factors unbounded
    OecdBliCountryValue  — keyed by ISO-3, 11 dimensions in [0, 10]

Wire format is camelCase (what the presentation layer reads). Python
attributes are snake_case; models accept either on input.

Validation is strict: an out-of-range value is an error, never coerced.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator
from pydantic.alias_generators import to_camel

from indexatlas.constants import INDEX_HDI, INDEX_OECD_BLI, INDEX_WHR

UnitScore = Optional[Annotated[float, Field(ge=0.0, le=1.0, allow_inf_nan=False)]]
TenScore = Optional[Annotated[float, Field(ge=0.0, le=10.0, allow_inf_nan=False)]]
FiniteOrNull = Optional[Annotated[float, Field(allow_inf_nan=False)]]


class _ValueRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict for JSON output."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Index value records
# ---------------------------------------------------------------------------

class HdiRegionValue(_ValueRecord):
    hdi: UnitScore
    education_index: UnitScore
    health_index: UnitScore
    income_index: UnitScore
    year: int


class WhrCountryValue(_ValueRecord):
    score: TenScore
    gdp_per_capita: FiniteOrNull
    social_support: FiniteOrNull
    life_expectancy: FiniteOrNull
    freedom: FiniteOrNull
    generosity: FiniteOrNull
    corruption: FiniteOrNull
    year: int


class OecdBliCountryValue(_ValueRecord):
    income: TenScore
    jobs: TenScore
    housing: TenScore
    education: TenScore
    health: TenScore
    environment: TenScore
    safety: TenScore
    civic_engagement: TenScore
    access_to_services: TenScore
    community: TenScore
    life_satisfaction: TenScore


class HdiValues(RootModel[dict[str, HdiRegionValue]]):
    pass


class WhrValues(RootModel[dict[str, WhrCountryValue]]):
    pass


class OecdBliValues(RootModel[dict[str, OecdBliCountryValue]]):
    pass


VALUE_SCHEMAS: dict[str, type[RootModel]] = {
    INDEX_HDI: HdiValues,
    INDEX_WHR: WhrValues,
    INDEX_OECD_BLI: OecdBliValues,
}


def get_value_schema(index_id: str) -> type[RootModel]:
    """Schema for an index's value store. Raises KeyError on unknown id."""
    try:
        return VALUE_SCHEMAS[index_id]
    except KeyError:
        raise KeyError(f"Unknown index id: '{index_id}'") from None


def validate_value_store(index_id: str, data: Any) -> dict[str, dict[str, Any]]:
    """Validate a raw value store and return it in wire (camelCase) form.

    Raises pydantic.ValidationError on any shape or range violation.
    """
    parsed = get_value_schema(index_id).model_validate(data)
    return {code: value.to_wire() for code, value in parsed.root.items()}


# ---------------------------------------------------------------------------
# Region properties (joined geometry document)
# ---------------------------------------------------------------------------

class RegionProperties(BaseModel):
    """Properties attached to one region geometry.

    Identity fields are required. Year and index values are optional so
    that a supplement override, which replaces properties wholesale, can
    leave them absent. Serialize with ``to_wire()`` to keep absent fields
    absent.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    gdl_code: str
    name: str
    country: str
    country_iso: str = Field(min_length=3, max_length=3)
    level: Literal["national", "subnational"]
    year: Optional[int] = None
    hdi: UnitScore = None
    education_index: UnitScore = None
    health_index: UnitScore = None
    income_index: UnitScore = None
    centroid: tuple[float, float]

    @field_validator("centroid")
    @classmethod
    def _finite_centroid(cls, v: tuple[float, float]) -> tuple[float, float]:
        if any(math.isnan(c) or math.isinf(c) for c in v):
            raise ValueError("centroid must be finite")
        return v

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_unset=True)
        data["centroid"] = list(self.centroid)
        return data
