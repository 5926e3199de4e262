"""
indexatlas.registry — Static catalogue of the indices the atlas serves.

HDI is keyed by region code. WHR and OECD-BLI are keyed by country ISO-3:
every subnational region of a country shares the national figure. This
level mismatch is deliberate and consumers must preserve it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from indexatlas.classify import (
    HDI_BIN_DEFINITIONS,
    TEN_POINT_BIN_DEFINITIONS,
    BinDefinition,
    validate_bin_definitions,
)
from indexatlas.constants import (
    DEFAULT_INDEX_ID,
    DIMENSION_ID_TO_KEY,
    INDEX_HDI,
    INDEX_OECD_BLI,
    INDEX_WHR,
    VALUE_FILES,
    WEIGHTED_AVERAGE_DIMENSION_ID,
)

KEYED_BY_REGION = "region"
KEYED_BY_COUNTRY = "country"


@dataclass(frozen=True, slots=True)
class DimensionDefinition:
    id: str
    label: str


@dataclass(frozen=True, slots=True)
class IndexDefinition:
    id: str
    label: str
    data_file: str
    bin_definitions: tuple[BinDefinition, ...]
    legend_title: str
    attribution: str
    keyed_by: str
    dimensions: tuple[DimensionDefinition, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "dataFile": self.data_file,
            "legendTitle": self.legend_title,
            "attribution": self.attribution,
            "keyedBy": self.keyed_by,
            "binDefinitions": [d.to_dict() for d in self.bin_definitions],
            "dimensions": [{"id": d.id, "label": d.label} for d in self.dimensions],
        }


OECD_DIMENSIONS: tuple[DimensionDefinition, ...] = (
    DimensionDefinition(WEIGHTED_AVERAGE_DIMENSION_ID, "Weighted Average"),
    DimensionDefinition("income", "Income"),
    DimensionDefinition("jobs", "Jobs"),
    DimensionDefinition("housing", "Housing"),
    DimensionDefinition("education", "Education"),
    DimensionDefinition("health", "Health"),
    DimensionDefinition("environment", "Environment"),
    DimensionDefinition("safety", "Safety"),
    DimensionDefinition("civic-engagement", "Civic Engagement"),
    DimensionDefinition("accessibility-to-services", "Accessibility to Services"),
    DimensionDefinition("community", "Community"),
    DimensionDefinition("life-satisfaction", "Life Satisfaction"),
)

INDICES: tuple[IndexDefinition, ...] = (
    IndexDefinition(
        id=INDEX_HDI,
        label="Human Development Index",
        data_file=VALUE_FILES[INDEX_HDI],
        bin_definitions=HDI_BIN_DEFINITIONS,
        legend_title="Human Development Index",
        attribution="Global Data Lab, Subnational HDI v8.3",
        keyed_by=KEYED_BY_REGION,
    ),
    IndexDefinition(
        id=INDEX_WHR,
        label="World Happiness Report",
        data_file=VALUE_FILES[INDEX_WHR],
        bin_definitions=TEN_POINT_BIN_DEFINITIONS,
        legend_title="World Happiness Report",
        attribution="Helliwell et al. (2025), World Happiness Report 2025",
        keyed_by=KEYED_BY_COUNTRY,
    ),
    IndexDefinition(
        id=INDEX_OECD_BLI,
        label="OECD Better Life Index",
        data_file=VALUE_FILES[INDEX_OECD_BLI],
        bin_definitions=TEN_POINT_BIN_DEFINITIONS,
        legend_title="OECD Better Life Index",
        attribution="OECD Regional Well-Being, CC BY 4.0",
        keyed_by=KEYED_BY_COUNTRY,
        dimensions=OECD_DIMENSIONS,
    ),
)

for _index in INDICES:
    validate_bin_definitions(_index.bin_definitions)


def get_index_by_id(index_id: str) -> IndexDefinition:
    for index in INDICES:
        if index.id == index_id:
            return index
    raise KeyError(f"Unknown index id: '{index_id}'")


def get_default_index() -> IndexDefinition:
    return get_index_by_id(DEFAULT_INDEX_ID)


def dimension_key(dimension_id: str) -> str:
    """Kebab-case dimension id → OECD value-record key. KeyError if unknown."""
    try:
        return DIMENSION_ID_TO_KEY[dimension_id]
    except KeyError:
        raise KeyError(f"Unknown dimension id: '{dimension_id}'") from None
