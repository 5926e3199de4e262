"""
indexatlas.map_data — Load the published regions document.

The regions document is a TopoJSON Topology with a single ``regions``
GeometryCollection whose members carry RegionProperties. Loading decodes
every member to a GeoJSON Feature, applies the supplement table, and
validates the properties of the first SAMPLE_VALIDATION_SIZE features.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from indexatlas.constants import REGIONS_OBJECT, SAMPLE_VALIDATION_SIZE
from indexatlas.schemas import RegionProperties
from indexatlas.search import SearchableRegion
from indexatlas.supplements import REGION_SUPPLEMENTS, RegionSupplement, find_supplement
from indexatlas.topology import topology_to_geojson_features

logger = logging.getLogger("indexatlas.map_data")


class MapDataError(ValueError):
    """The regions document is structurally invalid."""


@dataclass(frozen=True, slots=True)
class MapData:
    regions: tuple[dict[str, Any], ...]

    def searchable_regions(self) -> list[SearchableRegion]:
        out: list[SearchableRegion] = []
        for feature in self.regions:
            props = feature.get("properties") or {}
            out.append(SearchableRegion(
                gdl_code=str(props.get("gdlCode", "")),
                name=str(props.get("name", "")),
                country=str(props.get("country", "")),
            ))
        return out


def _check_structure(document: Any) -> None:
    if not isinstance(document, dict) or document.get("type") != "Topology":
        raise MapDataError("Invalid map data: expected a TopoJSON Topology")
    objects = document.get("objects")
    if not isinstance(objects, dict) or REGIONS_OBJECT not in objects:
        raise MapDataError(f'Invalid map data: missing "{REGIONS_OBJECT}" object in topology')


def _validate_sample(features: list[dict[str, Any]]) -> None:
    for feature in features[:SAMPLE_VALIDATION_SIZE]:
        try:
            RegionProperties.model_validate(feature.get("properties") or {})
        except ValidationError as exc:
            raise MapDataError(
                f"Invalid region properties for feature: {exc.errors(include_url=False)}"
            ) from exc


def load_map_data(
    document: Any,
    supplements: tuple[RegionSupplement, ...] = REGION_SUPPLEMENTS,
) -> MapData:
    """Decode, supplement and sample-validate a regions document.

    Raises:
        MapDataError: not a Topology, no ``regions`` object, an undecodable
            geometry, or a sampled feature with invalid properties.
    """
    _check_structure(document)
    try:
        features = topology_to_geojson_features(document, REGIONS_OBJECT)
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise MapDataError(f"Invalid map data: cannot decode regions ({exc})") from exc

    for feature in features:
        supplement = find_supplement(str(feature["properties"].get("gdlCode", "")), supplements)
        if supplement is not None:
            feature["properties"] = supplement.properties.to_wire()

    _validate_sample(features)

    logger.info(json.dumps({"event": "map_data_loaded", "regions": len(features)}))
    return MapData(regions=tuple(features))


def load_map_data_file(path: Path) -> MapData:
    with open(path, encoding="utf-8") as fh:
        return load_map_data(json.load(fh))
