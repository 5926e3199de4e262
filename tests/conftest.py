"""
Shared fixtures: minimal SHDI CSV text, boundary topologies and regions documents built in-test.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

SHDI_HEADER = "iso_code,country,year,gdlcode,level,region,shdi,healthindex,incindex,edindex"


def shdi_row(
    code: str,
    year: int,
    hdi: str = "0.8",
    *,
    iso: str = "GBR",
    country: str = "United Kingdom",
    level: str = "Subnat",
    region: str | None = None,
) -> str:
    return ",".join([
        iso, country, str(year), code, level, region or f"Region {code}",
        hdi, "0.9", "0.85", "0.7",
    ])


def square_topology(
    codes: list[str],
    *,
    iso_codes: list[str] | None = None,
    object_name: str = "gdl",
) -> dict[str, Any]:
    """One unit square per code, laid out along the x axis.

    Square i spans [2i, 2i+1] x [0, 1], so its centroid is (2i + 0.5, 0.5).
    """
    arcs = []
    geometries = []
    for i, code in enumerate(codes):
        x = 2 * i
        arcs.append([[x, 0], [x + 1, 0], [x + 1, 1], [x, 1], [x, 0]])
        geometries.append({
            "type": "Polygon",
            "arcs": [[i]],
            "properties": {
                "gdlcode": code,
                "continent": "Europe",
                "iso_code": (iso_codes[i] if iso_codes else code[:3]),
            },
        })
    return {
        "type": "Topology",
        "arcs": arcs,
        "objects": {object_name: {"type": "GeometryCollection", "geometries": geometries}},
    }


@pytest.fixture
def make_topology() -> Callable[..., dict[str, Any]]:
    return square_topology


@pytest.fixture
def make_shdi_csv() -> Callable[..., str]:
    def _make(rows: list[str]) -> str:
        return "\n".join([SHDI_HEADER, *rows]) + "\n"
    return _make


@pytest.fixture
def make_shdi_row() -> Callable[..., str]:
    return shdi_row


def regions_document(
    codes: list[str],
    *,
    iso_codes: list[str] | None = None,
    country: str = "Testland",
) -> dict[str, Any]:
    """A published regions document: square geometries with wire properties."""
    topo = square_topology(codes, iso_codes=iso_codes, object_name="regions")
    for i, geom in enumerate(topo["objects"]["regions"]["geometries"]):
        geom["properties"] = {
            "gdlCode": codes[i],
            "name": f"Region {codes[i]}",
            "country": country,
            "countryIso": (iso_codes[i] if iso_codes else codes[i][:3]),
            "level": "subnational",
            "centroid": [2 * i + 0.5, 0.5],
        }
    return topo


@pytest.fixture
def make_regions_document() -> Callable[..., dict[str, Any]]:
    return regions_document
