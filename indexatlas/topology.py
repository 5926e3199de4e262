"""
indexatlas.topology — TopoJSON decoding and centroid computation.

Turns a TopoJSON Topology into GeoJSON geometries and GeoFeatures, and
computes a rounded representative centroid per geometry.

Design contract:
    - Decoding is pure. The input topology is never mutated.
    - Quantized topologies (with a ``transform``) are delta-decoded per arc;
      point coordinates are transformed but not delta-decoded.
    - A negative arc index ``~i`` means arc ``i`` traversed in reverse.
    - Consecutive arcs in a ring share an endpoint; it is emitted once.
    - Single-part centroids are planar (lon/lat) via shapely; multi-part
      centroids average part centroids on the sphere. Both are rounded to
      CENTROID_PRECISION. An empty geometry has centroid (0.0, 0.0).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from shapely.geometry import shape

from indexatlas.constants import CENTROID_PRECISION

Position = list[float]


# ---------------------------------------------------------------------------
# Arc decoding
# ---------------------------------------------------------------------------

def _transform_params(topology: dict[str, Any]) -> tuple[list[float], list[float]] | None:
    transform = topology.get("transform")
    if not transform:
        return None
    return list(transform["scale"]), list(transform["translate"])


def decode_arc(topology: dict[str, Any], index: int) -> list[Position]:
    """Return the absolute positions of one arc, reversed for ``~i``."""
    arcs = topology.get("arcs") or []
    raw = arcs[~index if index < 0 else index]
    params = _transform_params(topology)

    points: list[Position] = []
    if params is None:
        points = [list(p) for p in raw]
    else:
        (kx, ky), (dx, dy) = params
        x = y = 0
        for p in raw:
            x += p[0]
            y += p[1]
            points.append([x * kx + dx, y * ky + dy] + list(p[2:]))

    if index < 0:
        points.reverse()
    return points


def _decode_point(topology: dict[str, Any], position: list[float]) -> Position:
    params = _transform_params(topology)
    if params is None:
        return list(position)
    (kx, ky), (dx, dy) = params
    return [position[0] * kx + dx, position[1] * ky + dy] + list(position[2:])


def _stitch(topology: dict[str, Any], arc_indexes: list[int]) -> list[Position]:
    points: list[Position] = []
    for index in arc_indexes:
        arc_points = decode_arc(topology, index)
        if points:
            points.pop()
        points.extend(arc_points)
    return points


def _ring(topology: dict[str, Any], arc_indexes: list[int]) -> list[Position]:
    points = _stitch(topology, arc_indexes)
    while points and len(points) < 4:
        points.append(points[0])
    return points


# ---------------------------------------------------------------------------
# Geometry decoding
# ---------------------------------------------------------------------------

def geometry_to_geojson(topology: dict[str, Any], geometry: dict[str, Any]) -> dict[str, Any] | None:
    """Convert one TopoJSON geometry object to a GeoJSON geometry mapping.

    Returns None for null geometries (``type`` null or missing).
    """
    gtype = geometry.get("type")
    if gtype is None:
        return None

    if gtype == "GeometryCollection":
        return {
            "type": "GeometryCollection",
            "geometries": [
                g for g in (
                    geometry_to_geojson(topology, child)
                    for child in geometry.get("geometries", [])
                ) if g is not None
            ],
        }
    if gtype == "Point":
        return {"type": gtype, "coordinates": _decode_point(topology, geometry["coordinates"])}
    if gtype == "MultiPoint":
        return {
            "type": gtype,
            "coordinates": [_decode_point(topology, p) for p in geometry["coordinates"]],
        }

    arcs = geometry.get("arcs", [])
    if gtype == "LineString":
        coordinates: Any = _stitch(topology, arcs)
    elif gtype == "MultiLineString":
        coordinates = [_stitch(topology, line) for line in arcs]
    elif gtype == "Polygon":
        coordinates = [_ring(topology, ring) for ring in arcs]
    elif gtype == "MultiPolygon":
        coordinates = [[_ring(topology, ring) for ring in polygon] for polygon in arcs]
    else:
        raise ValueError(f"Unsupported TopoJSON geometry type: '{gtype}'")

    return {"type": gtype, "coordinates": coordinates}


def resolve_object_name(topology: dict[str, Any], object_name: str | None = None) -> str:
    """Return the named object, or the single/first top-level object name."""
    objects = topology.get("objects") or {}
    if not objects:
        raise ValueError("Topology has no objects")
    if object_name is None:
        return next(iter(objects))
    if object_name not in objects:
        raise KeyError(f"Topology has no object named '{object_name}'")
    return object_name


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GeoFeature:
    """A region geometry plus its raw identity block. Never mutated."""

    geometry: dict[str, Any] | None
    gdlcode: str
    continent: str = ""
    iso_code: str = ""

    @classmethod
    def from_geojson(cls, feature: dict[str, Any]) -> GeoFeature:
        """Build from a GeoJSON Feature (raw properties gdlcode/continent/iso_code)."""
        props = feature.get("properties") or {}
        return cls(
            geometry=feature.get("geometry"),
            gdlcode=str(props.get("gdlcode") or props.get("GDLcode") or ""),
            continent=str(props.get("continent") or ""),
            iso_code=str(props.get("iso_code") or ""),
        )


def topology_to_geojson_features(
    topology: dict[str, Any],
    object_name: str | None = None,
) -> list[dict[str, Any]]:
    """Decode one top-level object into GeoJSON Feature mappings.

    A GeometryCollection yields one feature per member geometry; any other
    object yields a single feature. Properties are copied, not shared.
    """
    name = resolve_object_name(topology, object_name)
    obj = topology["objects"][name]
    members = obj.get("geometries", []) if obj.get("type") == "GeometryCollection" else [obj]
    return [
        {
            "type": "Feature",
            "properties": dict(member.get("properties") or {}),
            "geometry": geometry_to_geojson(topology, member),
        }
        for member in members
    ]


def topology_to_features(
    topology: dict[str, Any],
    object_name: str | None = None,
) -> list[GeoFeature]:
    """Decode the named (or first) object into GeoFeatures, in order."""
    return [
        GeoFeature.from_geojson(f)
        for f in topology_to_geojson_features(topology, object_name)
    ]


# ---------------------------------------------------------------------------
# Centroid
# ---------------------------------------------------------------------------

def _spherical_mean(parts: list[Any]) -> tuple[float, float]:
    """Weighted mean of part centroids as unit vectors on the sphere.

    Each part is weighted by its planar area scaled by cos(latitude). A
    region split at the antimeridian averages to a longitude near ±180.
    """
    x = y = z = 0.0
    for part in parts:
        c = part.centroid
        lon, lat = math.radians(c.x), math.radians(c.y)
        weight = (part.area or 1.0) * math.cos(lat)
        x += weight * math.cos(lat) * math.cos(lon)
        y += weight * math.cos(lat) * math.sin(lon)
        z += weight * math.sin(lat)
    return (
        math.degrees(math.atan2(y, x)),
        math.degrees(math.atan2(z, math.hypot(x, y))),
    )


def compute_centroid(geometry: dict[str, Any] | None) -> tuple[float, float]:
    """Centroid (lon, lat) of a GeoJSON geometry, rounded to 3 decimals.

    A single part uses its planar centroid. Multi-part geometries combine
    their part centroids on the sphere.
    """
    if not geometry:
        return (0.0, 0.0)
    geom = shape(geometry)
    if geom.is_empty:
        return (0.0, 0.0)
    parts = [g for g in getattr(geom, "geoms", [geom]) if not g.is_empty]
    if len(parts) == 1:
        lon, lat = parts[0].centroid.x, parts[0].centroid.y
    else:
        lon, lat = _spherical_mean(parts)
    return (
        round(lon, CENTROID_PRECISION),
        round(lat, CENTROID_PRECISION),
    )
