"""
indexatlas.build_pipeline — Raw sources → published artifacts.

Usage:
    python -m indexatlas.build_pipeline
    python -m indexatlas.build_pipeline --data-dir data/raw --output-dir data/public
    python -m indexatlas.build_pipeline --min-match-rate 0.9 --json

Phases:
    1. Parse the SHDI CSV (latest year per region).
    2. Decode the boundary topology and join it to the records.
       A match rate below the configured minimum aborts the build.
    3. Write regions.topo.json: arcs and transform preserved, one
       ``regions`` GeometryCollection carrying identity properties.
       Index values live in the value stores, not in the topology.
    4. Write hdi-values.json.
    5. WHR and OECD-BLI, each guarded: a missing or malformed workbook or
       mapping table is logged as skipped and the build continues.
    6. Write MANIFEST.json last.

Hard constraints:
    - All JSON written with sort_keys=True, UTF-8.
    - Every value store is schema-validated before it is written.

Exit codes:
    0  success
    1  required input missing (SHDI CSV or topology)
    2  join match rate below minimum
    3  value store failed schema validation
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from indexatlas.config import Settings
from indexatlas.constants import (
    INDEX_HDI,
    INDEX_OECD_BLI,
    INDEX_WHR,
    REGIONS_FILE,
    REGIONS_OBJECT,
    VALUE_FILES,
)
from indexatlas.country_mapping import OECD_MAPPING, WHR_MAPPING, load_country_mapping
from indexatlas.extractors import extract_hdi_values, extract_oecd_values, extract_whr_values
from indexatlas.join import JoinedRegion, JoinReport, MatchRateError, join_records_to_geometry
from indexatlas.manifest import write_manifest
from indexatlas.spreadsheets import read_oecd_rows, read_whr_rows
from indexatlas.supplements import supplement_hdi_values
from indexatlas.tabular import parse_shdi_csv
from indexatlas.topology import resolve_object_name, topology_to_features

logger = logging.getLogger("indexatlas.build")

EXIT_OK = 0
EXIT_MISSING_INPUT = 1
EXIT_JOIN_FAILURE = 2
EXIT_SCHEMA_FAILURE = 3

_IDENTITY_FIELDS = {"gdl_code", "name", "country", "country_iso", "level", "centroid"}


class MissingInputError(FileNotFoundError):
    """A required raw input is not on disk."""


@dataclass
class BuildSummary:
    records: int = 0
    features: int = 0
    join_report: JoinReport | None = None
    artifacts: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": self.records,
            "features": self.features,
            "join_report": self.join_report.to_dict() if self.join_report else None,
            "artifacts": dict(self.artifacts),
            "skipped": dict(self.skipped),
        }


# ---------------------------------------------------------------------------
# I/O helpers
# ---------------------------------------------------------------------------

def write_canonical_json(filepath: Path, data: object, *, compact: bool = False) -> int:
    """Write JSON with sorted keys, UTF-8, trailing newline. Returns entry count."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    if compact:
        content = json.dumps(data, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    else:
        content = json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True)
    with open(filepath, "w", encoding="utf-8") as fh:
        fh.write(content + "\n")
    return len(data) if isinstance(data, dict) else 0


def _require(path: Path) -> Path:
    if not path.is_file():
        raise MissingInputError(f"Required input not found: {path}")
    return path


def _event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    logger.log(level, json.dumps({"event": event, **fields}))


# ---------------------------------------------------------------------------
# Regions document
# ---------------------------------------------------------------------------

def build_regions_topology(
    topology: dict[str, Any],
    object_name: str,
    joined: tuple[JoinedRegion, ...],
) -> dict[str, Any]:
    """Re-emit the source topology with joined identity properties.

    ``joined`` must be in the same order as the object's geometries.
    """
    obj = topology["objects"][object_name]
    members = obj.get("geometries", []) if obj.get("type") == "GeometryCollection" else [obj]

    geometries = []
    for member, region in zip(members, joined, strict=True):
        props = region.properties.model_dump(by_alias=True, include=_IDENTITY_FIELDS)
        props["centroid"] = list(region.properties.centroid)
        geometries.append({**member, "properties": props})

    out: dict[str, Any] = {
        "type": "Topology",
        "arcs": topology.get("arcs", []),
        "objects": {
            REGIONS_OBJECT: {"type": "GeometryCollection", "geometries": geometries},
        },
    }
    if topology.get("transform"):
        out["transform"] = topology["transform"]
    if topology.get("bbox"):
        out["bbox"] = topology["bbox"]
    return out


# ---------------------------------------------------------------------------
# Optional sources
# ---------------------------------------------------------------------------

def _build_whr(settings: Settings) -> dict[str, dict[str, Any]]:
    rows = read_whr_rows(settings.data_dir / settings.whr_workbook)
    return extract_whr_values(rows, load_country_mapping(WHR_MAPPING))


def _build_oecd(settings: Settings) -> dict[str, dict[str, Any]]:
    rows = read_oecd_rows(settings.data_dir / settings.oecd_workbook)
    return extract_oecd_values(rows, load_country_mapping(OECD_MAPPING))


def _optional_step(
    index_id: str,
    build: Callable[[Settings], dict[str, dict[str, Any]]],
    settings: Settings,
    summary: BuildSummary,
) -> None:
    try:
        values = build(settings)
    except Exception as exc:
        # Any failure in an optional source skips it like a missing one.
        reason = f"{type(exc).__name__}: {exc}"
        summary.skipped[index_id] = reason
        _event("source_skipped", logging.WARNING, index_id=index_id, reason=reason)
        return

    path = settings.output_dir / VALUE_FILES[index_id]
    summary.artifacts[path.name] = write_canonical_json(path, values)
    _event("artifact_written", path=path.name, entries=len(values))


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_build(settings: Settings, *, supplement_values: bool = False) -> BuildSummary:
    """Run every phase. Returns a summary; raises on fatal failures.

    Raises:
        MissingInputError: SHDI CSV or topology missing.
        MatchRateError: join below ``settings.min_match_rate``.
        pydantic.ValidationError: the HDI value store failed validation.
    """
    summary = BuildSummary()
    _event("build_started", data_dir=str(settings.data_dir), output_dir=str(settings.output_dir))

    # Phase 1
    csv_path = _require(settings.data_dir / settings.shdi_csv)
    records = parse_shdi_csv(csv_path.read_text(encoding="utf-8"))
    summary.records = len(records)
    _event("shdi_parsed", records=len(records))

    # Phase 2
    topo_path = _require(settings.data_dir / settings.topology_file)
    with open(topo_path, encoding="utf-8") as fh:
        topology = json.load(fh)
    object_name = resolve_object_name(topology)
    features = topology_to_features(topology, object_name)
    summary.features = len(features)
    _event("topology_decoded", object=object_name, features=len(features))

    result = join_records_to_geometry(features, records, settings.min_match_rate)
    summary.join_report = result.report

    # Phase 3
    regions_path = settings.output_dir / REGIONS_FILE
    write_canonical_json(
        regions_path,
        build_regions_topology(topology, object_name, result.joined),
        compact=True,
    )
    summary.artifacts[REGIONS_FILE] = len(result.joined)
    _event("artifact_written", path=REGIONS_FILE, entries=len(result.joined))

    # Phase 4
    hdi_values = extract_hdi_values(records)
    if supplement_values:
        hdi_values = supplement_hdi_values(hdi_values)
    hdi_path = settings.output_dir / VALUE_FILES[INDEX_HDI]
    summary.artifacts[hdi_path.name] = write_canonical_json(hdi_path, hdi_values)
    _event("artifact_written", path=hdi_path.name, entries=len(hdi_values))

    # Phase 5
    _optional_step(INDEX_WHR, _build_whr, settings, summary)
    _optional_step(INDEX_OECD_BLI, _build_oecd, settings, summary)

    # Phase 6
    manifest_path = write_manifest(settings.output_dir)
    _event("manifest_written", path=manifest_path.name, files=len(summary.artifacts))

    _event("build_completed", artifacts=sorted(summary.artifacts), skipped=sorted(summary.skipped))
    return summary


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="indexatlas build — raw survey data to map-ready value stores.",
    )
    parser.add_argument("--data-dir", type=Path, help="Raw input directory")
    parser.add_argument("--output-dir", type=Path, help="Artifact output directory")
    parser.add_argument("--min-match-rate", type=float, help="Join gate in [0, 1]")
    parser.add_argument(
        "--supplement-values", action="store_true",
        help="Add curated HDI values for supplemented regions to hdi-values.json",
    )
    parser.add_argument("--json", action="store_true", help="Print the build summary as JSON")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = _parse_args(argv)
    settings = Settings.from_env()

    overrides: dict[str, Any] = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir
    if args.output_dir is not None:
        overrides["output_dir"] = args.output_dir
    if args.min_match_rate is not None:
        if not 0.0 <= args.min_match_rate <= 1.0:
            print("FATAL: --min-match-rate must be within [0, 1]", file=sys.stderr)
            return EXIT_MISSING_INPUT
        overrides["min_match_rate"] = args.min_match_rate
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    logging.basicConfig(
        level=logging.DEBUG if settings.is_dev else logging.INFO,
        format="%(message)s",
    )

    try:
        summary = run_build(settings, supplement_values=args.supplement_values)
    except MissingInputError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return EXIT_MISSING_INPUT
    except MatchRateError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return EXIT_JOIN_FAILURE
    except ValidationError as exc:
        print(f"FATAL: value store failed validation: {exc}", file=sys.stderr)
        return EXIT_SCHEMA_FAILURE

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
