"""
tests/test_build_pipeline.py — End-to-end build, CLI exit codes and the integrity manifest.

Every test builds its raw inputs in tmp_path; nothing reads the real data/ tree.

Requires: pytest, openpyxl, shapely, pydantic
"""

from __future__ import annotations

import json
import zipfile
from pathlib import Path

import openpyxl
import pytest

from indexatlas.build_pipeline import (
    EXIT_JOIN_FAILURE,
    EXIT_MISSING_INPUT,
    EXIT_OK,
    MissingInputError,
    main,
    run_build,
    write_canonical_json,
)
from indexatlas.config import Settings
from indexatlas.join import MatchRateError
from indexatlas.manifest import generate_manifest, verify_manifest, write_manifest
from indexatlas.map_data import load_map_data_file
from indexatlas.value_loader import ValueLoader


CODES = ["GBRr101", "GBRr102", "GBRt"]


@pytest.fixture
def raw_dir(tmp_path: Path, make_shdi_csv, make_shdi_row, make_topology) -> Path:
    raw = tmp_path / "raw"
    raw.mkdir()
    settings = Settings()
    rows = [
        make_shdi_row("GBRr101", 2021, "0.91"),
        make_shdi_row("GBRr101", 2022, "0.93"),
        make_shdi_row("GBRr102", 2022, "0.90", region="Yorkshire"),
        make_shdi_row("GBRt", 2022, "0.94", level="National", region="Total"),
        make_shdi_row("FRAr101", 2022, "", iso="FRA", country="France"),
    ]
    (raw / settings.shdi_csv).write_text(make_shdi_csv(rows), encoding="utf-8")
    (raw / settings.topology_file).write_text(json.dumps(make_topology(CODES)), encoding="utf-8")
    return raw


def _settings(raw: Path, out: Path, min_match_rate: float | None = 0.95) -> Settings:
    return Settings(data_dir=raw, output_dir=out, min_match_rate=min_match_rate)


def _write_whr_workbook(path: Path) -> None:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.append(["Year", "Country name", "Life evaluation (3-year average)",
               "Explained by: Log GDP per capita"])
    ws.append([2023, "Finland", 7.7, 1.7])
    ws.append([2024, "Finland", 7.74, 1.75])
    ws.append([2024, "North Cyprus", 5.9, 1.5])
    wb.save(path)


def _write_workbook_with_broken_xml(path: Path) -> None:
    source = path.with_suffix(".src.xlsx")
    _write_whr_workbook(source)
    with zipfile.ZipFile(source) as src, zipfile.ZipFile(path, "w") as dst:
        for item in src.infolist():
            data = src.read(item.filename)
            if item.filename == "xl/workbook.xml":
                data = data[:40]
            dst.writestr(item, data)
    source.unlink()


# ---------------------------------------------------------------------------
# run_build
# ---------------------------------------------------------------------------

class TestRunBuild:

    def test_writes_artifacts_and_skips_missing_workbooks(self, raw_dir: Path, tmp_path: Path):
        out = tmp_path / "public"
        summary = run_build(_settings(raw_dir, out))

        assert summary.records == 4
        assert summary.features == 3
        assert summary.join_report.matched == 3
        assert summary.join_report.csv_only == ("FRAr101",)
        assert summary.artifacts == {"regions.topo.json": 3, "hdi-values.json": 3}
        assert set(summary.skipped) == {"whr", "oecd-bli"}
        assert sorted(p.name for p in out.iterdir()) == [
            "MANIFEST.json", "hdi-values.json", "regions.topo.json",
        ]

    def test_hdi_store_contents(self, raw_dir: Path, tmp_path: Path):
        out = tmp_path / "public"
        run_build(_settings(raw_dir, out))
        values = json.loads((out / "hdi-values.json").read_text(encoding="utf-8"))
        assert values["GBRr101"]["hdi"] == 0.93
        assert values["GBRr101"]["year"] == 2022
        assert "FRAr101" not in values

    def test_regions_document_round_trips_through_map_loader(self, raw_dir: Path, tmp_path: Path):
        out = tmp_path / "public"
        run_build(_settings(raw_dir, out))

        doc = json.loads((out / "regions.topo.json").read_text(encoding="utf-8"))
        assert doc["type"] == "Topology"
        assert list(doc["objects"]) == ["regions"]
        props = doc["objects"]["regions"]["geometries"][1]["properties"]
        assert props == {
            "gdlCode": "GBRr102",
            "name": "Yorkshire",
            "country": "United Kingdom",
            "countryIso": "GBR",
            "level": "subnational",
            "centroid": [2.5, 0.5],
        }

        data = load_map_data_file(out / "regions.topo.json")
        assert [r.gdl_code for r in data.searchable_regions()] == CODES

    def test_outputs_readable_by_value_loader(self, raw_dir: Path, tmp_path: Path):
        out = tmp_path / "public"
        run_build(_settings(raw_dir, out))
        assert ValueLoader(data_dir=out).load_values("hdi")["GBRt"]["hdi"] == 0.94

    def test_supplement_values_flag(self, raw_dir: Path, tmp_path: Path):
        out = tmp_path / "public"
        run_build(_settings(raw_dir, out), supplement_values=True)
        values = json.loads((out / "hdi-values.json").read_text(encoding="utf-8"))
        assert values["CHNr133"]["hdi"] == 0.926
        assert values["SMRt"]["year"] == 2022

    def test_whr_workbook_is_built_when_present(self, raw_dir: Path, tmp_path: Path):
        _write_whr_workbook(raw_dir / Settings().whr_workbook)
        out = tmp_path / "public"
        summary = run_build(_settings(raw_dir, out))
        assert "whr" not in summary.skipped
        assert summary.artifacts["whr-values.json"] == 1
        whr = json.loads((out / "whr-values.json").read_text(encoding="utf-8"))
        assert whr["FIN"]["score"] == 7.74
        assert whr["FIN"]["gdpPerCapita"] == 1.75

    def test_corrupt_workbook_is_skipped(self, raw_dir: Path, tmp_path: Path):
        (raw_dir / Settings().oecd_workbook).write_bytes(b"not a zip file")
        summary = run_build(_settings(raw_dir, tmp_path / "public"))
        assert "oecd-bli" in summary.skipped

    def test_workbook_with_broken_xml_is_skipped(self, raw_dir: Path, tmp_path: Path):
        _write_workbook_with_broken_xml(raw_dir / Settings().whr_workbook)
        out = tmp_path / "public"
        summary = run_build(_settings(raw_dir, out))
        assert "whr" in summary.skipped
        assert not (out / "whr-values.json").exists()
        assert (out / "MANIFEST.json").is_file()
        assert verify_manifest(out)["verified"] is True

    def test_match_rate_gate(self, raw_dir: Path, tmp_path: Path, make_topology):
        settings = Settings()
        extra = make_topology(CODES + ["XXXr1"])
        (raw_dir / settings.topology_file).write_text(json.dumps(extra), encoding="utf-8")
        out = tmp_path / "public"
        with pytest.raises(MatchRateError):
            run_build(_settings(raw_dir, out, min_match_rate=0.9))
        assert not (out / "regions.topo.json").exists()

        summary = run_build(_settings(raw_dir, out, min_match_rate=None))
        assert summary.join_report.geo_only == ("XXXr1",)

    def test_missing_input(self, tmp_path: Path):
        with pytest.raises(MissingInputError):
            run_build(_settings(tmp_path, tmp_path / "public"))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestMain:

    def test_success(self, raw_dir: Path, tmp_path: Path, capsys):
        out = tmp_path / "public"
        code = main(["--data-dir", str(raw_dir), "--output-dir", str(out), "--json"])
        assert code == EXIT_OK
        summary = json.loads(capsys.readouterr().out)
        assert summary["join_report"]["matched"] == 3
        assert summary["artifacts"]["hdi-values.json"] == 3

    def test_missing_input_exit_code(self, tmp_path: Path, capsys):
        code = main(["--data-dir", str(tmp_path / "nope"), "--output-dir", str(tmp_path / "out")])
        assert code == EXIT_MISSING_INPUT
        assert "Required input not found" in capsys.readouterr().err

    def test_join_failure_exit_code(self, raw_dir: Path, tmp_path: Path, capsys, make_topology):
        topo = make_topology(["AAAr1", "BBBr1", "GBRt"])
        (raw_dir / Settings().topology_file).write_text(json.dumps(topo), encoding="utf-8")
        code = main([
            "--data-dir", str(raw_dir), "--output-dir", str(tmp_path / "out"),
            "--min-match-rate", "0.5",
        ])
        assert code == EXIT_JOIN_FAILURE
        assert "33.3%" in capsys.readouterr().err

    def test_invalid_min_match_rate(self, raw_dir: Path, tmp_path: Path):
        code = main(["--data-dir", str(raw_dir), "--output-dir", str(tmp_path), "--min-match-rate", "2"])
        assert code == EXIT_MISSING_INPUT


# ---------------------------------------------------------------------------
# Canonical JSON and manifest
# ---------------------------------------------------------------------------

class TestCanonicalJson:

    def test_sorted_utf8_trailing_newline(self, tmp_path: Path):
        path = tmp_path / "nested" / "x.json"
        count = write_canonical_json(path, {"b": 1, "a": "Île"})
        text = path.read_text(encoding="utf-8")
        assert count == 2
        assert text.index('"a"') < text.index('"b"')
        assert "Île" in text
        assert text.endswith("\n")

    def test_compact(self, tmp_path: Path):
        path = tmp_path / "c.json"
        write_canonical_json(path, {"a": [1, 2]}, compact=True)
        assert path.read_text(encoding="utf-8") == '{"a":[1,2]}\n'

    def test_deterministic(self, tmp_path: Path):
        data = {"z": {"y": 1, "x": 2}, "a": None}
        write_canonical_json(tmp_path / "1.json", data)
        write_canonical_json(tmp_path / "2.json", dict(reversed(list(data.items()))))
        assert (tmp_path / "1.json").read_bytes() == (tmp_path / "2.json").read_bytes()


class TestManifest:

    def _populate(self, out: Path) -> None:
        write_canonical_json(out / "hdi-values.json", {"A": {}})
        write_canonical_json(out / "regions.topo.json", {"type": "Topology"})

    def test_generate_lists_sorted_files(self, tmp_path: Path):
        self._populate(tmp_path)
        manifest = generate_manifest(tmp_path)
        assert [f["path"] for f in manifest["files"]] == ["hdi-values.json", "regions.topo.json"]
        assert manifest["file_count"] == 2
        assert all(len(f["sha256"]) == 64 for f in manifest["files"])

    def test_manifest_excludes_itself(self, tmp_path: Path):
        self._populate(tmp_path)
        write_manifest(tmp_path)
        assert "MANIFEST.json" not in [f["path"] for f in generate_manifest(tmp_path)["files"]]

    def test_verify_ok(self, tmp_path: Path):
        self._populate(tmp_path)
        write_manifest(tmp_path)
        result = verify_manifest(tmp_path)
        assert result == {"manifest_present": True, "verified": True, "errors": [], "files_checked": 2}

    def test_verify_detects_tampering_and_missing(self, tmp_path: Path):
        self._populate(tmp_path)
        write_manifest(tmp_path)
        (tmp_path / "hdi-values.json").write_text("{}\n", encoding="utf-8")
        (tmp_path / "regions.topo.json").unlink()
        result = verify_manifest(tmp_path)
        assert not result["verified"]
        assert any(e.startswith("Hash mismatch: hdi-values.json") for e in result["errors"])
        assert "Missing file: regions.topo.json" in result["errors"]

    def test_verify_absent_manifest(self, tmp_path: Path):
        result = verify_manifest(tmp_path)
        assert result["manifest_present"] is False
        assert result["verified"] is False

    def test_verify_unreadable_manifest(self, tmp_path: Path):
        (tmp_path / "MANIFEST.json").write_text("{not json", encoding="utf-8")
        result = verify_manifest(tmp_path)
        assert result["manifest_present"] is True
        assert result["errors"] == ["Failed to read MANIFEST.json: JSONDecodeError"]
