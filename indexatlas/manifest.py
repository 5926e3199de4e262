"""
indexatlas.manifest — SHA-256 integrity manifest for published artifacts.

MANIFEST.json lists every artifact in the output directory with its
digest and size. The build writes it last; the API verifies it at startup
and reports the result on /ready.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from indexatlas.constants import MANIFEST_FILE

MANIFEST_SCHEMA_VERSION = 1
_CHUNK = 65536


def sha256_file(filepath: Path) -> str:
    h = hashlib.sha256()
    with open(filepath, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def generate_manifest(output_dir: Path, generator: str = "indexatlas.build_pipeline") -> dict[str, Any]:
    """Hash every JSON artifact under ``output_dir`` (MANIFEST.json excluded).

    Files are listed in sorted relative-path order. Does not write anything.
    """
    entries = []
    for path in sorted(output_dir.rglob("*.json")):
        if path.name == MANIFEST_FILE:
            continue
        entries.append({
            "path": path.relative_to(output_dir).as_posix(),
            "sha256": sha256_file(path),
            "size_bytes": path.stat().st_size,
        })
    return {
        "schema_version": MANIFEST_SCHEMA_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "generator": generator,
        "file_count": len(entries),
        "files": entries,
    }


def write_manifest(output_dir: Path) -> Path:
    manifest = generate_manifest(output_dir)
    path = output_dir / MANIFEST_FILE
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(manifest, fh, indent=2)
        fh.write("\n")
    return path


def verify_manifest(output_dir: Path) -> dict[str, Any]:
    """Check every manifest entry against the file on disk.

    Returns ``{"manifest_present", "verified", "errors", "files_checked"}``.
    Never raises for a bad manifest: problems are reported in ``errors``.
    """
    result: dict[str, Any] = {
        "manifest_present": False,
        "verified": False,
        "errors": [],
        "files_checked": 0,
    }
    manifest_path = output_dir / MANIFEST_FILE
    if not manifest_path.is_file():
        return result
    result["manifest_present"] = True

    try:
        with open(manifest_path, encoding="utf-8") as fh:
            manifest = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        result["errors"].append(f"Failed to read {MANIFEST_FILE}: {type(exc).__name__}")
        return result

    files = manifest.get("files") or []
    if not files:
        result["errors"].append(f"{MANIFEST_FILE} contains no file entries")
        return result

    for entry in files:
        rel_path = entry.get("path", "")
        expected = entry.get("sha256", "")
        if not rel_path or not expected:
            result["errors"].append(f"Invalid manifest entry: {entry}")
            continue
        path = output_dir / rel_path
        if not path.is_file():
            result["errors"].append(f"Missing file: {rel_path}")
            continue
        actual = sha256_file(path)
        result["files_checked"] += 1
        if actual != expected:
            result["errors"].append(
                f"Hash mismatch: {rel_path} (expected {expected[:16]}..., got {actual[:16]}...)"
            )

    result["verified"] = not result["errors"]
    return result
