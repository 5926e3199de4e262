"""
indexatlas.country_mapping — Country-name → ISO-3 lookup tables.

The WHR and OECD spreadsheets identify countries by display name, and the
two sources do not agree on spelling ("Türkiye" vs "Turkey", "Republic of
Korea" vs "Korea"). Each source therefore ships its own table.

A value of ``null`` means the entity is deliberately excluded: it has no
ISO code and its rows are dropped by the extractors.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Optional

DATA_DIR: Path = Path(__file__).resolve().parent / "data"

WHR_MAPPING: str = "whr_country_to_iso"
OECD_MAPPING: str = "oecd_country_to_iso"

_ISO3_RE = re.compile(r"^[A-Z]{3}$")


def _resolve(name_or_path: str | Path) -> Path:
    path = Path(name_or_path)
    if path.suffix == ".json" or path.parent != Path("."):
        return path
    return DATA_DIR / f"{name_or_path}.json"


def load_country_mapping(name_or_path: str | Path) -> dict[str, Optional[str]]:
    """Load a mapping table by bundled name or by file path.

    Raises:
        FileNotFoundError: if the table does not exist.
        ValueError: if the document is not an object, or a non-null value
            is not a three-letter uppercase code.
    """
    path = _resolve(name_or_path)
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a JSON object, got {type(data).__name__}")

    for country, iso in data.items():
        if iso is None:
            continue
        if not isinstance(iso, str) or not _ISO3_RE.match(iso):
            raise ValueError(f"{path.name}: invalid ISO-3 code for '{country}': {iso!r}")

    return data
