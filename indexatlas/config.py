"""
indexatlas.config — Environment-driven settings.

All tunables are read from environment variables here and nowhere else.
Entry points (the build CLI, the API) call ``Settings.from_env()`` once
and pass the result down; library functions take explicit arguments.

Environment variables:
    INDEXATLAS_DATA_DIR              — raw input directory (default: ./data/raw)
    INDEXATLAS_OUTPUT_DIR            — artifact directory (default: ./data/public)
    INDEXATLAS_MIN_MATCH_RATE        — join gate, 0..1 (default: 0.95)
    INDEXATLAS_VALUES_BASE_URL       — base URL for fetching value stores
    INDEXATLAS_FETCH_TIMEOUT_SECONDS — HTTP timeout for value-store fetches
    ENV                              — "dev" or "prod" (default: "prod")
    ALLOWED_ORIGINS                  — comma-separated extra CORS origins
    ENABLE_DOCS                      — "1" to force-enable /docs in prod
    REQUIRE_DATA                     — "1" to hard-fail API startup without artifacts
    REDIS_URL                        — optional Redis URL for rate limiting
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

DEFAULT_MIN_MATCH_RATE: float = 0.95
DEFAULT_FETCH_TIMEOUT_SECONDS: float = 30.0


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name, "").strip()
    return Path(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings. Immutable once built."""

    data_dir: Path = PROJECT_ROOT / "data" / "raw"
    output_dir: Path = PROJECT_ROOT / "data" / "public"
    min_match_rate: float | None = DEFAULT_MIN_MATCH_RATE
    values_base_url: str | None = None
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    env: str = "prod"
    allowed_origins: tuple[str, ...] = field(default_factory=tuple)
    enable_docs: bool = False
    require_data: bool = False
    redis_url: str | None = None

    # Input file names inside data_dir
    shdi_csv: str = "SHDI-v8.3.csv"
    topology_file: str = "gdl_2pct.topo.json"
    whr_workbook: str = "whr-2025-figure-2.1.xlsx"
    oecd_workbook: str = "OECD-Regional-Well-Being-Data-File.xlsx"

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the current process environment."""
        origins = tuple(
            o.strip()
            for o in os.getenv("ALLOWED_ORIGINS", "").split(",")
            if o.strip()
        )
        min_rate = _env_float("INDEXATLAS_MIN_MATCH_RATE", DEFAULT_MIN_MATCH_RATE)
        if not 0.0 <= min_rate <= 1.0:
            raise ValueError(
                f"INDEXATLAS_MIN_MATCH_RATE must be within [0, 1], got {min_rate}"
            )
        return cls(
            data_dir=_env_path("INDEXATLAS_DATA_DIR", cls.data_dir),
            output_dir=_env_path("INDEXATLAS_OUTPUT_DIR", cls.output_dir),
            min_match_rate=min_rate,
            values_base_url=os.getenv("INDEXATLAS_VALUES_BASE_URL", "").strip() or None,
            fetch_timeout_seconds=_env_float(
                "INDEXATLAS_FETCH_TIMEOUT_SECONDS", DEFAULT_FETCH_TIMEOUT_SECONDS
            ),
            env=os.getenv("ENV", "prod").lower().strip(),
            allowed_origins=origins,
            enable_docs=os.getenv("ENABLE_DOCS", "").strip() == "1",
            require_data=os.getenv("REQUIRE_DATA", "").strip() == "1",
            redis_url=os.getenv("REDIS_URL", "").strip() or None,
        )
