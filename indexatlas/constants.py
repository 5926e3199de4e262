"""
indexatlas.constants — Single source of truth for indexatlas global constants.

Every module that needs these values MUST import from here.
No hardcoded duplicates anywhere in the codebase.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Precision
# ---------------------------------------------------------------------------

CENTROID_PRECISION: int = 3
"""Centroid longitude/latitude are rounded to this many decimal places."""

OECD_PRECISION: int = 1
"""Country-level OECD dimension averages are rounded to this many places."""

# ---------------------------------------------------------------------------
# Index identifiers
# ---------------------------------------------------------------------------

INDEX_HDI: str = "hdi"
INDEX_WHR: str = "whr"
INDEX_OECD_BLI: str = "oecd-bli"

INDEX_IDS: tuple[str, ...] = (INDEX_HDI, INDEX_WHR, INDEX_OECD_BLI)

DEFAULT_INDEX_ID: str = INDEX_HDI

# ---------------------------------------------------------------------------
# Administrative levels
# ---------------------------------------------------------------------------

LEVEL_NATIONAL: str = "national"
LEVEL_SUBNATIONAL: str = "subnational"

LEVEL_MAP: dict[str, str] = {
    "Subnat": LEVEL_SUBNATIONAL,
    "National": LEVEL_NATIONAL,
}
"""SHDI ``level`` column → normalized level. Unknown strings → subnational."""

NATIONAL_CODE_SUFFIX: str = "t"
"""GDL codes ending in this literal denote a whole-country (national) unit."""

# ---------------------------------------------------------------------------
# OECD Better Life Index dimensions — canonical order
# ---------------------------------------------------------------------------

OECD_DIMENSION_KEYS: tuple[str, ...] = (
    "income",
    "jobs",
    "housing",
    "education",
    "health",
    "environment",
    "safety",
    "civicEngagement",
    "accessToServices",
    "community",
    "lifeSatisfaction",
)
"""The 11 value-record keys, in canonical (spreadsheet column) order."""

NUM_DIMENSIONS: int = len(OECD_DIMENSION_KEYS)

WEIGHTED_AVERAGE_DIMENSION_ID: str = "weighted-average"

DIMENSION_ID_TO_KEY: dict[str, str] = {
    "income": "income",
    "jobs": "jobs",
    "housing": "housing",
    "education": "education",
    "health": "health",
    "environment": "environment",
    "safety": "safety",
    "civic-engagement": "civicEngagement",
    "accessibility-to-services": "accessToServices",
    "community": "community",
    "life-satisfaction": "lifeSatisfaction",
}
"""Kebab-case dimension ids (registry / URL form) → value-record keys."""

# ---------------------------------------------------------------------------
# World Happiness Report spreadsheet columns
# ---------------------------------------------------------------------------

WHR_YEAR_COLUMN: str = "Year"
WHR_COUNTRY_COLUMN: str = "Country name"
WHR_SCORE_COLUMN: str = "Life evaluation (3-year average)"

WHR_SUBFACTOR_COLUMNS: dict[str, str] = {
    "gdpPerCapita": "Explained by: Log GDP per capita",
    "socialSupport": "Explained by: Social support",
    "lifeExpectancy": "Explained by: Healthy life expectancy",
    "freedom": "Explained by: Freedom to make life choices",
    "generosity": "Explained by: Generosity",
    "corruption": "Explained by: Perceptions of corruption",
}
"""Value-record key → spreadsheet header, in canonical order."""

# ---------------------------------------------------------------------------
# OECD Regional Well-Being spreadsheet layout
# ---------------------------------------------------------------------------

OECD_SHEET_NAME: str = "Score_Last"
OECD_HEADER_OFFSET: int = 8
"""Data rows start after this many leading rows of titles and headers."""

OECD_COUNTRY_COLUMN: int = 1
OECD_REGION_COLUMN: int = 2
OECD_CODE_COLUMN: int = 3
OECD_FIRST_DIMENSION_COLUMN: int = 4
"""Dimensions occupy columns 4..14 in OECD_DIMENSION_KEYS order."""

# ---------------------------------------------------------------------------
# Presentation-facing constants
# ---------------------------------------------------------------------------

NO_DATA_COLOR: str = "#555"

DEFAULT_SOURCE: str = "GDL SHDI v8.3"
"""Provenance string for regions not covered by a supplement."""

SEARCH_DEFAULT_LIMIT: int = 10

SAMPLE_VALIDATION_SIZE: int = 10
"""Number of leading map features validated when loading a regions document."""

# ---------------------------------------------------------------------------
# Artifact names
# ---------------------------------------------------------------------------

REGIONS_FILE: str = "regions.topo.json"
REGIONS_OBJECT: str = "regions"
MANIFEST_FILE: str = "MANIFEST.json"

VALUE_FILES: dict[str, str] = {
    INDEX_HDI: "hdi-values.json",
    INDEX_WHR: "whr-values.json",
    INDEX_OECD_BLI: "oecd-bli-values.json",
}
