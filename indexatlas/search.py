"""
indexatlas.search — Diacritic- and case-insensitive region search.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from indexatlas.constants import SEARCH_DEFAULT_LIMIT


def normalize_text(text: str) -> str:
    """NFD-decompose, drop combining marks, lowercase. "Île-de-France" → "ile-de-france"."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


@dataclass(frozen=True, slots=True)
class SearchEntry:
    gdl_code: str
    name: str
    country: str
    normalized_name: str
    normalized_country: str
    label: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    gdl_code: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"gdlCode": self.gdl_code, "label": self.label}


@dataclass(frozen=True, slots=True)
class SearchableRegion:
    gdl_code: str
    name: str
    country: str


SearchIndex = tuple[SearchEntry, ...]


def build_search_index(regions: Iterable) -> SearchIndex:
    """Index objects exposing ``gdl_code``, ``name`` and ``country``."""
    return tuple(
        SearchEntry(
            gdl_code=r.gdl_code,
            name=r.name,
            country=r.country,
            normalized_name=normalize_text(r.name),
            normalized_country=normalize_text(r.country),
            label=f"{r.name}, {r.country}",
        )
        for r in regions
    )


def search_regions(
    query: str,
    index: SearchIndex,
    limit: int = SEARCH_DEFAULT_LIMIT,
) -> list[SearchResult]:
    trimmed = query.strip()
    if not trimmed:
        return []

    needle = normalize_text(trimmed)
    results: list[SearchResult] = []
    for entry in index:
        if len(results) >= limit:
            break
        if needle in entry.normalized_name or needle in entry.normalized_country:
            results.append(SearchResult(gdl_code=entry.gdl_code, label=entry.label))
    return results
