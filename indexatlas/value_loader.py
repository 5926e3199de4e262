"""
indexatlas.value_loader — Fetch, validate and cache per-index value stores.

A ValueLoader reads each index's value file either from an HTTP base URL
(via requests) or from a local artifact directory, validates it against
the index's pydantic schema, and caches the result in its own
ValueStoreCache.

Error taxonomy (all subclass ValueStoreError):
    ValueStoreTransportError   — connection failure, timeout, non-2xx
                                 status, missing local file, body that is
                                 not JSON. Safe to retry.
    ValueStoreValidationError  — the document parsed but violates its
                                 schema. Retrying will not help.

Neither kind is cached: a later call can succeed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import requests
from pydantic import ValidationError

from indexatlas.config import DEFAULT_FETCH_TIMEOUT_SECONDS
from indexatlas.registry import get_index_by_id
from indexatlas.schemas import validate_value_store
from indexatlas.value_cache import ValueStore, ValueStoreCache

logger = logging.getLogger("indexatlas.loader")


class ValueStoreError(Exception):
    """Base class for value-store load failures."""

    def __init__(self, index_id: str, message: str) -> None:
        self.index_id = index_id
        super().__init__(message)


class ValueStoreTransportError(ValueStoreError):
    """The value file could not be fetched or read."""


class ValueStoreValidationError(ValueStoreError):
    """The value file was fetched but failed schema validation."""


class ValueLoader:
    """Loads value stores from ``base_url`` or ``data_dir`` (exactly one)."""

    def __init__(
        self,
        base_url: str | None = None,
        data_dir: Path | None = None,
        cache: ValueStoreCache | None = None,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        if (base_url is None) == (data_dir is None):
            raise ValueError("ValueLoader needs exactly one of base_url or data_dir")
        self._base_url = base_url.rstrip("/") if base_url else None
        self._data_dir = Path(data_dir) if data_dir is not None else None
        self._cache = cache if cache is not None else ValueStoreCache()
        self._session = session
        self._timeout = timeout

    @property
    def cache(self) -> ValueStoreCache:
        return self._cache

    # ── Public API ──────────────────────────────────────────

    def load_values(self, index_id: str) -> ValueStore:
        """Return the validated value store for ``index_id``.

        Raises:
            KeyError: unknown index id.
            ValueStoreTransportError / ValueStoreValidationError.
        """
        index = get_index_by_id(index_id)
        return self._cache.get_or_load(index_id, lambda: self._fetch_and_validate(index_id, index.data_file))

    def get_cached_values(self, index_id: str) -> ValueStore | None:
        return self._cache.get(index_id)

    def reload(self, index_id: str) -> ValueStore:
        """Drop the cached store for ``index_id`` and load it again."""
        self._cache.invalidate(index_id)
        return self.load_values(index_id)

    # ── Internals ───────────────────────────────────────────

    def _fetch_and_validate(self, index_id: str, data_file: str) -> ValueStore:
        raw = self._read_local(index_id, data_file) if self._data_dir else self._fetch(index_id, data_file)
        try:
            values = validate_value_store(index_id, raw)
        except ValidationError as exc:
            logger.error(json.dumps({
                "event": "value_store_invalid",
                "index_id": index_id,
                "errors": exc.error_count(),
            }))
            raise ValueStoreValidationError(
                index_id, f"Validation error: {index_id} value file is invalid: {exc}"
            ) from exc
        return values

    def _fetch(self, index_id: str, data_file: str) -> Any:
        url = f"{self._base_url}/{data_file}"
        getter = self._session.get if self._session is not None else requests.get
        try:
            response = getter(url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            self._log_transport(index_id, url, f"HTTP {status}")
            raise ValueStoreTransportError(
                index_id, f"Failed to load {index_id} values: HTTP {status}"
            ) from exc
        except requests.JSONDecodeError as exc:
            self._log_transport(index_id, url, "invalid JSON")
            raise ValueStoreTransportError(
                index_id, f"Failed to load {index_id} values: response is not JSON"
            ) from exc
        except requests.RequestException as exc:
            self._log_transport(index_id, url, type(exc).__name__)
            raise ValueStoreTransportError(
                index_id, f"Network error: failed to fetch {index_id} values"
            ) from exc

    def _read_local(self, index_id: str, data_file: str) -> Any:
        path = self._data_dir / data_file
        try:
            with open(path, encoding="utf-8") as fh:
                return json.load(fh)
        except OSError as exc:
            self._log_transport(index_id, str(path), type(exc).__name__)
            raise ValueStoreTransportError(
                index_id, f"Failed to load {index_id} values: cannot read {data_file}"
            ) from exc
        except json.JSONDecodeError as exc:
            self._log_transport(index_id, str(path), "invalid JSON")
            raise ValueStoreTransportError(
                index_id, f"Failed to load {index_id} values: {data_file} is not JSON"
            ) from exc

    @staticmethod
    def _log_transport(index_id: str, location: str, reason: str) -> None:
        logger.warning(json.dumps({
            "event": "value_store_transport_error",
            "index_id": index_id,
            "location": location,
            "reason": reason,
        }))
