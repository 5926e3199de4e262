"""
indexatlas.value_cache — Thread-safe value-store cache keyed by index id.

Design contract:
    - An index id is loaded at most once per cache lifetime. First
      successful load wins.
    - Concurrent first loads of the same id share a single in-flight
      Future: one caller runs the loader, the others wait on its result.
    - A failed load is never cached. The exception reaches every waiter,
      and the next call retries.
    - Cached data is read-only after load.
    - invalidate() drops one id or everything; in-flight loads finish but
      are not resurrected by an invalidate that raced them.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

logger = logging.getLogger("indexatlas.cache")

ValueStore = dict[str, dict[str, Any]]


class ValueStoreCache:
    """Explicit cache object owned by a ValueLoader.

    Usage::

        cache = ValueStoreCache()
        values = cache.get_or_load("hdi", lambda: fetch_and_validate("hdi"))
    """

    def __init__(self) -> None:
        self._lock: threading.Lock = threading.Lock()
        self._entries: dict[str, ValueStore] = {}
        self._in_flight: dict[str, Future] = {}
        self._generation: int = 0

    def get(self, index_id: str) -> ValueStore | None:
        with self._lock:
            return self._entries.get(index_id)

    def put(self, index_id: str, values: ValueStore) -> None:
        """Store values. Writes are idempotent: last writer wins on identical data."""
        with self._lock:
            self._entries[index_id] = values

    def get_or_load(self, index_id: str, loader: Callable[[], ValueStore]) -> ValueStore:
        """Return cached values, running ``loader`` at most once concurrently."""
        with self._lock:
            cached = self._entries.get(index_id)
            if cached is not None:
                return cached
            future = self._in_flight.get(index_id)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[index_id] = future
            generation = self._generation

        if not owner:
            return future.result()

        try:
            values = loader()
        except BaseException as exc:
            with self._lock:
                self._in_flight.pop(index_id, None)
            future.set_exception(exc)
            logger.warning(json.dumps({
                "event": "cache_load_failed",
                "index_id": index_id,
                "error": type(exc).__name__,
            }))
            raise

        with self._lock:
            self._in_flight.pop(index_id, None)
            if generation == self._generation:
                self._entries[index_id] = values
        future.set_result(values)
        logger.info(json.dumps({
            "event": "cache_loaded",
            "index_id": index_id,
            "entries": len(values),
        }))
        return values

    def invalidate(self, index_id: str | None = None) -> int:
        """Drop one index id, or all when None. Returns the number dropped."""
        with self._lock:
            self._generation += 1
            if index_id is not None:
                return 1 if self._entries.pop(index_id, None) is not None else 0
            count = len(self._entries)
            self._entries.clear()
            return count

    def __contains__(self, index_id: str) -> bool:
        with self._lock:
            return index_id in self._entries

    @property
    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "cached": sorted(self._entries),
                "in_flight": sorted(self._in_flight),
            }
