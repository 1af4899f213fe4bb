"""
QueryCache: in-memory TTL + LRU cache of full /search responses.

Keys are MD5 digests of a normalized request signature, so requests
that differ only in whitespace, case or filter ordering share an entry.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from knowhub.schemas.search import SearchFilters
from knowhub.utils.logging import get_logger
from knowhub.utils.text import normalize_query

logger = get_logger("knowhub.pipeline.cache")


def build_cache_key(
    query: str,
    filters: SearchFilters | None,
    limit: int,
    offset: int,
    sort_by: str = "relevance",
) -> str:
    """MD5 hex of the normalized query, active filters (sorted), sort mode and page."""
    signature = {
        "q": normalize_query(query),
        "filters": (filters or SearchFilters()).active(),
        "sort": sort_by,
        "limit": limit,
        "offset": offset,
    }
    raw = json.dumps(signature, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    expires_at: float


class QueryCache:
    """
    Thread-safe TTL + LRU cache.

    ``get`` refreshes recency; inserting past ``max_size`` evicts the
    least-recently-used entry; expired entries are never returned.
    """

    def __init__(
        self,
        ttl_seconds: float = 60.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= now:
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = CacheEntry(key, value, now, now + self.ttl_seconds)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug("[CACHE] evicted %s", evicted)

    def __len__(self) -> int:
        """Live (unexpired) entry count."""
        now = self._clock()
        with self._lock:
            return sum(1 for e in self._entries.values() if e.expires_at > now)

    def __contains__(self, key: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.expires_at > now

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
            }
