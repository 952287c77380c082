"""In-memory resolution cache.

Lookup keys map to the last successfully resolved record. The cache is created once per
process and handed to the pipeline through the application context, so tests can build
their own instances.

Policy:
    Entries are kept for the life of the process unless the cache is bounded. With
    ``max_entries`` set, the least recently used entry is evicted once the bound is reached.
    With ``ttl`` set, entries also expire ``ttl`` seconds after being written.

Concurrency:
    ``get`` and ``put`` never suspend, so on a single event loop they cannot interleave.
    Two requests that miss on the same key may both query upstream; the last write wins.
"""

import logging
from typing import Optional

from cachetools import Cache, LRUCache, TTLCache

from dweb.brave.gateway.resolve.records import ResolutionRecord

logger = logging.getLogger(__name__)


class ResolutionCache:
    """Lookup key to ResolutionRecord store with an explicit eviction policy."""

    def __init__(self, max_entries: int = 10000, ttl: Optional[float] = None) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ttl = ttl
        self._store: Cache
        if ttl is not None:
            self._store = TTLCache(maxsize=max_entries, ttl=ttl)
        else:
            self._store = LRUCache(maxsize=max_entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def ttl(self) -> Optional[float]:
        return self._ttl

    def get(self, key: str) -> Optional[ResolutionRecord]:
        return self._store.get(key)

    def put(self, key: str, record: ResolutionRecord) -> None:
        self._store[key] = record
        logger.debug("Cached record for %s (%d entries)", key, len(self._store))

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)
