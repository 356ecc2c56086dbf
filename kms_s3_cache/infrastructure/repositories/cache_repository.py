"""
In-Memory Cache Repository Implementation

Process-local store of resolved lookup outcomes.
No expiry, no eviction, no persistence.
"""

import threading
from typing import Any, Dict, Mapping, Optional

import structlog

from ...domain.cache.repository_interfaces import CacheStoreRepository
from ...domain.cache.value_objects import CacheValue, cache_value_from_seed

logger = structlog.get_logger()


class InMemoryCacheRepository(CacheStoreRepository):
    """
    Lock-protected dict of resolved outcomes.

    Blocking AWS calls run on worker threads, so reads and writes
    are guarded even though lookups are driven from an event loop.
    """

    def __init__(self, initial_cache: Optional[Mapping[str, Any]] = None):
        """
        Initialize repository.

        Args:
            initial_cache: Optional snapshot of key -> bytes (hit) or None (absent)
        """
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheValue] = {}

        if initial_cache:
            for key, value in initial_cache.items():
                self._entries[key] = cache_value_from_seed(value)
            logger.debug("Cache store pre-seeded", entries=len(self._entries))

    def lookup(self, key: str) -> Optional[CacheValue]:
        with self._lock:
            return self._entries.get(key)

    def record(self, key: str, value: CacheValue) -> None:
        with self._lock:
            self._entries[key] = value

    def snapshot(self) -> Dict[str, CacheValue]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
