"""
Process-wide caches for mapping metadata.

Record types are described once and the resulting TableInfo objects are
kept in named cachetools LRU caches, keyed by class. Descriptors never
expire: a class's mapping cannot change after it is defined, short of
redefining the class, which produces a new key.
"""
import logging
import threading
from collections.abc import Callable
from typing import Any

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Thread-safe singleton owning every named cache.
    """

    _instance = None
    _caches: dict[str, cachetools.LRUCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 256) -> cachetools.LRUCache:
        """Named LRU cache, created on first use.
        """
        with self._lock:
            cache = self._caches.get(name)
            if cache is None:
                cache = self._caches[name] = cachetools.LRUCache(maxsize=maxsize)
            return cache

    def get_or_build(self, name: str, key: Any, builder: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, building and storing it on a miss.

        The builder runs outside the lock; if it raises nothing is stored.
        """
        cache = self.get_cache(name)
        with self._lock:
            if key in cache:
                return cache[key]
        logger.debug(f'Building {name} entry for {key!r}')
        value = builder()
        with self._lock:
            return cache.setdefault(key, value)

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()
