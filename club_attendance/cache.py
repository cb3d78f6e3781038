"""
Read cache for rarely changing reference data (club listings, subgroup names).

Entries live in a cachetools TTLCache whose timer is injectable so expiry
can be controlled in tests. Builders run at most once per key while fresh,
also when several extraction threads miss at the same time.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional

from cachetools import TTLCache

from club_attendance.config import Config

logger = logging.getLogger(__name__)


class ReferenceCache:
    """Thread-safe TTL cache with singleflight get_or_build."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        maxsize: int = 256,
        timer: Callable[[], float] = time.monotonic
    ):
        ttl_seconds = Config.CLUB_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._entries.ttl

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def invalidate(self, key: Hashable = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def _key_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def get_or_build(self, key: Hashable, builder: Callable[[], Any]) -> Any:
        """
        Return the cached value for `key`, building and storing it on a miss.

        Args:
            key: Cache key
            builder: Zero-argument callable producing the value

        Returns:
            Cached or freshly built value
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key!r}")
            return cached

        with self._key_lock(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            value = builder()
            self.set(key, value)
            return value
