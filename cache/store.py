"""
cache/store.py -- In-process TTL cache used as a read-through accelerator.

Holds sanitized user projections keyed "user:<id>" so identity resolution on
every authenticated request does not hit the database. The store of record
is always authoritative: the cache is advisory, so every internal failure is
logged and degrades to a miss (get) or a no-op (set/delete) instead of
propagating to the request.

Eviction is time-based only. Expired entries are invisible to reads at once
and physically removed by purge_expired(), which the API lifespan calls
every check_period seconds. No size bound, no LRU.

The clock is injected so tests can advance time deterministically.

Usage:
    cache = TTLCache(default_ttl=600, check_period=120)
    cache.set("user:42", public_user, ttl=300)
    user = cache.get("user:42")        # value or None
    cache.delete("user:42")            # -> number of keys removed
    cache.purge_expired()              # call periodically to trim old entries
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Optional

logger = logging.getLogger("monitorium.cache")

_DEFAULT_TTL = 600  # 10 minutes
_DEFAULT_CHECK_PERIOD = 120  # 2 minutes


class TTLCache:
    def __init__(
        self,
        default_ttl: int = _DEFAULT_TTL,
        check_period: int = _DEFAULT_CHECK_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        # key -> (value, expires_at)
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value for key if it exists and hasn't expired."""
        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None and entry[1] <= self._clock():
                    del self._entries[key]
                    logger.debug("Cache expired: %s", key)
                    entry = None
                if entry is None:
                    self._misses += 1
                    logger.debug("Cache miss: %s", key)
                    return None
                self._hits += 1
            logger.debug("Cache hit: %s", key)
            return entry[0]
        except Exception:
            logger.exception("Cache get failed for %s", key)
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store value under key, replacing any existing entry. Returns True on success.

        A missing or zero ttl means default_ttl.
        """
        lifetime = ttl or self.default_ttl
        try:
            with self._lock:
                self._entries[key] = (value, self._clock() + lifetime)
        except Exception:
            logger.exception("Cache set failed for %s", key)
            return False
        logger.debug("Cache set: %s (ttl=%ss)", key, lifetime)
        return True

    def delete(self, *keys: str) -> int:
        """Remove keys. Returns the number of entries actually removed."""
        try:
            with self._lock:
                removed = sum(1 for key in keys if self._entries.pop(key, None) is not None)
        except Exception:
            logger.exception("Cache delete failed for %s", keys)
            return 0
        logger.debug("Cache delete: %s (removed=%d)", ", ".join(keys), removed)
        return removed

    def has(self, key: str) -> bool:
        """True if key holds a live entry. Does not count as a hit or miss."""
        try:
            with self._lock:
                entry = self._entries.get(key)
                return entry is not None and entry[1] > self._clock()
        except Exception:
            logger.exception("Cache has failed for %s", key)
            return False

    def keys(self) -> list[str]:
        """Return the keys of all live entries."""
        try:
            with self._lock:
                now = self._clock()
                return [key for key, (_, expires_at) in self._entries.items() if expires_at > now]
        except Exception:
            logger.exception("Cache keys failed")
            return []

    def flush_all(self) -> None:
        try:
            with self._lock:
                self._entries.clear()
                self._hits = 0
                self._misses = 0
        except Exception:
            logger.exception("Cache flush failed")
            return
        logger.info("Cache flushed")

    def purge_expired(self) -> int:
        """Delete all entries past their TTL. Returns number of entries removed."""
        try:
            with self._lock:
                now = self._clock()
                expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
                for key in expired:
                    del self._entries[key]
        except Exception:
            logger.exception("Cache purge failed")
            return 0
        if expired:
            logger.debug("Cache purged %d expired entries", len(expired))
        return len(expired)

    def stats(self) -> dict[str, int]:
        """Return hit/miss counters and the number of stored entries."""
        try:
            with self._lock:
                return {"hits": self._hits, "misses": self._misses, "keys": len(self._entries)}
        except Exception:
            logger.exception("Cache stats failed")
            return {"hits": 0, "misses": 0, "keys": 0}

    def close(self) -> None:
        self.flush_all()
