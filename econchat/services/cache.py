from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class StoreEntry:
    value: str
    expires_at: float


class CacheService:
    """
    In-memory key-value store with TTL tracking and hit/miss statistics.

    Used as the fallback behind RedisCacheService. Thread-safe; expired
    entries are dropped on read and swept periodically.
    """

    DEFAULT_TTL = 86400  # 24 hours
    MAX_CACHE_ENTRIES = 10000  # Prevent unbounded growth
    CLEANUP_INTERVAL = 300  # Clean expired entries every 5 minutes

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._cache: Dict[str, StoreEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.hits = 0
        self.misses = 0
        self._last_cleanup = clock()

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expiry = self._clock() + (ttl or self.DEFAULT_TTL)
        with self._lock:
            self._cache[key] = StoreEntry(value=value, expires_at=expiry)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            self._maybe_cleanup()

            entry = self._cache.get(key)
            if not entry:
                self.misses += 1
                return None
            if entry.expires_at <= self._clock():
                self._cache.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._cache if k.startswith(prefix)]
            for key in keys:
                self._cache.pop(key, None)
            return len(keys)

    def _maybe_cleanup(self) -> None:
        """Cleanup expired entries if interval elapsed (must hold lock)."""
        now = self._clock()
        if now - self._last_cleanup < self.CLEANUP_INTERVAL:
            return

        expired_keys = [k for k, v in self._cache.items() if v.expires_at <= now]
        for key in expired_keys:
            self._cache.pop(key, None)

        # Over the limit: drop the 10% closest to expiry
        if len(self._cache) > self.MAX_CACHE_ENTRIES:
            to_remove = max(10, len(self._cache) // 10)
            sorted_by_expiry = sorted(self._cache.items(), key=lambda x: x[1].expires_at)
            for key, _ in sorted_by_expiry[:to_remove]:
                self._cache.pop(key, None)

        self._last_cleanup = now

    def get_stats(self) -> Dict[str, int | float]:
        with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0
            return {
                "keys": len(self._cache),
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": round(hit_rate, 2),
                "max_entries": self.MAX_CACHE_ENTRIES,
            }
