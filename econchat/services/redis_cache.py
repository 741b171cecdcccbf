"""
Redis key-value store for econchat.

Stores string values with a TTL and falls back to the in-memory store when
Redis is unreachable. Keys are chosen by the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from ..config import Settings, get_settings
from .cache import CacheService

logger = logging.getLogger(__name__)


class RedisCacheService:
    """
    Redis-backed get/set/TTL store with automatic fallback to in-memory cache.

    Every write also lands in the in-memory store, so a Redis outage in the
    middle of a run still serves what this process has written.
    """

    def __init__(self, settings: Optional[Settings] = None, fallback: Optional[CacheService] = None):
        self.settings = settings or get_settings()
        self.redis_client: Optional[redis.Redis] = None
        self.fallback_cache = fallback or CacheService()
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """
        Connect to Redis server with retry logic.

        Returns:
            True if connected successfully, False otherwise
        """
        if self._connected:
            return True

        async with self._lock:
            if self._connected:
                return True

            redis_url = self.settings.redis_url
            try:
                retry = Retry(ExponentialBackoff(), 3)
                self.redis_client = redis.from_url(
                    redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    retry=retry,
                    retry_on_timeout=True,
                    socket_keepalive=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                )

                await self.redis_client.ping()
                self._connected = True
                logger.info(f"Connected to Redis at {redis_url}")
                return True

            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}. Using in-memory cache.")
                self.redis_client = None
                self._connected = False
                return False

    async def disconnect(self) -> None:
        """Disconnect from Redis gracefully."""
        if self.redis_client:
            try:
                await self.redis_client.aclose()
                logger.info("Redis connection closed")
            except Exception as e:
                logger.error(f"Error disconnecting from Redis: {e}")
            finally:
                self.redis_client = None
                self._connected = False

    async def get(self, key: str) -> Optional[str]:
        """Get a value, or None if the key is missing or expired."""
        if self._connected and self.redis_client:
            try:
                data = await self.redis_client.get(key)
                if data is not None:
                    logger.debug(f"Redis cache hit: {key}")
                    return data
            except Exception as e:
                logger.warning(f"Redis get error for {key}: {e}. Falling back to in-memory cache.")
                self._connected = False

        return self.fallback_cache.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Store a value with a TTL in seconds.

        Returns:
            True if the value reached Redis
        """
        ttl = ttl or CacheService.DEFAULT_TTL

        success = False
        if self._connected and self.redis_client:
            try:
                await self.redis_client.set(key, value, ex=ttl)
                logger.debug(f"Cached to Redis: {key} (TTL: {ttl}s)")
                success = True
            except Exception as e:
                logger.error(f"Error setting key {key} in Redis: {e}")
                self._connected = False

        self.fallback_cache.set(key, value, ttl)
        return success

    async def delete(self, key: str) -> bool:
        success = False
        if self._connected and self.redis_client:
            try:
                success = await self.redis_client.delete(key) > 0
            except Exception as e:
                logger.error(f"Error deleting key {key} from Redis: {e}")

        return self.fallback_cache.delete(key) or success

    async def clear_namespace(self, prefix: str) -> int:
        """
        Delete every key starting with prefix.

        Returns:
            Number of keys deleted
        """
        deleted = 0

        if self._connected and self.redis_client:
            try:
                # SCAN avoids blocking Redis on large keyspaces
                cursor = 0
                while True:
                    cursor, keys = await self.redis_client.scan(cursor, match=f"{prefix}*", count=100)
                    if keys:
                        deleted += await self.redis_client.delete(*keys)
                    if cursor == 0:
                        break
                logger.info(f"Cleared {deleted} Redis keys under {prefix}")
            except Exception as e:
                logger.error(f"Error clearing Redis keys under {prefix}: {e}")

        return max(deleted, self.fallback_cache.clear_prefix(prefix))

    async def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "redis_connected": self._connected,
            "in_memory_stats": self.fallback_cache.get_stats(),
        }

        if self._connected and self.redis_client:
            try:
                info = await self.redis_client.info()
                hits = info.get("keyspace_hits", 0)
                misses = info.get("keyspace_misses", 0)
                stats["redis_stats"] = {
                    "used_memory": info.get("used_memory_human", "N/A"),
                    "connected_clients": info.get("connected_clients", 0),
                    "keyspace_hits": hits,
                    "keyspace_misses": misses,
                    "hit_rate": hits / (hits + misses) if hits > 0 else 0,
                }
            except Exception as e:
                logger.error(f"Error getting Redis stats: {e}")
                stats["redis_stats"] = {"error": str(e)}

        return stats
