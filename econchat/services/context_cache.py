"""
Cache-aside store of FRED series.

Each series lives under its own key (``<prefix><seriesId>``) as a serialized
CacheEntry. The store's TTL is only a ceiling: an entry is trusted only while
``now - cachedAt < ttl`` and only if it was written after the last
invalidate_all(), whatever the store still holds.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError

from ..exceptions import ConfigurationError
from ..models import CacheEntry, SeriesData

logger = logging.getLogger(__name__)


class SeriesStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool: ...

    async def clear_namespace(self, prefix: str) -> int: ...


class SeriesFetcher(Protocol):
    async def fetch_multiple_series(
        self,
        series_ids: List[str],
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[SeriesData]: ...


class EconomicContextCache:
    """Series-level cache-aside layer in front of the FRED fetcher.

    Created once per process and shared by concurrent requests. Two requests
    missing the same series at the same time may both fetch it; the later
    write simply replaces the earlier one.
    """

    DEFAULT_TTL = 86400  # 24 hours
    DEFAULT_PREFIX = "fred:series:"

    def __init__(
        self,
        store: SeriesStore,
        fetcher: SeriesFetcher,
        ttl_seconds: int = DEFAULT_TTL,
        key_prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ConfigurationError(f"Context cache TTL must be positive, got {ttl_seconds}")
        self.store = store
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self._clock = clock
        self._invalidated_at: Optional[float] = None

    def _key(self, series_id: str) -> str:
        return f"{self.key_prefix}{series_id}"

    def _is_fresh(self, entry: CacheEntry) -> bool:
        if self._invalidated_at is not None and entry.cachedAt < self._invalidated_at:
            return False
        return self._clock() - entry.cachedAt < self.ttl_seconds

    async def _read(self, series_id: str) -> Optional[SeriesData]:
        """Return the cached series if present and fresh; anything else is a miss."""
        try:
            raw = await self.store.get(self._key(series_id))
        except Exception as e:
            logger.error(f"Error reading cached series {series_id}: {e}")
            return None

        if raw is None:
            return None

        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for {series_id}: {e}")
            return None

        if not self._is_fresh(entry):
            logger.debug(f"Cached series {series_id} is stale (cached at {entry.cachedAt})")
            return None
        return entry.series

    async def _write(self, series: SeriesData) -> None:
        entry = CacheEntry(cachedAt=self._clock(), series=series)
        try:
            await self.store.set(self._key(series.id), entry.model_dump_json(), self.ttl_seconds)
        except Exception as e:
            logger.error(f"Error caching series {series.id}: {e}")

    async def _fetch_and_store(
        self,
        series_ids: List[str],
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[SeriesData]:
        try:
            fetched = await self.fetcher.fetch_multiple_series(
                series_ids, limit=limit, start_date=start_date, end_date=end_date
            )
        except Exception as e:
            logger.error(f"Error fetching series {', '.join(series_ids)}: {e}")
            return []

        for series in fetched:
            await self._write(series)

        missing = set(series_ids) - {series.id for series in fetched}
        if missing:
            logger.warning(f"Series not returned by fetcher: {', '.join(sorted(missing))}")
        return fetched

    async def get_one(self, series_id: str) -> Optional[SeriesData]:
        """Cached series if fresh, otherwise fetched, stored and returned.

        Unknown series return None and nothing is cached for them.
        """
        cached = await self._read(series_id)
        if cached is not None:
            return cached

        fetched = await self._fetch_and_store([series_id])
        return fetched[0] if fetched else None

    async def get_many(
        self,
        series_ids: List[str],
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[SeriesData]:
        """Resolve a batch of series ids.

        Hits come back as cached, whatever range they were cached with. Misses
        are fetched together with the given limit/range. The result lists hits
        first, then fetched misses; series that could not be fetched are left out.
        """
        requested = list(dict.fromkeys(series_ids))
        cached = await asyncio.gather(*(self._read(series_id) for series_id in requested))

        hits: Dict[str, SeriesData] = {}
        misses: List[str] = []
        for series_id, series in zip(requested, cached):
            if series is None:
                misses.append(series_id)
            else:
                hits[series_id] = series

        logger.info(f"Context cache: {len(hits)} hit(s), {len(misses)} miss(es)")

        fetched: List[SeriesData] = []
        if misses:
            fetched = await self._fetch_and_store(
                misses, limit=limit, start_date=start_date, end_date=end_date
            )

        return list(hits.values()) + fetched

    async def refresh(self, series_ids: List[str]) -> List[SeriesData]:
        """Fetch and republish the given series regardless of freshness."""
        requested = list(dict.fromkeys(series_ids))
        if not requested:
            return []
        refreshed = await self._fetch_and_store(requested)
        logger.info(f"Refreshed {len(refreshed)}/{len(requested)} series")
        return refreshed

    async def invalidate_all(self) -> None:
        """Treat every cached series as a miss on its next access."""
        self._invalidated_at = self._clock()
        try:
            deleted = await self.store.clear_namespace(self.key_prefix)
            logger.info(f"Invalidated context cache ({deleted} entries removed)")
        except Exception as e:
            logger.warning(f"Could not clear cached series from store: {e}")
