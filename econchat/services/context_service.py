from __future__ import annotations

import logging
from typing import List, Optional

from ..models import Context
from ..providers.fred import FREDProvider
from .context_cache import EconomicContextCache
from .context_formatter import to_context

logger = logging.getLogger(__name__)


class EconomicContextService:
    """Read surface over the context cache: series in, formatted contexts out.

    Also manages the tracked (default) series list and forced refreshes.
    """

    def __init__(self, cache: EconomicContextCache, provider: FREDProvider) -> None:
        self.cache = cache
        self.provider = provider

    async def get_context_for_series(self, series_id: str) -> Optional[Context]:
        series = await self.cache.get_one(series_id)
        if series is None:
            return None
        return to_context(series)

    async def get_contexts_for_series(
        self,
        series_ids: List[str],
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Context]:
        series_list = await self.cache.get_many(
            series_ids, limit=limit, start_date=start_date, end_date=end_date
        )
        return [to_context(series) for series in series_list]

    async def get_all_contexts(self) -> List[Context]:
        """Contexts for every tracked series."""
        return await self.get_contexts_for_series(self.get_available_series_ids())

    def get_available_series_ids(self) -> List[str]:
        return self.provider.get_available_series_ids()

    async def add_series(self, series_id: str) -> bool:
        """Start tracking a series if FRED knows it."""
        refreshed = await self.cache.refresh([series_id])
        if not refreshed:
            logger.warning(f"Cannot track unknown series {series_id}")
            return False

        self.provider.add_series_id(series_id)
        logger.info(f"Added new series {series_id} to tracking")
        return True

    async def force_refresh(self) -> int:
        """Drop every cached series, then refetch the tracked ones.

        Returns:
            Number of tracked series refreshed
        """
        logger.info("Updating FRED data cache...")
        await self.cache.invalidate_all()
        refreshed = await self.cache.refresh(self.get_available_series_ids())
        logger.info(f"FRED data cache updated successfully. {len(refreshed)} series cached.")
        return len(refreshed)
