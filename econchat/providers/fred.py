from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..exceptions import DataNotAvailableError
from ..models import Observation, SeriesData
from ..services.http_pool import get_http_client
from .base import BaseProvider

logger = logging.getLogger(__name__)


class FREDProvider(BaseProvider):
    """FRED (Federal Reserve Economic Data) series fetcher.

    Fetches series metadata and observations and folds them into SeriesData.
    Also owns the list of tracked (default) series ids.
    """

    MISSING_VALUES = (None, ".", "")

    @property
    def provider_name(self) -> str:
        return "FRED"

    def __init__(
        self,
        api_key: Optional[str],
        settings: Optional[Settings] = None,
        timeout: float = 15.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.settings = settings or get_settings()
        self.api_key = api_key
        if not self.api_key:
            logger.warning("FRED_API_KEY is not set. FRED API calls will fail.")
        self.base_url = self.settings.fred_base_url.rstrip("/")
        self.default_limit = self.settings.fred_observation_limit
        self._default_series_ids: List[str] = list(self.settings.fred_default_series)

    def _params(self, series_id: str, **extra: Any) -> Dict[str, Any]:
        params = {
            "series_id": series_id,
            "api_key": self.api_key,
            "file_type": "json",
        }
        params.update({key: value for key, value in extra.items() if value is not None})
        return params

    @staticmethod
    def _redacted(url: str, params: Dict[str, Any]) -> str:
        """URL for logging, without exposing the API key."""
        query = "&".join(f"{k}={v}" for k, v in params.items() if k != "api_key")
        return f"{url}?{query}&api_key=***"

    async def fetch_series_info(self, series_id: str) -> Optional[Dict[str, Any]]:
        """Fetch series metadata. Returns None if FRED doesn't know the series."""
        url = f"{self.base_url}/series"
        params = self._params(series_id)
        logger.debug(f"Fetching series info: {self._redacted(url, params)}")

        try:
            response = await self._get_with_retry(get_http_client(), url, params=params)
        except DataNotAvailableError as e:
            logger.warning(f"FRED series info unavailable for {series_id}: {e}")
            return None

        payload = self._parse_json_safe(response)
        series_list = payload.get("seriess") or []
        if not series_list:
            return None
        return series_list[0]

    async def fetch_observations(
        self,
        series_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Optional[List[Observation]]:
        """Fetch observations in the order FRED returns them.

        With a limit the most recent observations are requested (newest first).
        Returns None if FRED doesn't know the series.
        """
        url = f"{self.base_url}/series/observations"
        params = self._params(
            series_id,
            observation_start=start_date,
            observation_end=end_date,
        )
        if limit:
            params["limit"] = limit
            params["sort_order"] = "desc"
        logger.debug(f"Fetching observations: {self._redacted(url, params)}")

        try:
            response = await self._get_with_retry(get_http_client(), url, params=params)
        except DataNotAvailableError as e:
            logger.warning(f"FRED observations unavailable for {series_id}: {e}")
            return None

        payload = self._parse_json_safe(response)
        raw_observations = payload.get("observations")
        if raw_observations is None:
            return None

        return [
            Observation(date=obs["date"], value=self._parse_value(obs.get("value")))
            for obs in raw_observations
            if obs.get("date")  # Skip observations without dates
        ]

    def _parse_value(self, raw: Any) -> Optional[float]:
        if raw in self.MISSING_VALUES:
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            return None

    async def fetch_series(
        self,
        series_id: str,
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Optional[SeriesData]:
        info = await self.fetch_series_info(series_id)
        if info is None:
            return None

        observations = await self.fetch_observations(
            series_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit or self.default_limit,
        )
        if observations is None:
            return None

        return SeriesData(
            id=series_id,
            title=info.get("title") or "Unknown",
            frequency=info.get("frequency_short") or info.get("frequency") or "Unknown",
            units=info.get("units_short") or info.get("units") or "Unknown",
            lastUpdated=info.get("last_updated") or datetime.now(timezone.utc).isoformat(),
            observations=observations,
        )

    def get_available_series_ids(self) -> List[str]:
        return list(self._default_series_ids)

    def add_series_id(self, series_id: str) -> bool:
        """Track a new series. Returns False if it was already tracked."""
        if series_id in self._default_series_ids:
            return False
        self._default_series_ids.append(series_id)
        return True
