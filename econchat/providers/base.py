"""Base provider class with common HTTP retry and error handling logic."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import DataNotAvailableError, UpstreamUnavailableError
from ..models import SeriesData

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Base class for series data providers.

    Subclasses implement provider_name and fetch_series; batch fetching,
    retrying of transient HTTP failures and JSON parsing live here.
    """

    DEFAULT_TIMEOUT = 30.0

    MAX_RETRIES = 3
    RETRY_BACKOFF_FACTOR = 1.0

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Canonical provider name used for logging and context metadata."""
        pass

    @abstractmethod
    async def fetch_series(
        self,
        series_id: str,
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Optional[SeriesData]:
        """Fetch one series. Returns None when the series does not exist."""
        pass

    async def fetch_multiple_series(
        self,
        series_ids: List[str],
        limit: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[SeriesData]:
        """Fetch several series one after another.

        A series that fails or does not exist is logged and left out; the
        rest of the batch still comes back.
        """
        results: List[SeriesData] = []
        for series_id in series_ids:
            try:
                series = await self.fetch_series(
                    series_id, limit=limit, start_date=start_date, end_date=end_date
                )
            except (DataNotAvailableError, UpstreamUnavailableError) as e:
                logger.error(f"Error processing {self.provider_name} series {series_id}: {e}")
                continue
            except Exception as e:
                logger.exception(f"Unexpected error processing {self.provider_name} series {series_id}: {e}")
                continue

            if series is None:
                logger.warning(f"{self.provider_name} series {series_id} not found")
                continue
            results.append(series)
        return results

    async def _get_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """Get request with automatic retry on transient failures.

        Raises:
            DataNotAvailableError: On 404/400 responses
            UpstreamUnavailableError: If all retries fail
        """
        last_error: Optional[Exception] = None
        delay = self.RETRY_BACKOFF_FACTOR

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await client.get(url, **kwargs, timeout=self.timeout)

                if response.status_code == 429:
                    retry_after = str(response.headers.get("Retry-After", ""))
                    if retry_after.isdigit():
                        delay = max(delay, int(retry_after))
                    logger.warning(f"{self.provider_name} rate limited. Retry after {delay}s")

                response.raise_for_status()
                return response

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code

                if status in (400, 404):
                    # FRED answers 400 for unknown series ids
                    raise DataNotAvailableError(
                        f"API returned {status}: {e.response.text[:200]}",
                        provider=self.provider_name,
                    )
                elif status == 429 or status >= 500:
                    if attempt < self.MAX_RETRIES - 1:
                        logger.warning(f"{self.provider_name} returned {status}, retrying...")
                        await asyncio.sleep(delay)
                        delay *= 2
                        continue
                    raise UpstreamUnavailableError(
                        f"Server error {status} after {self.MAX_RETRIES} retries",
                        provider=self.provider_name,
                    )
                else:
                    raise UpstreamUnavailableError(str(e), provider=self.provider_name)

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_error = e
                if attempt < self.MAX_RETRIES - 1:
                    logger.warning(f"Connection error, retrying... (attempt {attempt + 1})")
                    await asyncio.sleep(delay)
                    delay *= 2
                    continue
                raise UpstreamUnavailableError(
                    f"Connection failed after {self.MAX_RETRIES} retries: {str(e)}",
                    provider=self.provider_name,
                )

            except httpx.HTTPError as e:
                raise UpstreamUnavailableError(f"Request failed: {str(e)}", provider=self.provider_name)

        raise UpstreamUnavailableError(
            f"Failed after {self.MAX_RETRIES} retries: {str(last_error)}",
            provider=self.provider_name,
        )

    def _parse_json_safe(self, response: httpx.Response) -> Dict[str, Any]:
        """Parse a JSON response body.

        Raises:
            UpstreamUnavailableError: If JSON parsing fails
        """
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"Failed to parse response: {str(e)}", provider=self.provider_name
            )
