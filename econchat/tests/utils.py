from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from econchat.models import ModelResponse, Observation, SeriesData
from econchat.providers.base import BaseProvider
from econchat.services.llm import BaseLLMProvider


class MockAsyncResponse:
    def __init__(
        self,
        json_data: Any,
        *,
        headers: Optional[Dict[str, str]] = None,
        status_code: int = 200,
        text: str = "",
    ) -> None:
        self._json = json_data
        self.headers = headers or {}
        self.status_code = status_code
        self.text = text
        self.url = "https://example.com/mock"

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", self.url)
            response = httpx.Response(self.status_code, request=request, text=self.text)
            raise httpx.HTTPStatusError(f"HTTP {self.status_code}", request=request, response=response)

    def json(self) -> Any:
        return self._json


class MockAsyncClient:
    def __init__(self, responses: Iterable[MockAsyncResponse]) -> None:
        self._responses: List[MockAsyncResponse] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def get(self, url: str, *, params: Optional[Dict[str, Any]] = None, **_kwargs) -> MockAsyncResponse:
        self.calls.append({"method": "GET", "url": url, "params": dict(params or {})})
        return self._next(url)

    async def post(self, url: str, *, json: Any = None, **_kwargs) -> MockAsyncResponse:
        self.calls.append({"method": "POST", "url": url, "json": json})
        return self._next(url)

    def _next(self, url: str) -> MockAsyncResponse:
        if not self._responses:
            raise AssertionError("No more mock responses available")
        response = self._responses.pop(0)
        response.url = url
        return response


class FakeClock:
    """Manually advanced clock for freshness tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_series(series_id: str, title: Optional[str] = None, values: Sequence[Optional[float]] = (1.0, 2.0, 3.0)) -> SeriesData:
    return SeriesData(
        id=series_id,
        title=title or f"{series_id} title",
        frequency="M",
        units="Percent",
        lastUpdated="2024-01-05 07:51:02-06",
        observations=[
            Observation(date=f"2023-{month:02d}-01", value=value)
            for month, value in enumerate(values, start=1)
        ],
    )


class StubProvider(BaseProvider):
    """In-memory series provider counting fetches per series id."""

    def __init__(self, series: Iterable[SeriesData] = (), failures: Optional[Dict[str, Exception]] = None) -> None:
        super().__init__()
        self.series = {item.id: item for item in series}
        self.failures = failures or {}
        self.fetch_counts: Counter = Counter()
        self.batches: List[Dict[str, Any]] = []
        self.tracked: List[str] = list(self.series)

    @property
    def provider_name(self) -> str:
        return "STUB"

    async def fetch_multiple_series(self, series_ids, limit=None, start_date=None, end_date=None):
        self.batches.append({
            "ids": list(series_ids),
            "limit": limit,
            "start_date": start_date,
            "end_date": end_date,
        })
        return await super().fetch_multiple_series(
            series_ids, limit=limit, start_date=start_date, end_date=end_date
        )

    async def fetch_series(self, series_id, limit=None, start_date=None, end_date=None):
        self.fetch_counts[series_id] += 1
        if series_id in self.failures:
            raise self.failures[series_id]
        return self.series.get(series_id)

    def get_available_series_ids(self) -> List[str]:
        return list(self.tracked)

    def add_series_id(self, series_id: str) -> bool:
        if series_id in self.tracked:
            return False
        self.tracked.append(series_id)
        return True


def model_response(*output: Dict[str, Any], response_id: str = "resp_test") -> ModelResponse:
    return ModelResponse.model_validate({"id": response_id, "output": list(output)})


def assistant_message(text: str, item_id: str = "msg_1") -> Dict[str, Any]:
    return {
        "type": "message",
        "id": item_id,
        "status": "completed",
        "role": "assistant",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }


def function_call(call_id: str, arguments: str, name: str = "get_economic_data") -> Dict[str, Any]:
    return {
        "type": "function_call",
        "id": f"fc_{call_id}",
        "call_id": call_id,
        "name": name,
        "arguments": arguments,
        "status": "completed",
    }


def web_search_call(item_id: str = "ws_1") -> Dict[str, Any]:
    return {"type": "web_search_call", "id": item_id, "status": "completed"}


class ScriptedLLM(BaseLLMProvider):
    """Returns (or raises) the scripted responses in order and records every call."""

    def __init__(self, responses: Iterable[Union[ModelResponse, Exception]]) -> None:
        super().__init__(model="test-model")
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def create_response(self, input_items, tools=None) -> ModelResponse:
        self.calls.append({"input": list(input_items), "tools": tools})
        if not self.responses:
            raise AssertionError("No more scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def run(coro):
    """Helper to run async functions in synchronous tests."""
    return asyncio.run(coro)
