"""
LLM provider abstraction.

The orchestrator only needs one operation: send a conversation (plus an
optional tool catalogue) and get back the model's ordered output items.
OpenAIResponsesProvider implements it against the Responses API.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import Settings, get_settings
from ..exceptions import ExternalServiceError
from ..models import ConversationItem, ModelResponse
from .http_pool import get_http_client

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """Base class for model providers"""

    def __init__(self, model: str, temperature: float = 0.7):
        self.model = model
        self.temperature = temperature

    @abstractmethod
    async def create_response(
        self,
        input_items: Sequence[ConversationItem],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelResponse:
        """
        Run one model round-trip.

        Args:
            input_items: Full conversation so far
            tools: Tool catalogue offered to the model, or None for none

        Returns:
            ModelResponse with the ordered output items
        """
        pass

    @staticmethod
    def _serialize_input(input_items: Sequence[ConversationItem]) -> List[Dict[str, Any]]:
        return [item.model_dump(exclude_none=True) for item in input_items]


class OpenAIResponsesProvider(BaseLLMProvider):
    """OpenAI Responses API provider"""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.7,
        timeout: float = 60.0,
    ):
        super().__init__(model, temperature)
        if not api_key:
            logger.error("OPENAI_API_KEY is not set. OpenAI API calls will fail.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def create_response(
        self,
        input_items: Sequence[ConversationItem],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ModelResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": self._serialize_input(input_items),
            "temperature": self.temperature,
        }
        if tools:
            payload["tools"] = tools

        client = get_http_client()
        try:
            response = await client.post(
                f"{self.base_url}/responses",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenAI API error {e.response.status_code}: {e.response.text[:200]}")
            raise ExternalServiceError(
                f"Responses API returned {e.response.status_code}", service="openai"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"OpenAI API error: {e}")
            raise ExternalServiceError(f"Responses API request failed: {e}", service="openai") from e

        result = ModelResponse.model_validate(response.json())
        logger.debug(f"Response {result.id}: {[item.type for item in result.output]}")
        return result


def create_llm_provider(settings: Optional[Settings] = None) -> BaseLLMProvider:
    settings = settings or get_settings()
    return OpenAIResponsesProvider(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        base_url=settings.openai_base_url,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
    )
