"""
Tool-calling chat orchestration.

One ChatTurn per request:

    Start -> Model-Call-1 (with tools) -> Decide
        no tool calls -> answer from the first response
        tool calls    -> Execute -> Model-Call-2 (no tools) -> answer

The turn never goes past Model-Call-2, even if that response asks for more
tools. Any failure ends in FALLBACK_MESSAGE rather than an exception.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import Settings, get_settings
from ..exceptions import ProtocolViolationError
from ..models import (
    ChatMessage,
    ChatResponse,
    ConversationItem,
    FunctionCallItem,
    FunctionCallOutputItem,
    MessageItem,
    ModelResponse,
    WebSearchCallItem,
)
from .context_service import EconomicContextService
from .llm import BaseLLMProvider
from .tools import ECONOMIC_DATA_TOOL, TOOL_CATALOGUE, parse_economic_data_arguments

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "I apologize, but I couldn't generate a response."

DEFAULT_SYSTEM_PROMPT = (
    "You are Cali, a financial AI advisor specializing in economic analysis and stock insights. "
    "You provide thoughtful, data-driven financial advice based on current economic indicators. "
    "You are helpful, professional, and concise in your responses."
)

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_short_id(prefix: str = "id") -> str:
    """Short unique id (at most 64 chars): <prefix>_<base36 ms>_<3 random chars>."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choice(_BASE36) for _ in range(3))
    max_prefix = 64 - len(timestamp) - len(suffix) - 2
    return f"{prefix[:max_prefix]}_{timestamp}_{suffix}"


@dataclass
class ToolResult:
    """Outcome of one tool call: a success payload or an {"error": ...} payload."""

    call_id: str
    name: str
    payload: Dict[str, Any]

    @property
    def is_error(self) -> bool:
        return "error" in self.payload


class ChatTurn:
    """Conversation state for a single request. Not shared between requests."""

    def __init__(
        self,
        llm: BaseLLMProvider,
        context_service: EconomicContextService,
        conversation: List[ConversationItem],
        system_prompt: str,
    ) -> None:
        self.llm = llm
        self.context_service = context_service
        self.conversation = conversation
        self.system_prompt = system_prompt
        self.model_calls = 0

    def _ensure_system_message(self) -> None:
        has_system = any(
            isinstance(item, MessageItem) and item.role == "system" for item in self.conversation
        )
        if not has_system:
            self.conversation.insert(0, MessageItem(role="system", content=self.system_prompt))

    async def _call_model(self, tools: Optional[List[Dict[str, Any]]] = None) -> ModelResponse:
        self.model_calls += 1
        return await self.llm.create_response(self.conversation, tools=tools)

    async def run(self) -> str:
        self._ensure_system_message()

        try:
            response = await self._call_model(tools=TOOL_CATALOGUE)
            logger.debug(f"Initial response ID: {response.id}")

            function_calls = response.function_calls
            if not function_calls:
                return self._direct_answer(response)

            outputs = await self._execute(function_calls)
            self.conversation.extend(response.output)
            self.conversation.extend(outputs)

            final_response = await self._call_model()
            return final_response.output_text or FALLBACK_MESSAGE

        except Exception as e:
            logger.error(f"Error processing chat: {e}", exc_info=True)
            return FALLBACK_MESSAGE

    @staticmethod
    def _direct_answer(response: ModelResponse) -> str:
        """Answer from a response without tool calls."""
        output = response.output
        if output and isinstance(output[0], WebSearchCallItem):
            # The search call item carries no text; the answer is the message after it
            logger.debug(f"Spotted web search response for call: {output[0].id}")
            if len(output) > 1 and isinstance(output[1], MessageItem):
                message = output[1]
                if not isinstance(message.content, str) and message.content:
                    return message.content[0].text or FALLBACK_MESSAGE
            return FALLBACK_MESSAGE

        logger.debug("Returning model response")
        return response.output_text or FALLBACK_MESSAGE

    async def _execute(self, function_calls: List[FunctionCallItem]) -> List[FunctionCallOutputItem]:
        """Run every tool call and return one output per call, in request order."""
        results = await asyncio.gather(*(self._run_tool_call(call) for call in function_calls))
        failed = sum(1 for result in results if result.is_error)
        logger.info(f"Executed {len(results)} tool call(s), {failed} failed")
        outputs = [self._build_output(result) for result in results]

        expected = [call.call_id for call in function_calls]
        produced = [output.call_id for output in outputs]
        if produced != expected:
            raise ProtocolViolationError(
                f"Tool outputs {produced} do not match tool calls {expected}"
            )
        return outputs

    async def _run_tool_call(self, call: FunctionCallItem) -> ToolResult:
        logger.info(f"Handling function call: {call.name} with callId: {call.call_id}")
        try:
            if call.name == ECONOMIC_DATA_TOOL:
                payload = await self._get_economic_data(call.arguments)
            else:
                payload = {"error": f"Unknown tool: {call.name}"}
        except Exception as e:
            logger.error(f"Error processing function call {call.name}: {e}")
            payload = {"error": f"Error processing function: {e}"}
        return ToolResult(call_id=call.call_id, name=call.name, payload=payload)

    async def _get_economic_data(self, raw_arguments: str) -> Dict[str, Any]:
        args = parse_economic_data_arguments(raw_arguments)
        contexts = await self.context_service.get_contexts_for_series(
            args.seriesIds,
            limit=args.limit,
            start_date=args.startDate,
            end_date=args.endDate,
        )

        formatted = []
        for context in contexts:
            observations = context.content.observations
            if args.limit and args.limit > 0:
                observations = observations[:args.limit]
            formatted.append({
                "seriesId": context.content.seriesId,
                "title": context.content.title,
                "observations": [obs.model_dump() for obs in observations],
                "frequency": context.metadata.frequency,
                "units": context.metadata.units,
                "lastUpdated": context.metadata.lastUpdated,
            })

        return {
            "data": formatted,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @staticmethod
    def _serialize_payload(payload: Dict[str, Any]) -> str:
        return json.dumps(payload)

    def _build_output(self, result: ToolResult) -> FunctionCallOutputItem:
        try:
            output = FunctionCallOutputItem(
                call_id=result.call_id,
                output=self._serialize_payload(result.payload),
            )
            logger.debug(f"Added function response for call_id: {result.call_id}")
            return output
        except Exception as e:
            logger.error(f"Error building output for call_id {result.call_id}: {e}")
            return FunctionCallOutputItem(
                id=generate_short_id("err"),
                call_id=result.call_id,
                output=json.dumps({"error": "Error processing function output"}),
            )


class ChatOrchestrator:
    """Entry point for chat requests.

    Holds only shared collaborators; each request gets its own ChatTurn.
    """

    def __init__(
        self,
        llm: BaseLLMProvider,
        context_service: EconomicContextService,
        settings: Optional[Settings] = None,
    ) -> None:
        self.llm = llm
        self.context_service = context_service
        self.settings = settings or get_settings()

    @property
    def system_prompt(self) -> str:
        return self.settings.assistant_system_prompt or DEFAULT_SYSTEM_PROMPT

    async def process_chat(
        self,
        prompt: str,
        messages: Optional[List[ChatMessage]] = None,
    ) -> ChatResponse:
        conversation: List[ConversationItem] = [
            MessageItem(role=message.role, content=message.content) for message in messages or []
        ]
        conversation.append(MessageItem(role="user", content=prompt))

        turn = ChatTurn(self.llm, self.context_service, conversation, self.system_prompt)
        return ChatResponse(response=await turn.run())
