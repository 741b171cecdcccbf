from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


# ============================================================================
# Series data
# ============================================================================

class Observation(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    value: Optional[float] = None  # None marks a missing observation (FRED ".")


class SeriesData(BaseModel):
    """One FRED series as fetched; replaced wholesale, never patched."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    frequency: str
    units: str
    lastUpdated: str
    observations: List[Observation] = Field(default_factory=list)


class CacheEntry(BaseModel):
    """Stored value for one series: the data plus its insertion time (epoch seconds)."""

    cachedAt: float
    series: SeriesData


class ContextContent(BaseModel):
    seriesId: str
    title: str
    observations: List[Observation]


class ContextMetadata(BaseModel):
    source: str
    timestamp: str
    seriesId: Optional[str] = None
    title: Optional[str] = None
    frequency: Optional[str] = None
    units: Optional[str] = None
    lastUpdated: Optional[str] = None


class Context(BaseModel):
    contextId: str
    type: Literal["economic_data"] = "economic_data"
    content: ContextContent
    metadata: ContextMetadata


# ============================================================================
# Conversation items (Responses API)
# ============================================================================

class ContentPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class MessageItem(BaseModel):
    """Role/content message. Input messages carry a string, model output carries parts."""

    model_config = ConfigDict(extra="allow")

    type: Literal["message"] = "message"
    role: str
    content: Union[str, List[ContentPart]] = ""

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text or "" for part in self.content if part.type == "output_text")


class FunctionCallItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["function_call"] = "function_call"
    id: Optional[str] = None
    call_id: str
    name: str
    arguments: str = ""


class WebSearchCallItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["web_search_call"] = "web_search_call"
    id: Optional[str] = None
    status: Optional[str] = None


class FunctionCallOutputItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["function_call_output"] = "function_call_output"
    id: Optional[str] = None
    call_id: str
    output: str


class OpaqueItem(BaseModel):
    """Any other item kind the provider emits (reasoning, ...), kept so it can be echoed back."""

    model_config = ConfigDict(extra="allow")

    type: str


KNOWN_ITEM_TYPES = {"message", "function_call", "web_search_call", "function_call_output"}


def _item_kind(value: Any) -> str:
    kind = value.get("type", "message") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in KNOWN_ITEM_TYPES else "other"


ConversationItem = Annotated[
    Union[
        Annotated[MessageItem, Tag("message")],
        Annotated[FunctionCallItem, Tag("function_call")],
        Annotated[WebSearchCallItem, Tag("web_search_call")],
        Annotated[FunctionCallOutputItem, Tag("function_call_output")],
        Annotated[OpaqueItem, Tag("other")],
    ],
    Discriminator(_item_kind),
]


class ModelResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    output: List[ConversationItem] = Field(default_factory=list)

    @property
    def output_text(self) -> str:
        """All assistant output text, concatenated in output order."""
        return "".join(
            item.text for item in self.output
            if isinstance(item, MessageItem) and not isinstance(item.content, str)
        )

    @property
    def function_calls(self) -> List[FunctionCallItem]:
        return [item for item in self.output if isinstance(item, FunctionCallItem)]


# ============================================================================
# API payloads
# ============================================================================

class ChatMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    prompt: str = Field(min_length=1)
    messages: Optional[List[ChatMessage]] = None


class ChatResponse(BaseModel):
    response: str


class SeriesRequest(BaseModel):
    seriesIds: List[str]


class AddSeriesRequest(BaseModel):
    seriesId: str = Field(min_length=1)


class ContextsResponse(BaseModel):
    contexts: List[Context]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    services: Dict[str, bool]
    cache: Dict[str, Any]
