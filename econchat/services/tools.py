"""Tool catalogue offered to the model and the argument shapes it must send."""
from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import MalformedToolArgumentsError

ECONOMIC_DATA_TOOL = "get_economic_data"

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

TOOL_CATALOGUE: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": ECONOMIC_DATA_TOOL,
        "description": "Get economic data sourced from FRED (Federal Reserve Economic Data) for economic analysis",
        "parameters": {
            "type": "object",
            "properties": {
                "seriesIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Array of FRED series IDs to retrieve data for.",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Number of most recent observations to return for each series (optional)",
                },
                "startDate": {
                    "type": "string",
                    "format": "date",
                    "pattern": DATE_PATTERN,
                    "description": "Start date in YYYY-MM-DD format (optional).",
                },
                "endDate": {
                    "type": "string",
                    "format": "date",
                    "pattern": DATE_PATTERN,
                    "description": "End date in YYYY-MM-DD format (optional).",
                },
            },
            "required": ["seriesIds"],
        },
        "strict": False,
    },
    {
        "type": "web_search_preview",
        "user_location": {
            "type": "approximate",
            "timezone": "America/New_York",
        },
        "search_context_size": "medium",
    },
]


class EconomicDataArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")

    seriesIds: List[str] = Field(min_length=1)
    limit: Optional[int] = Field(default=None, ge=1)
    startDate: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    endDate: Optional[str] = Field(default=None, pattern=DATE_PATTERN)

    @field_validator("startDate", "endDate")
    @classmethod
    def check_calendar_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            date.fromisoformat(v)  # ValueError for impossible dates like 2024-13-45
        return v


def parse_economic_data_arguments(raw: str) -> EconomicDataArguments:
    """Parse the JSON arguments of a get_economic_data call.

    Raises:
        MalformedToolArgumentsError: If the arguments are not valid JSON or
            don't match EconomicDataArguments
    """
    try:
        payload = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise MalformedToolArgumentsError(
            f"Arguments are not valid JSON: {e.msg}", tool=ECONOMIC_DATA_TOOL
        ) from e

    if not isinstance(payload, dict):
        raise MalformedToolArgumentsError("Arguments must be a JSON object", tool=ECONOMIC_DATA_TOOL)

    try:
        return EconomicDataArguments.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise MalformedToolArgumentsError(
            f"Invalid arguments: {fields}", tool=ECONOMIC_DATA_TOOL
        ) from e
