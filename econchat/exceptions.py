"""Custom exception hierarchy for econchat.

Exception Hierarchy:
    EconChatError (base)
    ├── ConfigurationError
    ├── DataProviderError
    │   ├── UpstreamUnavailableError
    │   └── DataNotAvailableError
    ├── MalformedToolArgumentsError
    ├── ProtocolViolationError
    └── ExternalServiceError

Fetcher and model failures are recovered where they happen: a failing series
is left out of a batch, a failing tool call gets an error payload, and a
failing chat turn returns the fallback message.
"""
from __future__ import annotations

from typing import Optional, Dict, Any


class EconChatError(Exception):
    """Base exception for all econchat errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(EconChatError):
    """Raised when there's a configuration problem (missing API key, bad value)."""
    pass


# Data Provider Errors
class DataProviderError(EconChatError):
    """Base class for data provider errors.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, code, details)


class UpstreamUnavailableError(DataProviderError):
    """Raised when the provider call failed or timed out."""
    pass


class DataNotAvailableError(DataProviderError):
    """Raised when a requested series does not exist upstream."""
    pass


class MalformedToolArgumentsError(EconChatError):
    """Raised when the model emitted tool arguments that don't match the expected shape.

    Attributes:
        tool: Name of the tool whose arguments failed to parse
    """

    def __init__(
        self,
        message: str,
        tool: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.tool = tool
        details = details or {}
        if tool:
            details["tool"] = tool
        super().__init__(message, code, details)


class ProtocolViolationError(EconChatError):
    """Raised when a tool-call request would be left without its output."""
    pass


class ExternalServiceError(EconChatError):
    """Raised when an external service (model provider, Redis) fails.

    Attributes:
        service: Name of the external service
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.service = service
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, code, details)


def get_error_response(error: Exception) -> Dict[str, Any]:
    """Convert any exception to an API error response.

    Args:
        error: The exception to convert

    Returns:
        Dictionary suitable for API error response
    """
    if isinstance(error, EconChatError):
        return error.to_dict()

    return {
        "error": "InternalError",
        "message": str(error),
        "details": {},
    }
