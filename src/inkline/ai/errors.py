"""Standardized error types for completion provider failures.

Every failure raised while talking to a completion provider is mapped onto
one of the classes below exactly once, at the scheduler boundary. The
``notify_user`` flag decides whether the failure reaches the notification
channel or is only logged.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, ClassVar

import httpx
import openai


class ErrorCode:
    """Constants for provider error codes."""

    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    PROVIDER_ERROR = "provider_error"


@dataclass
class ProviderError(Exception):
    """Base exception for completion provider failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str = field(default=ErrorCode.PROVIDER_ERROR)
    message: str = field(default="Completion provider request failed")
    details: dict[str, Any] = field(default_factory=dict)

    notify_user: ClassVar[bool] = False

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class AuthenticationError(ProviderError):
    """The provider rejected the configured credentials. Never retried."""

    error_code: str = field(default=ErrorCode.AUTHENTICATION)
    message: str = field(default="Authentication failed - check your API key")
    details: dict[str, Any] = field(default_factory=dict)

    notify_user: ClassVar[bool] = True


@dataclass
class RateLimitError(ProviderError):
    """The provider throttled the request. Not retried automatically."""

    error_code: str = field(default=ErrorCode.RATE_LIMITED)
    message: str = field(default="Rate limit exceeded - please try again later")
    details: dict[str, Any] = field(default_factory=dict)

    notify_user: ClassVar[bool] = True


@dataclass
class ProviderTimeoutError(ProviderError):
    """The request exceeded its time budget and was aborted."""

    error_code: str = field(default=ErrorCode.TIMEOUT)
    message: str = field(default="Request timeout - provider took too long to respond")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class NetworkError(ProviderError):
    """The provider could not be reached or failed on its side."""

    error_code: str = field(default=ErrorCode.NETWORK)
    message: str = field(default="Network error - check your connection")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class MalformedResponseError(ProviderError):
    """The provider answered with a payload that carries no completion text."""

    error_code: str = field(default=ErrorCode.MALFORMED_RESPONSE)
    message: str = field(default="Invalid response format from provider")
    details: dict[str, Any] = field(default_factory=dict)


def classify_exception(exc: BaseException) -> ProviderError:
    """Map transport and SDK exceptions onto the provider error taxonomy."""

    if isinstance(exc, ProviderError):
        return exc
    detail = {"exception": type(exc).__name__}
    status = getattr(exc, "status_code", None)
    if status is not None:
        detail["status_code"] = status

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationError(details=detail)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(details=detail)
    # APITimeoutError subclasses APIConnectionError, so it is checked first.
    if isinstance(exc, (openai.APITimeoutError, httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ProviderTimeoutError(details=detail)
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError, ConnectionError)):
        return NetworkError(details=detail)
    if isinstance(exc, openai.InternalServerError):
        return NetworkError(message=f"Provider is unavailable ({status})", details=detail)
    if isinstance(exc, openai.APIStatusError):
        return ProviderError(message=f"Provider request failed ({status})", details=detail)
    if isinstance(exc, (ValueError, KeyError, TypeError, AttributeError, IndexError)):
        return MalformedResponseError(details=detail)
    return ProviderError(message=f"Completion provider error: {exc}", details=detail)


__all__ = [
    "ErrorCode",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ProviderTimeoutError",
    "NetworkError",
    "MalformedResponseError",
    "classify_exception",
]
