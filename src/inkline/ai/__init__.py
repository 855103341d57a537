"""Completion provider client, prompts and error taxonomy."""

from .client import AIClient, ClientSettings, CompletionProvider
from .errors import (
    AuthenticationError,
    MalformedResponseError,
    NetworkError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)

__all__ = [
    "AIClient",
    "ClientSettings",
    "CompletionProvider",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ProviderTimeoutError",
    "NetworkError",
    "MalformedResponseError",
]
