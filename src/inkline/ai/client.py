"""Async completion client built around OpenAI-compatible endpoints."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Protocol, runtime_checkable

from openai import AsyncOpenAI
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import prompts
from .errors import MalformedResponseError, NetworkError, ProviderError, classify_exception

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class CompletionProvider(Protocol):
    """Opaque asynchronous capability that turns a context into raw text.

    Implementations raise one of the :mod:`inkline.ai.errors` classes on
    failure. Cancelling the awaiting task must abort the underlying request.
    """

    async def request_completion(self, context_text: str, model_id: str) -> str:  # pragma: no cover - protocol stub
        ...


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the completion client."""

    base_url: str
    api_key: str
    model: str
    request_timeout: float | None = 10.0
    max_retries: int = 2  # retries after the first attempt
    retry_min_seconds: float = 0.25
    retry_max_seconds: float = 2.0
    temperature: float = prompts.COMPLETION_TEMPERATURE
    max_output_tokens: int = prompts.COMPLETION_MAX_TOKENS
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class AIClient:
    """Completion provider backed by an ``AsyncOpenAI`` chat completions client."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)
        self._models_cache: List[str] | None = None
        self._models_lock = asyncio.Lock()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def available(self) -> bool:
        return bool((self._settings.api_key or "").strip())

    async def request_completion(self, context_text: str, model_id: str) -> str:
        """Request a raw completion for ``context_text`` from ``model_id``."""

        payload = self._build_payload(context_text, model_id or self._settings.model)
        LOGGER.debug("Requesting completion via %s (%s context chars)", payload["model"], len(context_text))
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._create(payload)
        except asyncio.CancelledError:
            raise
        except ProviderError:
            raise
        except Exception as exc:
            raise classify_exception(exc) from exc
        return self._extract_completion_text(response)

    async def list_models(self, *, force_refresh: bool = False) -> List[str]:
        """Return a list of supported model identifiers."""

        if self._models_cache is not None and not force_refresh:
            return list(self._models_cache)

        async with self._models_lock:
            if self._models_cache is not None and not force_refresh:
                return list(self._models_cache)

            try:
                response = await self._client.models.list()
            except Exception as exc:
                raise classify_exception(exc) from exc
            models = [item.id for item in response.data if getattr(item, "id", None)]
            self._models_cache = models
            return list(models)

    async def _create(self, payload: Mapping[str, Any]) -> Any:
        try:
            return await self._client.chat.completions.create(**payload)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Classified here so the retry policy can tell transient failures apart.
            raise classify_exception(exc) from exc

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key or "missing",
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_retries=0,
            default_headers=headers,
        )

    def _build_payload(self, context_text: str, model_id: str) -> dict[str, Any]:
        return {
            "model": model_id,
            "messages": prompts.build_messages(context_text),
            "temperature": self._settings.temperature,
            "max_tokens": max(1, int(self._settings.max_output_tokens)),
            "stop": list(prompts.COMPLETION_STOP_SEQUENCES),
            "stream": False,
        }

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(0, self._settings.max_retries) + 1),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(NetworkError),
        )

    @staticmethod
    def _extract_completion_text(response: Any) -> str:
        choices = getattr(response, "choices", None)
        if not choices:
            raise MalformedResponseError(details={"reason": "no choices"})
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = [str(getattr(part, "text", "") or "") for part in content]
            return "".join(parts)
        text = getattr(choices[0], "text", None)
        if isinstance(text, str):
            return text
        raise MalformedResponseError(details={"reason": "choice carries no text"})

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        try:
            result = close()
        except Exception as exc:  # pragma: no cover - defensive guard
            LOGGER.debug("AI client close failed to start: %s", exc)
            return
        if inspect.isawaitable(result):
            await result


__all__ = ["AIClient", "ClientSettings", "CompletionProvider"]
