"""Factory that wires the inline completion subsystem together.

The bootstrap process:
1. Loads (or accepts) the completion settings
2. Configures logging when requested
3. Creates the event bus, cache, sanitizer and provider client
4. Instantiates the controller with all dependencies

Usage:
    from inkline.bootstrap import build_inline_completion
    from inkline.editor.document_model import TextBuffer

    buffer = TextBuffer.from_text("function greet(")
    completion = build_inline_completion(buffer)
    completion.bus.subscribe(CompletionNotice, status_bar.show)
    completion.controller.on_edit_event()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .ai.client import AIClient, CompletionProvider
from .completion.cache import SuggestionCache
from .completion.controller import InlineCompletionController
from .completion.sanitizer import ResponseSanitizer
from .editor.document_model import DocumentBuffer
from .editor.syntax.highlighter import KeywordHighlighter, LineHighlighter
from .services.settings import CompletionSettings, SettingsStore, redact_secret
from .ui.events import EventBus
from .utils.logging import setup_logging_from_settings

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class InlineCompletion:
    """Handles to the wired components."""

    settings: CompletionSettings
    controller: InlineCompletionController
    provider: CompletionProvider
    bus: EventBus
    cache: SuggestionCache

    async def aclose(self) -> None:
        await self.controller.aclose()


def build_inline_completion(
    buffer: DocumentBuffer,
    *,
    settings: CompletionSettings | None = None,
    settings_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    provider: CompletionProvider | None = None,
    bus: EventBus | None = None,
    highlighter: LineHighlighter | None = None,
    file_path: str | Path | None = None,
    configure_logging: bool = False,
) -> InlineCompletion:
    """Create and wire every completion component for ``buffer``.

    Args:
        buffer: Document collaborator providing lines, cursor and insertion.
        settings: Explicit settings. When omitted they are loaded through
            :class:`SettingsStore` (``settings_path`` and ``overrides`` apply).
        provider: Completion provider; defaults to an :class:`AIClient` built
            from the settings.
        bus: Event bus shared with the host editor.
        highlighter: Line highlighter; defaults to one chosen from ``file_path``.
        file_path: Path of the edited file, used to pick a highlighter.
        configure_logging: Install the rotating file log handler.

    Returns:
        An :class:`InlineCompletion` bundle.
    """

    if settings is None:
        settings = SettingsStore(settings_path).load(overrides=overrides)
    else:
        settings = settings.normalized()

    if configure_logging:
        setup_logging_from_settings(settings)

    _LOGGER.info(
        "Bootstrapping inline completion (model=%s, base_url=%s, api_key=%s)",
        settings.model,
        settings.base_url,
        redact_secret(settings.api_key) or "<unset>",
    )

    event_bus = bus or EventBus()
    cache = SuggestionCache(settings.cache_capacity)
    completion_provider = provider or AIClient(settings.to_client_settings())
    if not getattr(completion_provider, "available", True):
        _LOGGER.warning("No API key configured; inline completion stays idle until one is set")

    controller = InlineCompletionController(
        buffer,
        completion_provider,
        settings=settings,
        cache=cache,
        sanitizer=ResponseSanitizer(),
        bus=event_bus,
        highlighter=highlighter or KeywordHighlighter.for_path(file_path),
    )
    return InlineCompletion(
        settings=settings,
        controller=controller,
        provider=completion_provider,
        bus=event_bus,
        cache=cache,
    )


__all__ = ["InlineCompletion", "build_inline_completion"]
