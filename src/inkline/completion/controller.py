"""State machine tying editor events to the completion pipeline."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum

from ..ai.client import CompletionProvider
from ..ai.errors import ProviderError
from ..editor.document_model import DocumentBuffer
from ..editor.syntax.highlighter import LineHighlighter, PlainHighlighter, StyledSegment
from ..services import telemetry as telemetry_service
from ..services.settings import CompletionSettings
from ..ui.events import (
    CompletionStateChanged,
    EventBus,
    PreviewCleared,
    PreviewShown,
    SuggestionAccepted,
)
from .cache import SuggestionCache
from .context import extract_context, has_enough_context, should_trigger
from .overlay import DisplayLine, compose_overlay, highlight, highlight_continuation
from .sanitizer import ResponseSanitizer, shape_suggestion
from .scheduler import CompletionOutcome, CompletionScheduler

LOGGER = logging.getLogger(__name__)


class CompletionState(Enum):
    """Lifecycle states of the inline completion controller."""

    IDLE = "idle"
    PENDING = "pending"
    PREVIEWING = "previewing"
    ACCEPTED = "accepted"  # Transient, resolves to IDLE in the same call
    DISMISSED = "dismissed"  # Transient, resolves to IDLE in the same call


@dataclass(frozen=True, slots=True)
class PreviewState:
    """The single visible suggestion, valid only for its own generation."""

    suggestion_text: str
    anchor_row: int
    anchor_column: int
    generation: int


@dataclass(frozen=True, slots=True)
class CompletionStatus:
    """Snapshot of controller state for status bars and diagnostics."""

    state: CompletionState
    enabled: bool
    model: str
    generation: int
    in_flight: bool
    cache_size: int
    has_preview: bool


@dataclass(frozen=True, slots=True)
class _RequestAnchor:
    row: int
    column: int
    line: str
    context: str


class InlineCompletionController:
    """Coordinates edits, requests, sanitizing, caching and previews.

    Runs on a single asyncio event loop. The debounce timer and the provider
    await are the only suspension points; every other transition happens
    synchronously inside the editor callbacks below.
    """

    def __init__(
        self,
        buffer: DocumentBuffer,
        provider: CompletionProvider,
        *,
        settings: CompletionSettings | None = None,
        cache: SuggestionCache | None = None,
        sanitizer: ResponseSanitizer | None = None,
        bus: EventBus | None = None,
        highlighter: LineHighlighter | None = None,
    ) -> None:
        self._settings = (settings or CompletionSettings()).normalized()
        self._buffer = buffer
        self._provider = provider
        self._cache = cache or SuggestionCache(self._settings.cache_capacity)
        self._sanitizer = sanitizer or ResponseSanitizer()
        self._bus = bus or EventBus()
        self._highlighter = highlighter or PlainHighlighter()
        self._model = self._settings.model
        self._enabled = self._settings.enabled
        self._state = CompletionState.IDLE
        self._preview: PreviewState | None = None
        self._anchor: _RequestAnchor | None = None
        self._scheduler = CompletionScheduler(
            provider,
            on_trigger=self._on_trigger,
            on_result=self._on_outcome,
            debounce_seconds=self._settings.debounce_seconds,
            timeout_seconds=self._settings.timeout_seconds,
            bus=self._bus,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def state(self) -> CompletionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._scheduler.generation

    @property
    def model(self) -> str:
        return self._model

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def cache(self) -> SuggestionCache:
        return self._cache

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def scheduler(self) -> CompletionScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Editor-facing surface
    # ------------------------------------------------------------------
    def on_edit_event(self) -> None:
        """Handle a text edit: drop any preview or request, then re-arm the debounce."""

        self._reset("edit")
        if not self._can_request():
            return
        row, column = self._buffer.get_cursor()
        line = self._line_at(row)
        if should_trigger(line, column):
            self._scheduler.on_edit()

    def on_cancel_event(self, reason: str = "escape") -> None:
        """Handle escape, cursor movement or a mode change."""

        self._reset(reason)

    def get_preview_state(self) -> PreviewState | None:
        preview = self._preview
        if preview is None:
            return None
        if preview.generation != self._scheduler.generation:
            LOGGER.debug("Discarding preview from stale generation %s", preview.generation)
            self._preview = None
            if self._state is CompletionState.PREVIEWING:
                self._set_state(CompletionState.IDLE)
            return None
        return preview

    def accept_preview(self) -> bool:
        """Insert the visible suggestion into the buffer. Returns False without one."""

        preview = self.get_preview_state()
        if preview is None:
            return False
        self._preview = None
        self._set_state(CompletionState.ACCEPTED)
        try:
            self._buffer.apply_text(preview.suggestion_text)
        finally:
            self._scheduler.cancel("accept")
            self._anchor = None
            self._set_state(CompletionState.IDLE)
        LOGGER.debug("Accepted suggestion (%s chars)", len(preview.suggestion_text))
        self._bus.publish(
            SuggestionAccepted(
                text=preview.suggestion_text,
                row=preview.anchor_row,
                column=preview.anchor_column,
            )
        )
        return True

    def dismiss_preview(self) -> bool:
        """Discard the visible suggestion without touching the buffer."""

        preview = self.get_preview_state()
        if preview is None:
            return False
        self._preview = None
        self._set_state(CompletionState.DISMISSED)
        self._scheduler.cancel("dismiss")
        self._anchor = None
        self._bus.publish(PreviewCleared(reason="dismiss"))
        self._set_state(CompletionState.IDLE)
        return True

    def set_model(self, model_id: str) -> None:
        """Switch models; cached suggestions from the previous model are dropped."""

        model_id = (model_id or "").strip()
        if not model_id:
            raise ValueError("model_id must be a non-empty string")
        self._cache.clear()
        self._reset("model_change")
        if model_id != self._model:
            LOGGER.info("Inline completion model set to %s", model_id)
        self._model = model_id

    async def switch_model(self, model_id: str) -> bool:
        """Switch to ``model_id`` if the provider lists it as supported.

        Returns ``False`` and keeps the current model for an unknown
        identifier. Providers without a model list, or whose listing fails,
        accept any identifier.
        """

        model_id = (model_id or "").strip()
        if not model_id:
            raise ValueError("model_id must be a non-empty string")
        list_models = getattr(self._provider, "list_models", None)
        if list_models is not None:
            try:
                supported = await list_models()
            except ProviderError as exc:
                LOGGER.warning("Could not list models (%s); switching to %s unchecked", exc, model_id)
            else:
                if supported and model_id not in supported:
                    LOGGER.info("Unknown model %s; available: %s", model_id, ", ".join(supported))
                    return False
        self.set_model(model_id)
        return True

    def trigger_now(self) -> bool:
        """Request a suggestion immediately, as a manual trigger does."""

        if not self._can_request():
            return False
        if self.get_preview_state() is not None:
            return False
        return self._scheduler.trigger_now()

    def set_enabled(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            self._reset("disabled")
        LOGGER.info("Inline completion %s", "enabled" if enabled else "disabled")

    def toggle(self) -> bool:
        self.set_enabled(not self._enabled)
        return self._enabled

    def status(self) -> CompletionStatus:
        return CompletionStatus(
            state=self._state,
            enabled=self._enabled,
            model=self._model,
            generation=self._scheduler.generation,
            in_flight=self._scheduler.in_flight,
            cache_size=len(self._cache),
            has_preview=self.get_preview_state() is not None,
        )

    def display_line(self, row: int) -> DisplayLine:
        """Compose the preview onto ``row`` if the preview is anchored there."""

        line = self._line_at(row)
        preview = self.get_preview_state()
        if preview is None or preview.anchor_row != row:
            return DisplayLine.plain(line)
        return compose_overlay(line, preview.anchor_column, preview.suggestion_text)

    def render_line(self, row: int, highlighter: LineHighlighter | None = None) -> list[StyledSegment]:
        """Return styled segments for ``row`` including any inline ghost text."""

        return highlight(self.display_line(row), highlighter or self._highlighter)

    def render_continuation(self, row: int) -> list[list[StyledSegment]]:
        """Return ghost lines that follow ``row`` for multi-line suggestions."""

        return highlight_continuation(self.display_line(row))

    async def aclose(self) -> None:
        self._reset("close")
        await self._scheduler.aclose()
        close = getattr(self._provider, "aclose", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    # ------------------------------------------------------------------
    # Scheduler callbacks
    # ------------------------------------------------------------------
    def _on_trigger(self) -> None:
        if not self._can_request() or self._state is not CompletionState.IDLE:
            return
        row, column = self._buffer.get_cursor()
        line = self._line_at(row)
        context = extract_context(
            self._buffer.get_lines(),
            row,
            column,
            max_lines=self._settings.max_context_lines,
            max_chars=self._settings.max_context_chars,
        )
        if not has_enough_context(context, self._settings.min_context_chars):
            LOGGER.debug("Context too short for a completion request (%s chars)", len(context.strip()))
            return

        anchor = _RequestAnchor(row=row, column=column, line=line, context=context)
        cached = self._cache.get(context)
        if cached is not None:
            self._show_preview(anchor, cached, from_cache=True)
            return

        if self._scheduler.submit(context, self._model) is None:
            return
        self._anchor = anchor
        self._set_state(CompletionState.PENDING)

    def _on_outcome(self, outcome: CompletionOutcome) -> None:
        if outcome.generation != self._scheduler.generation:
            LOGGER.debug(
                "Discarding stale completion (generation %s, current %s)",
                outcome.generation,
                self._scheduler.generation,
            )
            telemetry_service.emit("completion.stale_discarded", {"generation": outcome.generation})
            return
        anchor = self._anchor
        self._anchor = None
        if anchor is None or self._state is not CompletionState.PENDING:
            return
        if not outcome.ok:
            self._set_state(CompletionState.IDLE)
            return

        sanitized = self._sanitizer.sanitize(outcome.raw_text)
        if not sanitized:
            LOGGER.debug("Provider response sanitized to nothing")
            self._set_state(CompletionState.IDLE)
            return
        self._cache.put(anchor.context, sanitized)
        self._show_preview(anchor, sanitized, from_cache=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _show_preview(self, anchor: _RequestAnchor, sanitized: str, *, from_cache: bool) -> None:
        shaped = shape_suggestion(
            sanitized,
            anchor.line,
            anchor.column,
            max_chars=self._settings.max_preview_chars,
            max_lines=self._settings.max_preview_lines,
        )
        if not shaped:
            self._set_state(CompletionState.IDLE)
            return
        generation = self._scheduler.generation
        self._preview = PreviewState(
            suggestion_text=shaped,
            anchor_row=anchor.row,
            anchor_column=anchor.column,
            generation=generation,
        )
        self._set_state(CompletionState.PREVIEWING)
        self._bus.publish(
            PreviewShown(
                text=shaped,
                row=anchor.row,
                column=anchor.column,
                generation=generation,
                from_cache=from_cache,
            )
        )

    def _reset(self, reason: str) -> None:
        had_preview = self._preview is not None
        self._preview = None
        self._anchor = None
        self._scheduler.cancel(reason)
        if had_preview:
            self._bus.publish(PreviewCleared(reason=reason))
        self._set_state(CompletionState.IDLE)

    def _set_state(self, state: CompletionState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        LOGGER.debug("Inline completion %s -> %s", previous.value, state.value)
        self._bus.publish(
            CompletionStateChanged(
                previous=previous.value,
                current=state.value,
                generation=self._scheduler.generation,
            )
        )

    def _can_request(self) -> bool:
        if not self._enabled:
            return False
        return bool(getattr(self._provider, "available", True))

    def _line_at(self, row: int) -> str:
        lines = self._buffer.get_lines()
        if 0 <= row < len(lines):
            return lines[row]
        return ""


__all__ = [
    "CompletionState",
    "CompletionStatus",
    "InlineCompletionController",
    "PreviewState",
]
