"""Debounced, single-flight scheduling of completion requests."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Callable

from ..ai.client import CompletionProvider
from ..ai.errors import MalformedResponseError, ProviderError, classify_exception
from ..services import telemetry as telemetry_service
from ..ui.events import CompletionNotice, EventBus

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.4
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(slots=True)
class CompletionOutcome:
    """Result of one provider call, stamped with the generation it was issued under."""

    generation: int
    context: str
    model_id: str
    raw_text: str = ""
    error: ProviderError | None = None
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class CompletionScheduler:
    """Turns bursts of edits into at most one outstanding provider call.

    ``on_edit`` arms a trailing-edge debounce timer; when it expires the
    ``on_trigger`` callback decides whether to :meth:`submit` a request.
    Expiry while a request is in flight is dropped, never queued. Every
    :meth:`cancel` bumps the generation and aborts the in-flight task, and
    each :class:`CompletionOutcome` carries the generation captured when the
    request was issued so consumers can discard stale results.

    Provider failures are classified here exactly once. Authentication and
    rate-limit failures are published as :class:`CompletionNotice` events;
    everything else is only logged.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        on_trigger: Callable[[], None],
        on_result: Callable[[CompletionOutcome], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        bus: EventBus | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._provider = provider
        self._on_trigger = on_trigger
        self._on_result = on_result
        self._debounce_seconds = max(0.0, float(debounce_seconds))
        self._timeout_seconds = max(0.001, float(timeout_seconds))
        self._bus = bus
        self._loop = loop
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._abandoned: set[asyncio.Task[None]] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    @property
    def debounce_pending(self) -> bool:
        return self._timer is not None

    @property
    def debounce_seconds(self) -> float:
        return self._debounce_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def configure(self, *, debounce_seconds: float | None = None, timeout_seconds: float | None = None) -> None:
        if debounce_seconds is not None:
            self._debounce_seconds = max(0.0, float(debounce_seconds))
        if timeout_seconds is not None:
            self._timeout_seconds = max(0.001, float(timeout_seconds))

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------
    def on_edit(self) -> None:
        """Restart the debounce timer."""

        if self._closed:
            return
        self._stop_timer()
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._debounce_expired)

    def trigger_now(self) -> bool:
        """Fire immediately, skipping the debounce. Returns False if dropped."""

        if self._closed:
            return False
        self._stop_timer()
        if self._inflight is not None:
            LOGGER.debug("Manual completion trigger dropped; request already in flight")
            telemetry_service.emit("completion.trigger_dropped", {"reason": "in_flight", "manual": True})
            return False
        self._on_trigger()
        return True

    def _debounce_expired(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self._inflight is not None:
            LOGGER.debug("Debounced completion trigger dropped; request already in flight")
            telemetry_service.emit("completion.trigger_dropped", {"reason": "in_flight", "manual": False})
            return
        try:
            self._on_trigger()
        except Exception:
            LOGGER.exception("Completion trigger callback failed")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def submit(self, context: str, model_id: str) -> asyncio.Task[None] | None:
        """Issue a provider call for ``context`` unless one is already running."""

        if self._closed:
            return None
        if self._inflight is not None:
            LOGGER.debug("Completion request skipped; request already in flight")
            return None
        loop = self._loop or asyncio.get_running_loop()
        generation = self._generation
        task = loop.create_task(self._run(generation, context, model_id))
        self._inflight = task
        telemetry_service.emit(
            "completion.request_started",
            {"generation": generation, "model": model_id, "context_chars": len(context)},
        )
        return task

    async def _run(self, generation: int, context: str, model_id: str) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        current = asyncio.current_task()
        try:
            raw = await asyncio.wait_for(
                self._provider.request_completion(context, model_id),
                timeout=self._timeout_seconds,
            )
        except asyncio.CancelledError:
            LOGGER.debug("Completion request for generation %s cancelled", generation)
            raise
        except Exception as exc:
            error = classify_exception(exc)
            outcome = CompletionOutcome(generation, context, model_id, error=error)
            self._report_failure(error, exc)
        else:
            if not isinstance(raw, str):
                error = MalformedResponseError(details={"type": type(raw).__name__})
                outcome = CompletionOutcome(generation, context, model_id, error=error)
                self._report_failure(error, None)
            else:
                outcome = CompletionOutcome(generation, context, model_id, raw_text=raw)
        finally:
            if self._inflight is current:
                self._inflight = None

        outcome.latency_ms = round((loop.time() - started) * 1000.0, 3)
        telemetry_service.emit(
            "completion.request_finished",
            {
                "generation": generation,
                "model": model_id,
                "latency_ms": outcome.latency_ms,
                "status": outcome.error.error_code if outcome.error else "ok",
            },
        )
        try:
            self._on_result(outcome)
        except Exception:
            LOGGER.exception("Completion result callback failed")

    def _report_failure(self, error: ProviderError, exc: BaseException | None) -> None:
        if error.notify_user:
            LOGGER.warning("Completion provider failure: %s", error)
            if self._bus is not None:
                self._bus.publish(CompletionNotice(error_code=error.error_code, message=error.message))
            return
        if isinstance(error, MalformedResponseError):
            LOGGER.info("Completion provider returned an unusable response: %s", error)
            return
        LOGGER.info("Completion request failed quietly: %s", error)
        if exc is not None:
            LOGGER.debug("Underlying provider exception", exc_info=exc)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel(self, reason: str = "cancel") -> int:
        """Stop the timer, abort the in-flight request and bump the generation."""

        self._stop_timer()
        self._generation += 1
        task = self._inflight
        self._inflight = None
        if task is not None and not task.done():
            LOGGER.debug("Aborting in-flight completion request (%s)", reason)
            task.cancel()
            self._abandoned.add(task)
            task.add_done_callback(self._abandoned.discard)
        return self._generation

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def aclose(self) -> None:
        """Cancel outstanding work and wait for aborted requests to unwind."""

        if self._closed:
            return
        self.cancel("close")
        self._closed = True
        pending = list(self._abandoned)
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_TIMEOUT_SECONDS",
    "CompletionOutcome",
    "CompletionScheduler",
]
