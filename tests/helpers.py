"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from typing import Any

from inkline.ui.events import Event, EventBus


class FakeProvider:
    """Scriptable completion provider.

    ``responses`` are consumed in order; an exception instance is raised
    instead of returned. ``models`` feeds ``list_models`` and may also be an
    exception to raise. ``delay`` keeps each call pending so tests can
    interleave edits with in-flight requests.

    Example:
        from tests.helpers import FakeProvider

        provider = FakeProvider("name) {", delay=0.05)
    """

    def __init__(
        self,
        *responses: Any,
        delay: float = 0.0,
        available: bool = True,
        models: Any = None,
    ) -> None:
        self._responses = list(responses)
        self.models = models
        self.delay = delay
        self.available = available
        self.calls: list[tuple[str, str]] = []
        self.cancelled = 0
        self.closed = False

    async def request_completion(self, context_text: str, model_id: str) -> str:
        self.calls.append((context_text, model_id))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        response = self._responses.pop(0) if self._responses else ""
        if isinstance(response, BaseException):
            raise response
        return response

    async def list_models(self) -> list[str]:
        if isinstance(self.models, BaseException):
            raise self.models
        return list(self.models or [])

    async def aclose(self) -> None:
        self.closed = True


class EventRecorder:
    """Collects every event of the subscribed types in publish order."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


async def wait_for_calls(provider: FakeProvider, count: int = 1) -> None:
    """Yield to the loop until ``provider`` has seen ``count`` calls."""

    for _ in range(400):
        if len(provider.calls) >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError("provider was never called")
