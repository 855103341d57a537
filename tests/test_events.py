"""Unit tests for :mod:`inkline.ui.events`."""

from __future__ import annotations

import gc
import logging
from dataclasses import dataclass

import pytest

from inkline.ui.events import (
    CompletionNotice,
    CompletionStateChanged,
    Event,
    EventBus,
    PreviewCleared,
)


@dataclass(slots=True)
class SampleEvent(Event):
    """A sample event for testing."""

    message: str
    value: int = 0


class _Listener:
    def __init__(self) -> None:
        self.received: list[Event] = []

    def on_event(self, event: Event) -> None:
        self.received.append(event)


class TestEventBusSubscription:
    """Tests for EventBus subscription functionality."""

    def test_publish_reaches_subscribers_in_order(self) -> None:
        bus: EventBus[Event] = EventBus()
        calls: list[str] = []
        bus.subscribe(SampleEvent, lambda event: calls.append(f"a:{event.message}"))
        bus.subscribe(SampleEvent, lambda event: calls.append(f"b:{event.message}"))

        bus.publish(SampleEvent(message="hi"))

        assert calls == ["a:hi", "b:hi"]

    def test_events_are_routed_by_exact_type(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []
        bus.subscribe(PreviewCleared, received.append)

        bus.publish(CompletionNotice(error_code="rate_limited", message="slow down"))
        bus.publish(PreviewCleared(reason="escape"))

        assert received == [PreviewCleared(reason="escape")]

    def test_unsubscribe_removes_handler(self) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []
        bus.subscribe(SampleEvent, received.append)
        bus.unsubscribe(SampleEvent, received.append)
        bus.unsubscribe(CompletionNotice, received.append)

        bus.publish(SampleEvent(message="ignored"))

        assert received == []
        assert bus.handler_count(SampleEvent) == 0

    def test_clear_and_handler_count(self) -> None:
        bus: EventBus[Event] = EventBus()
        bus.subscribe(SampleEvent, lambda event: None)
        bus.subscribe(PreviewCleared, lambda event: None)

        assert bus.handler_count() == 2
        bus.clear()
        assert bus.handler_count() == 0


class TestEventBusRobustness:
    """Failure isolation and weak references."""

    def test_failing_handler_does_not_stop_others(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()
        received: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("boom")

        bus.subscribe(SampleEvent, broken)
        bus.subscribe(SampleEvent, received.append)

        with caplog.at_level(logging.ERROR, logger="inkline.ui.events"):
            bus.publish(SampleEvent(message="x"))

        assert len(received) == 1
        assert "Handler broken failed for SampleEvent" in caplog.text

    def test_bound_methods_are_held_weakly(self) -> None:
        bus: EventBus[Event] = EventBus()
        listener = _Listener()
        bus.subscribe(SampleEvent, listener.on_event)

        bus.publish(SampleEvent(message="first"))
        assert len(listener.received) == 1

        del listener
        gc.collect()
        bus.publish(SampleEvent(message="second"))

        assert bus.handler_count(SampleEvent) == 0

    def test_state_changes_are_not_logged_per_publish(self, caplog: pytest.LogCaptureFixture) -> None:
        bus: EventBus[Event] = EventBus()

        with caplog.at_level(logging.DEBUG, logger="inkline.ui.events"):
            bus.publish(CompletionStateChanged(previous="idle", current="pending", generation=1))

        assert caplog.records == []
