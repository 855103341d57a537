"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Callable

import pytest

from inkline.editor.document_model import TextBuffer
from inkline.services import telemetry as telemetry_service
from inkline.ui.events import EventBus

_COMPLETION_TELEMETRY = (
    "completion.cache_hit",
    "completion.cache_miss",
    "completion.cache_store",
    "completion.cache_evicted",
    "completion.cache_cleared",
    "completion.request_started",
    "completion.request_finished",
    "completion.trigger_dropped",
    "completion.stale_discarded",
)

_ENV_VARS = (
    "INKLINE_API_KEY",
    "GROQ_API_KEY",
    "INKLINE_BASE_URL",
    "INKLINE_MODEL",
    "INKLINE_ENABLED",
    "INKLINE_DEBUG_LOGGING",
    "INKLINE_DEBOUNCE_MS",
    "INKLINE_TIMEOUT_MS",
    "INKLINE_LOG_DIR",
    "INKLINE_LOG_CONSOLE",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def make_buffer() -> Callable[..., TextBuffer]:
    def _factory(text: str = "", **cursor: int) -> TextBuffer:
        return TextBuffer.from_text(text, **cursor)

    return _factory


@pytest.fixture
def telemetry_events():
    """Attach a recorder to every ``completion.*`` telemetry event."""

    recorder = telemetry_service.TelemetryRecorder(capacity=500).attach(*_COMPLETION_TELEMETRY)
    yield recorder
    recorder.detach(*_COMPLETION_TELEMETRY)
