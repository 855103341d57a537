"""Tests for :mod:`inkline.utils.logging`."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from inkline.bootstrap import build_inline_completion
from inkline.editor.document_model import TextBuffer
from inkline.services.settings import CompletionSettings
from inkline.utils import logging as logging_utils
from tests.helpers import FakeProvider


@pytest.fixture
def restore_root_logger(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    package_level = logging.getLogger("inkline").level
    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("inkline").setLevel(package_level)
    logging.captureWarnings(False)


def test_setup_logging_writes_rotating_file(tmp_path: Path, restore_root_logger) -> None:
    log_path = logging_utils.setup_logging(logging.INFO, log_dir=tmp_path)

    logging_utils.get_logger("inkline.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "inkline.log"
    assert logging_utils.get_log_path() == log_path
    content = log_path.read_text(encoding="utf-8")
    assert "hello from test" in content
    assert "| INFO     | inkline.test |" in content


def test_setup_logging_is_idempotent_unless_forced(tmp_path: Path, restore_root_logger) -> None:
    first = logging_utils.setup_logging(log_dir=tmp_path / "a")
    second = logging_utils.setup_logging(log_dir=tmp_path / "b")
    forced = logging_utils.setup_logging(log_dir=tmp_path / "b", force=True)

    assert second == first
    assert forced == tmp_path / "b" / "inkline.log"


def test_environment_selects_log_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logger
) -> None:
    monkeypatch.setenv("INKLINE_LOG_DIR", str(tmp_path / "env"))

    log_path = logging_utils.setup_logging()

    assert log_path == tmp_path / "env" / "inkline.log"


def test_noisy_libraries_are_quieted(tmp_path: Path, restore_root_logger) -> None:
    logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("openai").level == logging.WARNING


def test_debug_lowers_only_package_loggers(tmp_path: Path, restore_root_logger) -> None:
    log_path = logging_utils.setup_logging(logging.INFO, log_dir=tmp_path, debug=True)

    logging.getLogger("inkline.completion.cache").debug("cache detail")
    logging.getLogger("thirdparty.module").debug("library chatter")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert "cache detail" in content
    assert "library chatter" not in content
    assert logging.getLogger().level == logging.INFO


def test_settings_debug_flag_drives_logging(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logger
) -> None:
    monkeypatch.setenv("INKLINE_LOG_DIR", str(tmp_path))

    build_inline_completion(
        TextBuffer.from_text(""),
        settings=CompletionSettings(debug_logging=True),
        provider=FakeProvider(),
        configure_logging=True,
    )

    assert logging.getLogger("inkline").level == logging.DEBUG
    assert logging_utils.get_log_path() == tmp_path / "inkline.log"
    assert not any(
        type(handler) is logging.StreamHandler for handler in logging.getLogger().handlers
    )


def test_console_mirroring_comes_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logger
) -> None:
    monkeypatch.setenv("INKLINE_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("INKLINE_LOG_CONSOLE", "1")

    logging_utils.setup_logging_from_settings(CompletionSettings(), force=True)

    assert logging.getLogger("inkline").level == logging.NOTSET
    assert any(type(handler) is logging.StreamHandler for handler in logging.getLogger().handlers)
