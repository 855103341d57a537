"""Logging setup for hosts embedding the inline completion subsystem."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any

__all__ = ["setup_logging", "setup_logging_from_settings", "get_logger", "get_log_path", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DEFAULT_LOG_DIR = Path.home() / ".inkline" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_PACKAGE_LOGGER = "inkline"
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = False,
    debug: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating file handler (and optionally stderr) on the root logger.

    A terminal editor owns the screen, so console output is off unless asked
    for. ``debug`` lowers only the ``inkline`` loggers to DEBUG; third-party
    libraries stay at ``level``. Repeated calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "inkline.log"

    handler_level = logging.DEBUG if debug else level
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(handler_level)
    file_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(handler_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger(_PACKAGE_LOGGER).setLevel(logging.DEBUG if debug else logging.NOTSET)
    logging.captureWarnings(True)
    _quiet_external_loggers(level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    """Return a module-specific logger."""

    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the active log file, if logging was configured."""

    return _LOG_PATH


def setup_logging_from_settings(settings: Any, *, force: bool = False) -> Path:
    """Configure logging from a settings object exposing ``debug_logging``.

    ``INKLINE_LOG_CONSOLE=1`` additionally mirrors records to stderr.
    """

    debug = bool(getattr(settings, "debug_logging", False))
    console = os.environ.get("INKLINE_LOG_CONSOLE", "").strip().lower() in {"1", "true", "yes", "on"}
    return setup_logging(logging.INFO, console=console, debug=debug, force=force)


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("INKLINE_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _quiet_external_loggers(root_level: int) -> None:
    quiet_level = max(logging.WARNING, root_level)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
