"""Event bus used by the completion subsystem to talk to the editor shell.

The controller never calls into the UI directly. Notifications, lifecycle
changes and accepted suggestions are published as small dataclass events that
the host editor subscribes to.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for every event published on the bus."""

    pass


# Event types published on every keystroke; they are not logged per publish.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Completion lifecycle events
# =============================================================================


@dataclass(slots=True)
class CompletionStateChanged(Event):
    """Emitted whenever the inline completion state machine changes state.

    Attributes:
        previous: Name of the state that was left.
        current: Name of the state that was entered.
        generation: Generation counter value at the time of the transition.
    """

    previous: str
    current: str
    generation: int


_QUIET_EVENT_TYPES.add(CompletionStateChanged)


@dataclass(slots=True)
class PreviewShown(Event):
    """Emitted when a ghost-text suggestion becomes visible.

    Attributes:
        text: Sanitized suggestion text.
        row: Anchor row of the preview.
        column: Anchor column of the preview.
        generation: Generation the preview belongs to.
        from_cache: True when the suggestion was served from the cache.
    """

    text: str
    row: int
    column: int
    generation: int
    from_cache: bool = False


@dataclass(slots=True)
class PreviewCleared(Event):
    """Emitted when a visible preview is discarded without being applied.

    Attributes:
        reason: Why the preview went away (``edit``, ``cursor_move``,
            ``escape``, ``dismiss``, ``model_change`` ...).
    """

    reason: str


@dataclass(slots=True)
class SuggestionAccepted(Event):
    """Emitted after an accepted suggestion was written into the buffer.

    Attributes:
        text: The text that was inserted.
        row: Row where the insertion started.
        column: Column where the insertion started.
    """

    text: str
    row: int
    column: int


@dataclass(slots=True)
class CompletionNotice(Event):
    """User-facing notification raised by a provider failure.

    Only authentication and rate-limit failures are published; transient
    failures stay in the log.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Text suitable for a status bar or toast.
    """

    error_code: str
    message: str


# =============================================================================
# Event Bus Implementation
# =============================================================================


class EventBus(Generic[E]):
    """Typed publish/subscribe bus with weakly held bound-method handlers.

    Handlers run synchronously in subscription order. A handler that raises
    is logged and the remaining handlers still run. The bus is not thread
    safe; publish from the event loop thread only.

    Example::

        bus = EventBus()
        bus.subscribe(CompletionNotice, status_bar.show_notice)
        bus.publish(CompletionNotice(error_code="rate_limited", message="Slow down"))
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Bound methods are held weakly so a discarded widget does not keep
        receiving events. Subscribing twice results in two invocations.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug("Unsubscribed %s from %s", _handler_name(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to every live handler registered for its type."""
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        quiet = event_type in _QUIET_EVENT_TYPES
        if not handlers:
            if not quiet:
                logger.debug("No handlers for %s", event_type.__name__)
            return
        if not quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %s failed for %s", _handler_name(handler), event_type.__name__)

        for handler_ref in dead:
            try:
                handlers.remove(handler_ref)
            except ValueError:  # pragma: no cover - removed by a handler during publish
                pass

    def clear(self) -> None:
        """Drop every registered handler."""
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of handlers for ``event_type`` or for all types."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Holds bound methods weakly and every other callable strongly."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, target: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = target
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "CompletionStateChanged",
    "PreviewShown",
    "PreviewCleared",
    "SuggestionAccepted",
    "CompletionNotice",
]
