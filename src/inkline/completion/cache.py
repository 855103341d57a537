"""Bounded FIFO cache of sanitized suggestions keyed by context digest."""

from __future__ import annotations

import hashlib
import itertools
from dataclasses import dataclass
from typing import Dict

from ..services import telemetry as telemetry_service

DEFAULT_CACHE_CAPACITY = 50


def make_cache_key(context: str) -> str:
    """Return the deterministic digest used to key ``context``."""

    return hashlib.sha1(context.encode("utf-8", errors="surrogatepass")).hexdigest()


@dataclass(slots=True)
class SuggestionRecord:
    """A sanitized suggestion and the insertion sequence that orders eviction."""

    sanitized_text: str
    inserted_at_sequence: int


class SuggestionCache:
    """Fixed-capacity mapping of context digests to sanitized suggestions.

    Eviction is strictly first-in first-out: reads never reorder entries, and
    re-storing an existing key refreshes its text without moving it. Keys are
    derived from the raw context string via :func:`make_cache_key`.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        self._capacity = max(1, int(capacity))
        # dict preserves insertion order, which is the eviction order.
        self._entries: Dict[str, SuggestionRecord] = {}
        self._sequence = itertools.count(1)

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, context: str) -> str | None:
        key = make_cache_key(context)
        record = self._entries.get(key)
        if record is None:
            self._emit("completion.cache_miss", key)
            return None
        self._emit("completion.cache_hit", key, sequence=record.inserted_at_sequence)
        return record.sanitized_text

    def put(self, context: str, sanitized_text: str) -> None:
        """Store ``sanitized_text`` for ``context``; empty suggestions are never cached."""

        if not sanitized_text:
            return
        key = make_cache_key(context)
        existing = self._entries.get(key)
        if existing is not None:
            existing.sanitized_text = sanitized_text
            return
        self._entries[key] = SuggestionRecord(sanitized_text, next(self._sequence))
        self._emit("completion.cache_store", key)
        while len(self._entries) > self._capacity:
            oldest = next(iter(self._entries))
            self._entries.pop(oldest)
            self._emit("completion.cache_evicted", oldest)

    def clear(self) -> None:
        if not self._entries:
            return
        dropped = len(self._entries)
        self._entries.clear()
        telemetry_service.emit("completion.cache_cleared", {"entries": dropped})

    def record_for(self, context: str) -> SuggestionRecord | None:
        return self._entries.get(make_cache_key(context))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, context: object) -> bool:
        if not isinstance(context, str):
            return False
        return make_cache_key(context) in self._entries

    def _emit(self, event_name: str, key: str, **extra: object) -> None:
        payload: dict[str, object] = {"key": key, "size": len(self._entries), **extra}
        telemetry_service.emit(event_name, payload)


__all__ = ["DEFAULT_CACHE_CAPACITY", "SuggestionCache", "SuggestionRecord", "make_cache_key"]
