"""Inline completion pipeline: context, cache, sanitizer, scheduler, controller, overlay."""

from .cache import SuggestionCache, SuggestionRecord, make_cache_key
from .context import extract_context, should_trigger
from .controller import CompletionState, CompletionStatus, InlineCompletionController, PreviewState
from .overlay import DisplayLine, compose_overlay, highlight
from .sanitizer import ResponseSanitizer, sanitize_completion, shape_suggestion
from .scheduler import CompletionOutcome, CompletionScheduler

__all__ = [
    "CompletionOutcome",
    "CompletionScheduler",
    "CompletionState",
    "CompletionStatus",
    "DisplayLine",
    "InlineCompletionController",
    "PreviewState",
    "ResponseSanitizer",
    "SuggestionCache",
    "SuggestionRecord",
    "compose_overlay",
    "extract_context",
    "highlight",
    "make_cache_key",
    "sanitize_completion",
    "shape_suggestion",
    "should_trigger",
]
