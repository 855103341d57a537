"""Cursor context extraction for completion requests."""

from __future__ import annotations

import re
from typing import Sequence

DEFAULT_MAX_CONTEXT_LINES = 50
DEFAULT_MAX_CONTEXT_CHARS = 800
DEFAULT_MIN_CONTEXT_CHARS = 10

# Re-anchoring candidates in priority order. Group "start" marks where the
# truncated context should begin.
_BOUNDARY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\n[ \t]*\n(?P<start>)"),
    re.compile(
        r"\n(?P<start>)[ \t]*(?:export[ \t]+)?(?:pub[ \t]+)?"
        r"(?:function|class|def|async|fn|func|struct|impl|interface)\b"
    ),
    re.compile(r"\n(?P<start>)(?=\S)"),
    re.compile(r"\n(?P<start>)"),
)
_STATEMENT_CLOSERS = frozenset(";})]")


def extract_context(
    lines: Sequence[str],
    row: int,
    column: int,
    *,
    max_lines: int = DEFAULT_MAX_CONTEXT_LINES,
    max_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> str:
    """Return the text window that ends exactly at the cursor.

    Up to ``max_lines`` lines ending at ``row`` are joined; the cursor line
    only contributes the prefix before ``column``. When the result is longer
    than ``max_chars`` the tail is kept and its start is moved forward to the
    first natural boundary found in the first half of the cut text.
    """

    if not lines or max_lines <= 0 or max_chars <= 0:
        return ""
    row = min(max(0, row), len(lines) - 1)
    cursor_line = lines[row]
    column = min(max(0, column), len(cursor_line))

    start_row = max(0, row - max_lines + 1)
    window = [*lines[start_row:row], cursor_line[:column]]
    context = "\n".join(window)
    if len(context) <= max_chars:
        return context

    truncated = context[-max_chars:]
    return truncated[_anchor_offset(truncated) :]


def _anchor_offset(text: str) -> int:
    limit = len(text) / 2
    for pattern in _BOUNDARY_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        if 0 < match.start() < limit:
            return match.start("start")
    return 0


def should_trigger(line: str, column: int) -> bool:
    """Return True when an edit at ``column`` of ``line`` warrants a passive request.

    Blank lines at column 0 and positions right after a statement or block
    closer do not qualify.
    """

    column = min(max(0, column), len(line))
    if column == 0 and not line.strip():
        return False
    return not (column > 0 and line[column - 1] in _STATEMENT_CLOSERS)


def has_enough_context(context: str, min_chars: int = DEFAULT_MIN_CONTEXT_CHARS) -> bool:
    """Return True when ``context`` carries enough non-whitespace text to send."""

    return len(context.strip()) >= max(0, min_chars)


__all__ = [
    "DEFAULT_MAX_CONTEXT_LINES",
    "DEFAULT_MAX_CONTEXT_CHARS",
    "DEFAULT_MIN_CONTEXT_CHARS",
    "extract_context",
    "should_trigger",
    "has_enough_context",
]
