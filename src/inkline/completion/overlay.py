"""Ghost-text overlay composed onto display lines before highlighting.

Rendering a line with a visible suggestion is a two-stage affair:

1. :func:`compose_overlay` pairs the stored line with the suggestion and
   records where the ghost text goes. The stored line is never modified.
2. :func:`highlight` runs the highlighter over the stored line only and then
   splices the ghost segment into the styled output at the cursor column.

Because the highlighter never sees suggestion text, a line without a preview
renders exactly as the highlighter alone would render it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..editor.syntax.highlighter import STYLE_GHOST, LineHighlighter, StyledSegment


@dataclass(frozen=True, slots=True)
class OverlaySegment:
    """Part of a display line; ``ghost`` segments are not document text."""

    text: str
    ghost: bool = False


@dataclass(frozen=True, slots=True)
class DisplayLine:
    """A stored line plus the preview composed onto it for display."""

    source: str
    column: int = 0
    ghost_text: str = ""
    continuation: tuple[str, ...] = ()

    @classmethod
    def plain(cls, line: str) -> DisplayLine:
        return cls(source=line, column=len(line))

    @property
    def has_ghost(self) -> bool:
        return bool(self.ghost_text or self.continuation)

    @property
    def segments(self) -> tuple[OverlaySegment, ...]:
        parts = (
            OverlaySegment(self.source[: self.column]),
            OverlaySegment(self.ghost_text, ghost=True),
            OverlaySegment(self.source[self.column :]),
        )
        return tuple(part for part in parts if part.text)

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)


def compose_overlay(line: str, column: int, suggestion: str) -> DisplayLine:
    """Place ``suggestion`` at ``column`` of ``line`` without touching ``line``.

    The first suggestion line is shown inline; any further lines become ghost
    continuation lines rendered below the anchor.
    """

    column = min(max(0, column), len(line))
    if not suggestion:
        return DisplayLine(source=line, column=column)
    first, *rest = suggestion.replace("\r\n", "\n").split("\n")
    return DisplayLine(source=line, column=column, ghost_text=first, continuation=tuple(rest))


def highlight(display_line: DisplayLine, highlighter: LineHighlighter) -> list[StyledSegment]:
    """Return styled segments for ``display_line`` with the ghost text spliced in."""

    styled = list(highlighter.highlight_line(display_line.source))
    if not display_line.ghost_text:
        return styled
    before, after = _split_at(styled, display_line.column)
    return [*before, StyledSegment(display_line.ghost_text, STYLE_GHOST), *after]


def highlight_continuation(display_line: DisplayLine) -> list[list[StyledSegment]]:
    """Return the ghost continuation lines, one segment list per line."""

    return [[StyledSegment(line, STYLE_GHOST)] if line else [] for line in display_line.continuation]


def _split_at(
    segments: Sequence[StyledSegment], column: int
) -> tuple[list[StyledSegment], list[StyledSegment]]:
    before: list[StyledSegment] = []
    after: list[StyledSegment] = []
    offset = 0
    for segment in segments:
        end = offset + len(segment.text)
        if end <= column:
            before.append(segment)
        elif offset >= column:
            after.append(segment)
        else:
            cut = column - offset
            before.append(StyledSegment(segment.text[:cut], segment.style))
            after.append(StyledSegment(segment.text[cut:], segment.style))
        offset = end
    return before, after


__all__ = [
    "DisplayLine",
    "OverlaySegment",
    "compose_overlay",
    "highlight",
    "highlight_continuation",
]
