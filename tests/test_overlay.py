"""Tests for ghost-text overlay composition."""

from __future__ import annotations

from inkline.completion.overlay import (
    DisplayLine,
    OverlaySegment,
    compose_overlay,
    highlight,
    highlight_continuation,
)
from inkline.editor.syntax.highlighter import (
    STYLE_GHOST,
    STYLE_KEYWORD,
    STYLE_TEXT,
    KeywordHighlighter,
    PlainHighlighter,
    StyledSegment,
)


def test_compose_appends_ghost_at_line_end() -> None:
    display = compose_overlay("const ", 6, "x = 1;")

    assert display.source == "const "
    assert display.ghost_text == "x = 1;"
    assert display.text == "const x = 1;"
    assert display.has_ghost


def test_compose_inserts_ghost_mid_line() -> None:
    display = compose_overlay("foo()", 4, "bar")

    assert display.segments == (
        OverlaySegment("foo("),
        OverlaySegment("bar", ghost=True),
        OverlaySegment(")"),
    )
    assert display.text == "foo(bar)"


def test_compose_splits_multiline_suggestions() -> None:
    display = compose_overlay("if (ok) ", 8, "{\r\n  run();")

    assert display.ghost_text == "{"
    assert display.continuation == ("  run();",)


def test_compose_clamps_column() -> None:
    assert compose_overlay("ab", 10, "c").column == 2
    assert compose_overlay("ab", -3, "c").column == 0


def test_compose_without_suggestion_has_no_ghost() -> None:
    display = compose_overlay("abc", 1, "")

    assert not display.has_ghost
    assert display.text == "abc"


def test_plain_display_line_matches_highlighter_output() -> None:
    highlighter = KeywordHighlighter("javascript")
    line = "return value;"

    assert highlight(DisplayLine.plain(line), highlighter) == highlighter.highlight_line(line)


def test_highlight_splices_ghost_into_styled_segment() -> None:
    highlighter = KeywordHighlighter("javascript")

    styled = highlight(compose_overlay("return value;", 3, "X"), highlighter)

    assert styled == [
        StyledSegment("ret", STYLE_KEYWORD),
        StyledSegment("X", STYLE_GHOST),
        StyledSegment("urn", STYLE_KEYWORD),
        StyledSegment(" value;", STYLE_TEXT),
    ]


def test_highlighter_never_sees_ghost_text() -> None:
    seen: list[str] = []

    class _Recording(PlainHighlighter):
        def highlight_line(self, line: str) -> list[StyledSegment]:
            seen.append(line)
            return super().highlight_line(line)

    highlight(compose_overlay("let ", 4, "function"), _Recording())

    assert seen == ["let "]


def test_highlight_continuation_styles_ghost_lines() -> None:
    display = compose_overlay("x", 1, "a\n\nb")

    assert highlight_continuation(display) == [[], [StyledSegment("b", STYLE_GHOST)]]
