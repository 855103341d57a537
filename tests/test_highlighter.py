"""Tests for the line highlighters."""

from __future__ import annotations

from inkline.editor.syntax.highlighter import (
    STYLE_COMMENT,
    STYLE_KEYWORD,
    STYLE_NUMBER,
    STYLE_STRING,
    STYLE_TEXT,
    KeywordHighlighter,
    PlainHighlighter,
    StyledSegment,
    merge_segments,
)


def test_plain_highlighter_returns_whole_line() -> None:
    highlighter = PlainHighlighter()

    assert highlighter.highlight_line("let x") == [StyledSegment("let x")]
    assert highlighter.highlight_line("") == []


def test_keyword_highlighter_styles_tokens() -> None:
    segments = KeywordHighlighter("javascript").highlight_line("const x = 42;")

    assert segments == [
        StyledSegment("const", STYLE_KEYWORD),
        StyledSegment(" x = ", STYLE_TEXT),
        StyledSegment("42", STYLE_NUMBER),
        StyledSegment(";", STYLE_TEXT),
    ]


def test_comment_marker_inside_string_is_ignored() -> None:
    segments = KeywordHighlighter("python").highlight_line('x = "#" # note')

    assert segments == [
        StyledSegment("x = ", STYLE_TEXT),
        StyledSegment('"#"', STYLE_STRING),
        StyledSegment(" ", STYLE_TEXT),
        StyledSegment("# note", STYLE_COMMENT),
    ]


def test_highlighting_preserves_text() -> None:
    highlighter = KeywordHighlighter("cpp")
    line = 'std::cout << "a // b" << x; // trailing'

    assert "".join(segment.text for segment in highlighter.highlight_line(line)) == line


def test_repeated_lines_are_served_from_cache() -> None:
    highlighter = KeywordHighlighter("go", cache_size=1)

    first = highlighter.highlight_line("func main() {")
    first.append(StyledSegment("mutated"))

    assert highlighter.highlight_line("func main() {") == [
        StyledSegment("func", STYLE_KEYWORD),
        StyledSegment(" main() {", STYLE_TEXT),
    ]


def test_for_path_picks_language() -> None:
    highlighter = KeywordHighlighter.for_path("src/app.py")

    assert isinstance(highlighter, KeywordHighlighter)
    assert highlighter.language == "python"
    assert isinstance(KeywordHighlighter.for_path("notes.txt"), PlainHighlighter)
    assert isinstance(KeywordHighlighter.for_path(None), PlainHighlighter)


def test_unknown_language_falls_back_to_javascript() -> None:
    assert KeywordHighlighter("cobol").language == "javascript"


def test_merge_segments_joins_runs_and_drops_empty() -> None:
    merged = merge_segments(
        [StyledSegment("a"), StyledSegment(""), StyledSegment("b"), StyledSegment("c", STYLE_KEYWORD)]
    )

    assert merged == [StyledSegment("ab"), StyledSegment("c", STYLE_KEYWORD)]
