"""Line highlighters that turn document text into styled segments.

Highlighters only ever receive text that is stored in the document. Ghost
text from the completion overlay is spliced in after highlighting, see
:mod:`inkline.completion.overlay`.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import PurePath
from typing import Protocol, Sequence, runtime_checkable

# Style names understood by renderers.
STYLE_TEXT = "text"
STYLE_KEYWORD = "keyword"
STYLE_STRING = "string"
STYLE_NUMBER = "number"
STYLE_COMMENT = "comment"
STYLE_GHOST = "ghost"

_LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
}

_KEYWORDS: dict[str, frozenset[str]] = {
    "python": frozenset(
        "and as async await break class continue def del elif else except finally for from if import "
        "in is lambda not or pass raise return try while with yield None True False".split()
    ),
    "javascript": frozenset(
        "async await break case catch class const continue default delete do else export extends "
        "finally for function if import in instanceof let new return switch this throw try typeof "
        "var void while yield null undefined true false".split()
    ),
    "c": frozenset(
        "break case char const continue default do double else enum extern float for goto if int "
        "long return short signed sizeof static struct switch typedef union unsigned void while".split()
    ),
    "go": frozenset(
        "break case chan const continue default defer else fallthrough for func go goto if import "
        "interface map package range return select struct switch type var nil true false".split()
    ),
    "rust": frozenset(
        "as async await break const continue crate else enum extern false fn for if impl in let loop "
        "match mod move mut pub ref return self Self static struct super trait true type unsafe use "
        "where while".split()
    ),
}
_KEYWORDS["typescript"] = _KEYWORDS["javascript"] | frozenset("interface type enum implements readonly".split())
_KEYWORDS["cpp"] = _KEYWORDS["c"] | frozenset(
    "auto bool class delete explicit false friend inline namespace new nullptr operator private "
    "protected public template this throw true try catch using virtual".split()
)
_KEYWORDS["java"] = frozenset(
    "abstract boolean break byte case catch char class continue default do double else extends final "
    "finally float for if implements import instanceof int interface long new package private "
    "protected public return short static super switch this throw throws try void while null true "
    "false".split()
)

_HASH_COMMENT_LANGUAGES = frozenset({"python"})
_TOKEN_PATTERN = re.compile(
    r"""(?P<string>"(?:[^"\\]|\\.)*"?|'(?:[^'\\]|\\.)*'?|`[^`]*`?)"""
    r"""|(?P<number>\b\d+(?:\.\d+)?\b)"""
    r"""|(?P<word>[A-Za-z_][A-Za-z0-9_]*)"""
)


@dataclass(frozen=True, slots=True)
class StyledSegment:
    """A run of display text sharing one style."""

    text: str
    style: str = STYLE_TEXT


@runtime_checkable
class LineHighlighter(Protocol):
    """Turns one stored document line into styled segments."""

    def highlight_line(self, line: str) -> list[StyledSegment]:  # pragma: no cover - protocol stub
        ...


class PlainHighlighter:
    """Highlighter used when syntax coloring is disabled."""

    def highlight_line(self, line: str) -> list[StyledSegment]:
        return [StyledSegment(line)] if line else []


class KeywordHighlighter:
    """Small regex highlighter for keywords, strings, numbers and line comments.

    Results are memoized per line text since the same lines are re-rendered on
    every refresh.
    """

    def __init__(self, language: str = "javascript", *, cache_size: int = 512) -> None:
        self._language = language if language in _KEYWORDS else "javascript"
        self._keywords = _KEYWORDS[self._language]
        self._comment_marker = "#" if self._language in _HASH_COMMENT_LANGUAGES else "//"
        self._cache: OrderedDict[str, tuple[StyledSegment, ...]] = OrderedDict()
        self._cache_size = max(1, cache_size)

    @property
    def language(self) -> str:
        return self._language

    @classmethod
    def for_path(cls, path: str | PurePath | None) -> LineHighlighter:
        """Return a keyword highlighter for known file types, else a plain one."""

        if path is None:
            return PlainHighlighter()
        language = _LANGUAGE_BY_SUFFIX.get(PurePath(path).suffix.lower())
        if language is None:
            return PlainHighlighter()
        return cls(language)

    def highlight_line(self, line: str) -> list[StyledSegment]:
        cached = self._cache.get(line)
        if cached is not None:
            self._cache.move_to_end(line)
            return list(cached)
        segments = tuple(self._tokenize(line))
        self._cache[line] = segments
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return list(segments)

    def _tokenize(self, line: str) -> list[StyledSegment]:
        code, comment = self._split_comment(line)
        segments: list[StyledSegment] = []
        position = 0
        for match in _TOKEN_PATTERN.finditer(code):
            kind = match.lastgroup
            if kind == "word" and match.group() not in self._keywords:
                continue
            if match.start() > position:
                segments.append(StyledSegment(code[position : match.start()]))
            style = {"string": STYLE_STRING, "number": STYLE_NUMBER}.get(kind or "", STYLE_KEYWORD)
            segments.append(StyledSegment(match.group(), style))
            position = match.end()
        if position < len(code):
            segments.append(StyledSegment(code[position:]))
        if comment:
            segments.append(StyledSegment(comment, STYLE_COMMENT))
        return merge_segments(segments)

    def _split_comment(self, line: str) -> tuple[str, str]:
        # A marker inside a string literal does not start a comment.
        spans = [match.span() for match in _TOKEN_PATTERN.finditer(line) if match.lastgroup == "string"]
        start = 0
        while True:
            index = line.find(self._comment_marker, start)
            if index == -1:
                return line, ""
            enclosing = next((end for begin, end in spans if begin <= index < end), None)
            if enclosing is None:
                return line[:index], line[index:]
            start = enclosing


def merge_segments(segments: Sequence[StyledSegment]) -> list[StyledSegment]:
    """Join adjacent segments with the same style and drop empty ones."""

    merged: list[StyledSegment] = []
    for segment in segments:
        if not segment.text:
            continue
        if merged and merged[-1].style == segment.style:
            merged[-1] = StyledSegment(merged[-1].text + segment.text, segment.style)
        else:
            merged.append(segment)
    return merged


__all__ = [
    "STYLE_TEXT",
    "STYLE_KEYWORD",
    "STYLE_STRING",
    "STYLE_NUMBER",
    "STYLE_COMMENT",
    "STYLE_GHOST",
    "StyledSegment",
    "LineHighlighter",
    "PlainHighlighter",
    "KeywordHighlighter",
    "merge_segments",
]
