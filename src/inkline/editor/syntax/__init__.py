"""Syntax highlighting helpers."""

from .highlighter import KeywordHighlighter, LineHighlighter, PlainHighlighter, StyledSegment

__all__ = ["KeywordHighlighter", "LineHighlighter", "PlainHighlighter", "StyledSegment"]
