"""Cleaning pipeline that turns raw provider output into plain-text code.

Providers routinely wrap completions in markdown fences, syntax-highlighter
markup, terminal colors or chatty prose. The pipeline removes all of that
while leaving code that merely resembles markup alone (``#include <x>``,
``if (a < b && c > d)``, ``std::cout << x``). It works in three phases:

* code constructs that look like tags are swapped for placeholders using an
  ordered rule table (:data:`PROTECT_RULES`);
* markup is stripped from what remains;
* placeholders are restored in the order they were created.

Every later pass operates on text that no longer contains markup. The whole
pipeline is re-run until its output stops changing, so ``sanitize`` is
idempotent even for inputs whose cleaning exposes new markup (for example
``&amp;lt;b&amp;gt;``).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER_OPEN = "\x02"
_PLACEHOLDER_CLOSE = "\x03"
_PLACEHOLDER_PATTERN = re.compile(r"\x02(\d+)\x03")
_MAX_ROUNDS = 8


# ---------------------------------------------------------------------------
# Step 2: protect rules
# ---------------------------------------------------------------------------

_MARKUP_NAMES = (
    r"(?i:span|div|code|pre|em|strong|br|font|mark|small|sub|sup|kbd|samp|tt|ins|del|"
    r"ul|ol|li|table|tbody|thead|tr|td|th|h[1-6]|blockquote|section|article|header|"
    r"footer|html|body|head|img|hr)|[abipsu]"
)
_MARKUP_HINT = re.compile(rf"</?(?:{_MARKUP_NAMES})\b[^<>]*>|<[A-Za-z][\w-]*\s+[\w:-]+=")
# One level of nested parentheses is enough for ``if (f(a) < b)``.
_PAREN_BODY = r"(?:[^()\n]|\([^()\n]*\))*"


@dataclass(frozen=True, slots=True)
class ProtectRule:
    """A code construct shielded from markup stripping.

    ``reject_markup`` skips matches that themselves contain markup, so a
    highlighted control header is still cleaned.
    """

    name: str
    pattern: re.Pattern[str]
    reject_markup: bool = False


# Ordered by priority; earlier rules claim text first. For ambiguous input
# such as ``a < b > c`` the comparison rule claims ``a < b`` and the stray
# ``> c`` is left untouched, since a lone ``>`` is never treated as a tag.
PROTECT_RULES: tuple[ProtectRule, ...] = (
    ProtectRule(
        "directive",
        re.compile(r"#[ \t]*(?:include|import)[ \t]*<(?!/)[\w.+-][\w./+-]*>"),
    ),
    ProtectRule(
        "generic_type",
        re.compile(r"\b[A-Za-z_][\w.:]*<[A-Z]\w*(?:[ \t]*,[ \t]*[A-Za-z_][\w.:]*)*>"),
    ),
    ProtectRule(
        "control_header",
        re.compile(
            rf"\b(?:if|while|for|elif|else[ \t]+if|switch)[ \t]*\({_PAREN_BODY}[<>]{_PAREN_BODY}\)"
        ),
        reject_markup=True,
    ),
    ProtectRule(
        "comparison",
        re.compile(r"(?<![<\w/-])\w+(?:[ \t]+(?:<=|>=|<|>)[ \t]+|[ \t]*(?:<=|>=)[ \t]*)\w+\b"),
    ),
    ProtectRule(
        "tight_comparison",
        re.compile(r"(?<![<\w/-])\w+[<>]\w+\b(?![\w-]*[ \t]*/?>)(?![ \t]+[\w:-]+[ \t]*=)"),
    ),
    ProtectRule(
        "stream",
        re.compile(
            r"(?:\bstd::)?\b(?:cout|cerr|clog|cin)"
            r"(?:[ \t]*(?:<<|>>)[ \t]*(?:\"(?:[^\"\\\n]|\\.)*\"|'(?:[^'\\\n]|\\.)*'|[\w:.()]+))+"
        ),
    ),
)


# ---------------------------------------------------------------------------
# Step 3: markup stripping
# ---------------------------------------------------------------------------

_ATTRIBUTE_VALUE = r"(?:\"[^\"<>]*\"|'[^'<>]*'|[^\s<>\"']+)"
_FRAGMENT_NAMES = r"(?i:span|div|code|pre|font|strong|mark)"

_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Any tag that carries attributes.
    re.compile(rf"<[A-Za-z][\w-]*(?:\s+[\w:-]+\s*=\s*{_ATTRIBUTE_VALUE})+\s*/?>"),
    # Known markup tags without attributes.
    re.compile(rf"<(?:{_MARKUP_NAMES})\s*/?>"),
    # Closing tags.
    re.compile(r"</[A-Za-z][\w-]*\s*>"),
    # Tags that lost their closing bracket.
    re.compile(rf"<(?:{_FRAGMENT_NAMES})(?:\s+[\w:-]+\s*=\s*(?:\"[^\"<>]*\"|'[^'<>]*'))+"),
    # Tags that lost their opening bracket.
    re.compile(
        rf"(?<![\w<./-])(?:{_FRAGMENT_NAMES})\s+(?:class|style|data-[\w-]+)\s*=\s*{_ATTRIBUTE_VALUE}\s*>?"
    ),
    re.compile(rf"(?<![<\w])/(?:{_FRAGMENT_NAMES})>"),
    re.compile(rf"(?<![\w<./-])(?:{_FRAGMENT_NAMES})>"),
    # Loose attributes and highlighter class names.
    re.compile(r"(?<![\w-])(?:class|style|data-[\w-]+)=(?:\"[^\"\n]*\"|'[^'\n]*')>?"),
    re.compile(r"(?<![\w-])hljs-[A-Za-z][\w-]*[\"']?>?"),
)


# ---------------------------------------------------------------------------
# Steps 5 to 8: entities, markers, typography, character set
# ---------------------------------------------------------------------------

_ENTITIES = {
    "lt": "<",
    "gt": ">",
    "amp": "&",
    "quot": '"',
    "#39": "'",
    "#x27": "'",
    "apos": "'",
    "nbsp": " ",
}
_ENTITY_PATTERN = re.compile(r"&(lt|gt|amp|quot|#39|#x27|apos|nbsp);", re.IGNORECASE)
# ``&amp;amp;lt;`` and deeper escapes collapse to a single ``&`` before decoding.
_NESTED_AMP = re.compile(r"&(?:amp;)+", re.IGNORECASE)

_ESCAPE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]"),
    re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?"),
    re.compile(r"\x1b[@-Z\\-_]"),
    re.compile(r"\x1b"),
    # SGR sequences whose escape byte was already lost.
    re.compile(r"\[\d{1,3}(?:;\d{1,3})*m(?!\])"),
)
_MARKER_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<![\w*])\*\*(?=[^\s*])([^*\n]+?)(?<=[^\s*])\*\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<![\w*/])\*(?=[^\s*])([^*\n]+?)(?<=[^\s*])\*(?![\w*/])"), r"\1"),
    (re.compile(r"^([ \t]*)`([^`\n]+)`[ \t]*$", re.MULTILINE), r"\1\2"),
)

_HORIZONTAL_BOX = "─━═╌╍┄┅┈┉╴╶╸╺╼╾"
_VERTICAL_BOX = "│┃║╎╏┆┇┊┋╵╷╹╻╽╿"
_TYPOGRAPHY = {
    **{char: "-" for char in _HORIZONTAL_BOX},
    **{char: "|" for char in _VERTICAL_BOX},
    **{chr(code): "+" for code in range(0x2500, 0x2580) if chr(code) not in _HORIZONTAL_BOX + _VERTICAL_BOX},
    **{char: "'" for char in "‘’‚‛′"},
    **{char: '"' for char in "“”„‟″«»"},
    **{char: "-" for char in "‐‑‒–—―−"},
    "…": "...",
    **{char: " " for char in "\u00a0\u2007\u202f\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2008\u2009\u200a"},
    **{char: "" for char in "\u200b\u200c\u200d\u2060\ufeff"},
}
_TYPOGRAPHY_TABLE = str.maketrans(_TYPOGRAPHY)
_DISALLOWED_CHARS = re.compile(r"[^\x20-\x7e\t\n\r]")


# ---------------------------------------------------------------------------
# Step 9: heuristic repairs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RepairRule:
    """A targeted fix for a corruption signature left behind by stripping."""

    name: str
    pattern: re.Pattern[str]
    replacement: str | Callable[[re.Match[str]], str]


REPAIR_RULES: tuple[RepairRule, ...] = (
    RepairRule(
        "include_missing_hash",
        re.compile(r"^([ \t]*)include[ \t]*<([\w./+-]+)>", re.MULTILINE),
        r"\1#include <\2>",
    ),
    RepairRule(
        "include_missing_brackets",
        re.compile(r"#include[ \t]+([A-Za-z_][\w./+-]*)>?(?=[ \t]*$)", re.MULTILINE),
        r"#include <\1>",
    ),
    RepairRule(
        "stream_missing_insert",
        # Only statements: the operand is a literal or endl, or the line ends in ``;``.
        re.compile(
            r"\b((?:std::)?(?:cout|cerr|clog))[ \t]+(?=[\"']|(?:std::)?endl\b|\w[^\n]*;[ \t]*$)",
            re.MULTILINE,
        ),
        lambda match: f"{match.group(1)} << ",
    ),
    RepairRule(
        "endl_missing_insert",
        re.compile(r"(?<=[\"'\w)\]])(?<!using)(?<!namespace)[ \t]+((?:std::)?endl)\b"),
        lambda match: f" << {match.group(1)}",
    ),
)


# ---------------------------------------------------------------------------
# Step 10: prose and whitespace
# ---------------------------------------------------------------------------

_LEADING_LABELS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"^[ \t]*(?i:here(?:'s|\s+is|\s+are)\b[^\n:]*|(?:the\s+)?(?:completion|code|suggestion|output|result|answer)"
        r"(?:\s+is|\s+would\s+be)?)[ \t]*:[ \t]*(?:\n|$)"
    ),
    re.compile(r"^[ \t]*(?i:here(?:'s|\s+is|\s+are)\b[^\n:]*):[ \t]*"),
    re.compile(r"^[ \t]*(?:COMPLETION|COMPLETE|OUTPUT|RESULT|CODE|ANSWER|SUGGESTION):[ \t]*"),
    # A markdown heading naming the answer (``## Completion``), never a ``##`` comment.
    re.compile(
        r"^[ \t]*#{2,6}[ \t]+(?i:(?:the\s+)?(?:completion|code|suggestion|output|result|answer))"
        r"[ \t]*:?[ \t]*\n"
    ),
    re.compile(
        r"^[ \t]*(?i:javascript|typescript|python|java|cpp|c\+\+|csharp|golang|go|rust|ruby|php|"
        r"css|html|json|xml|sql|bash|shell|sh)[ \t]*\n"
    ),
)
_TRAILING_EXPLANATION = re.compile(
    r"^[ \t]*(?:(?i:this|the\s+above|the\s+following)\s+(?i:code|completion|snippet|implementation|"
    r"solution|function|method|class|line|suggestion)\b|(?:Explanation|EXPLANATION|Note|NOTE):)"
)
_BLANK_RUN = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


class ResponseSanitizer:
    """Ten-pass cleaning pipeline for raw provider responses."""

    def __init__(
        self,
        *,
        protect_rules: Sequence[ProtectRule] = PROTECT_RULES,
        repair_rules: Sequence[RepairRule] = REPAIR_RULES,
        max_rounds: int = _MAX_ROUNDS,
    ) -> None:
        self._protect_rules = tuple(protect_rules)
        self._repair_rules = tuple(repair_rules)
        self._max_rounds = max(1, max_rounds)

    def sanitize(self, raw: str | None) -> str:
        """Return the plain-text completion contained in ``raw``.

        An empty string means no usable suggestion.
        """

        if not raw:
            return ""
        text = raw
        for _ in range(self._max_rounds):
            cleaned = self.run_passes(text)
            if cleaned == text:
                break
            text = cleaned
        else:
            LOGGER.debug("Sanitizer did not settle after %s rounds", self._max_rounds)
        if not text:
            LOGGER.debug("Sanitized response is empty (raw length %s)", len(raw))
        return text

    __call__ = sanitize

    def run_passes(self, text: str) -> str:
        """Apply every pass once, in order."""

        text = text.replace("\r\n", "\n")
        text = extract_fenced_block(text)
        text, protected = self.protect(text)
        text = strip_markup(text)
        text = restore(text, protected)
        text = decode_entities(text)
        text = strip_markers(text)
        text = normalize_typography(text)
        text = restrict_charset(text)
        text = self.repair(text)
        return strip_prose(text)

    def protect(self, text: str) -> tuple[str, list[str]]:
        """Replace protected constructs with placeholders.

        Returns the rewritten text and the originals indexed by placeholder
        number, in protection order.
        """

        text = text.replace(_PLACEHOLDER_OPEN, "").replace(_PLACEHOLDER_CLOSE, "")
        originals: list[str] = []

        for rule in self._protect_rules:

            def _shield(match: re.Match[str], rule: ProtectRule = rule) -> str:
                fragment = match.group(0)
                if rule.reject_markup and _MARKUP_HINT.search(fragment):
                    return fragment
                originals.append(_expand_placeholders(fragment, originals))
                return f"{_PLACEHOLDER_OPEN}{len(originals) - 1}{_PLACEHOLDER_CLOSE}"

            text = rule.pattern.sub(_shield, text)
        return text, originals

    def repair(self, text: str) -> str:
        for rule in self._repair_rules:
            text = rule.pattern.sub(rule.replacement, text)
        return text


def extract_fenced_block(text: str) -> str:
    """Return the body of the first fenced block, or ``text`` without stray fences."""

    match = _FENCED_BLOCK.search(text)
    if match is not None and match.group(1).strip():
        return match.group(1)
    text = _FENCE_OPENER.sub("", text)
    return text.replace("```", "")


_FENCED_BLOCK = re.compile(r"```(?:[\w.+#-]*[ \t]*\n)?(.*?)```", re.DOTALL)
_FENCE_OPENER = re.compile(r"```[\w.+#-]*[ \t]*\n")


def strip_markup(text: str) -> str:
    return _remove_until_stable(_STRIP_PATTERNS, text)


def restore(text: str, originals: Sequence[str]) -> str:
    """Put protected originals back, in the order they were recorded."""

    for index, original in enumerate(originals):
        text = text.replace(f"{_PLACEHOLDER_OPEN}{index}{_PLACEHOLDER_CLOSE}", original)
    # Placeholders swallowed by a stripped tag leave nothing behind.
    return _PLACEHOLDER_PATTERN.sub("", text)


def decode_entities(text: str) -> str:
    text = _NESTED_AMP.sub("&", text)
    return _ENTITY_PATTERN.sub(lambda match: _ENTITIES[match.group(1).lower()], text)


def strip_markers(text: str) -> str:
    text = _remove_until_stable(_ESCAPE_PATTERNS, text)
    for pattern, replacement in _MARKER_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def normalize_typography(text: str) -> str:
    return text.translate(_TYPOGRAPHY_TABLE)


def restrict_charset(text: str) -> str:
    return _DISALLOWED_CHARS.sub("", text)


def strip_prose(text: str) -> str:
    """Drop leading labels and trailing explanations, then tidy blank lines."""

    text = text.lstrip("\n")
    for pattern in _LEADING_LABELS:
        text = pattern.sub("", text, count=1)

    lines = text.split("\n")
    for index, line in enumerate(lines[1:], start=1):
        if _TRAILING_EXPLANATION.match(line):
            lines = lines[:index]
            break
    text = "\n".join(lines)

    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def _remove_until_stable(patterns: Sequence[re.Pattern[str]], text: str) -> str:
    # Removal can join the halves of a nested tag (``<<b>b>``) into a new one.
    # Every productive pass shortens the text, so the loop terminates.
    while True:
        stripped = text
        for pattern in patterns:
            stripped = pattern.sub("", stripped)
        if stripped == text:
            return text
        text = stripped


def _expand_placeholders(fragment: str, originals: Sequence[str]) -> str:
    if _PLACEHOLDER_OPEN not in fragment:
        return fragment
    return _PLACEHOLDER_PATTERN.sub(
        lambda match: originals[int(match.group(1))] if int(match.group(1)) < len(originals) else "",
        fragment,
    )


_WHITESPACE_SPLIT = re.compile(r"\s+")


def shape_suggestion(
    suggestion: str,
    line: str,
    column: int,
    *,
    max_chars: int = 60,
    max_lines: int = 2,
) -> str:
    """Fit a sanitized suggestion to the cursor position for preview.

    Removes a leading copy of the partial word already typed before the
    cursor, then caps single-line suggestions at ``max_chars`` and multi-line
    ones at ``max_lines``.
    """

    shaped = suggestion.strip()
    if not shaped:
        return ""
    before = line[: max(0, column)]
    partial = _WHITESPACE_SPLIT.split(before)[-1] if before else ""
    if partial and shaped.lower().startswith(partial.lower()):
        shaped = shaped[len(partial) :]
    if "\n" not in shaped:
        shaped = shaped[: max(1, max_chars)]
    else:
        shaped = "\n".join(shaped.split("\n")[: max(1, max_lines)])
    return shaped.rstrip()


_DEFAULT_SANITIZER = ResponseSanitizer()


def sanitize_completion(raw: str | None) -> str:
    """Sanitize ``raw`` with the default rule tables."""

    return _DEFAULT_SANITIZER.sanitize(raw)


__all__ = [
    "PROTECT_RULES",
    "REPAIR_RULES",
    "ProtectRule",
    "RepairRule",
    "ResponseSanitizer",
    "decode_entities",
    "extract_fenced_block",
    "normalize_typography",
    "restore",
    "restrict_charset",
    "sanitize_completion",
    "shape_suggestion",
    "strip_markers",
    "strip_markup",
    "strip_prose",
]
