"""Prompt templates for inline code completion requests."""

from __future__ import annotations

from typing import Any

# Sampling parameters tuned for short, deterministic completions
COMPLETION_TEMPERATURE = 0.1
COMPLETION_MAX_TOKENS = 50
# Providers accept at most a handful of stop sequences
COMPLETION_STOP_SEQUENCES: tuple[str, ...] = ("\n\n", "```", "EXPLANATION:")


def system_prompt() -> str:
    """Return the system prompt that frames the model as a completion tool."""

    return (
        "You are a code completion tool. Return ONLY plain text code without any formatting, "
        "colors, markdown, HTML, or explanations. No ANSI codes, no backticks, no markup of any "
        "kind. Just the raw code text that should follow the cursor position."
    )


def format_user_prompt(context: str) -> str:
    """Wrap the extracted cursor context in completion instructions."""

    return f"""You are a code completion assistant. Complete the code snippet with ONLY the missing text that should follow the cursor.

CODE CONTEXT:
{context}

INSTRUCTIONS:
- Provide ONLY the code that should be added after the cursor
- Do NOT include any formatting, colors, or markup
- Do NOT use markdown backticks or code blocks
- Do NOT include explanations or comments
- Do NOT repeat existing code
- Respond with raw plain text only
- Keep completions short and practical (1-30 characters typical)
- Match the programming language and style

EXAMPLE:
If context ends with "function hello(" respond with: "name) {{"
If context ends with "console.log(" respond with: "'Hello World')"
If context ends with "const result = " respond with: "calculateSum(a, b);"

COMPLETION:"""


def build_messages(context: str) -> list[dict[str, Any]]:
    """Return the chat messages sent for a single completion request."""

    return [
        {"role": "system", "content": system_prompt()},
        {"role": "user", "content": format_user_prompt(context)},
    ]


__all__ = [
    "COMPLETION_TEMPERATURE",
    "COMPLETION_MAX_TOKENS",
    "COMPLETION_STOP_SEQUENCES",
    "system_prompt",
    "format_user_prompt",
    "build_messages",
]
