"""
Cleanup of raw model output before JSON parsing.

Models regularly wrap their JSON in markdown fences, add explanatory prose,
sprinkle ``//`` comments or leave trailing commas. Each of these is handled by
one pure ``str -> str`` stage; :func:`sanitize` applies the stages in order.

Every stage only ever removes characters, so :func:`sanitize` re-applies the
stages until the text stops changing. The result is a fixed point, which makes
``sanitize(sanitize(x)) == sanitize(x)`` hold for any input.

Example:
    >>> sanitize('Sure!\\n```json\\n{"a": [1, 2,],}\\n```')
    '{"a": [1, 2]}'
"""

from __future__ import annotations

import re
from typing import Callable

Stage = Callable[[str], str]

# Whole text wrapped in a fence, optionally language-tagged (```json ... ```)
FENCE_PATTERN = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?(.*?)\r?\n?[ \t]*```$", re.DOTALL)

# `//` comment running to the end of the line, wherever it starts. A `//`
# right after `:` is a URL scheme (https://example.com) and is kept.
LINE_COMMENT_PATTERN = re.compile(r"(?<!:)//[^\r\n]*")

# One or more commas (with trailing whitespace) directly before ] or }
TRAILING_COMMA_PATTERN = re.compile(r"(?:,\s*)+(?=[\]}])")


def strip_whitespace(text: str) -> str:
    """Trim surrounding whitespace."""
    return text.strip()


def strip_code_fences(text: str) -> str:
    """
    Remove a markdown code fence wrapping the whole text.

    A fenced block with prose around it is left in place; ``isolate_object``
    later cuts the prose and both fences away with it.
    """
    match = FENCE_PATTERN.match(text)
    while match:
        text = match.group(1).strip()
        match = FENCE_PATTERN.match(text)
    return text


def strip_line_comments(text: str) -> str:
    """Remove ``//`` comments up to the end of each line."""
    return LINE_COMMENT_PATTERN.sub("", text)


def strip_trailing_commas(text: str) -> str:
    """Remove commas that immediately precede a closing ``]`` or ``}``."""
    return TRAILING_COMMA_PATTERN.sub("", text)


def isolate_object(text: str) -> str:
    """
    Slice from the first ``{`` to the last ``}``.

    Leading and trailing prose is discarded. Text without such a span is
    returned trimmed but otherwise unchanged.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text.strip()
    return text[start:end + 1]


SANITIZE_STAGES: tuple[Stage, ...] = (
    strip_whitespace,
    strip_code_fences,
    strip_line_comments,
    strip_trailing_commas,
    isolate_object,
)


def _apply_stages(text: str) -> str:
    for stage in SANITIZE_STAGES:
        text = stage(text)
    return text


def sanitize(raw: str) -> str:
    """
    Clean raw model output into candidate JSON text.

    Never raises; in the worst case the (trimmed) input comes back unchanged.

    Args:
        raw: The model reply as returned by the backend.

    Returns:
        Text ready for :func:`contract_risk.parser.parse_analysis`.
    """
    text = raw or ""
    while True:
        cleaned = _apply_stages(text)
        if cleaned == text:
            return cleaned
        text = cleaned
