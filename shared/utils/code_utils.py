"""Helpers for cleaning up LLM-generated code and text."""
import re

_OPENING_FENCE = re.compile(r"^```(?:python|py|python3)?[ \t]*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```\s*$")


def strip_markdown_fences(code: str) -> str:
    """
    Remove a markdown code fence wrapped around generated code.

    Handles ```python, ```py and bare ``` fences at the start and end of the
    string. Text without fences is returned trimmed.
    """
    cleaned = code.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def derive_title(outline: str, max_length: int = 100) -> str:
    """First line of the outline, trimmed and cut to max_length characters."""
    first_line = outline.strip().split("\n", 1)[0]
    return first_line[:max_length].strip()
