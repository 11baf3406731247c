"""Helpers for treating model output as untrusted text."""

from __future__ import annotations

import json
import re
from typing import Any

_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")


def extract_json(text: str | None) -> dict[str, Any] | None:
    """Parse the JSON object spanning the first '{' to the last '}' of text.

    Returns None when there is no brace pair, the slice is not valid JSON, or
    the parsed value is not an object. Never raises.
    """
    if not text:
        return None
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last < first:
        return None
    try:
        parsed = json.loads(text[first : last + 1])
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def strip_code_fences(text: str | None) -> str:
    """Remove a wrapping ``` or ```markdown fence and surrounding whitespace."""
    stripped = (text or "").strip()
    if stripped.startswith("```"):
        stripped = _LEADING_FENCE.sub("", stripped, count=1)
        stripped = _TRAILING_FENCE.sub("", stripped, count=1)
    return stripped.strip()
