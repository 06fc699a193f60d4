"""Validate assistant replies and scrub stream markers before persistence."""

from __future__ import annotations

import re
from typing import Any

# Stream markers that must never be stored as content
_SENTINEL_PATTERN = re.compile(r"\[(?:START|END)\]|\[ERROR\]\s?")

# Patterns that suggest the raw JSON envelope leaked into the reply
_RAW_JSON_PATTERN = re.compile(
    r'\{\s*"(?:thoughts|response|function_call|parameters)"', re.IGNORECASE
)

# Patterns that suggest swallowed tool errors
_SWALLOWED_ERROR_PATTERNS = [
    re.compile(r"Tool '[\w]+' failed:", re.IGNORECASE),
    re.compile(r"Tool '[\w]+' timed out", re.IGNORECASE),
    re.compile(r"Traceback \(most recent call last\)"),
]


def contains_sentinel(text: str) -> bool:
    return bool(_SENTINEL_PATTERN.search(text))


def scrub_sentinels(text: str) -> str:
    """Remove stream markers from free text."""
    return _SENTINEL_PATTERN.sub("", text).strip()


def validate_reply(text: str) -> dict[str, Any]:
    """Validate a reply before it goes back to the patient.

    Checks:
    - Reply is non-empty
    - No raw JSON envelope leaked into the reply
    - No stream markers embedded in content
    - No tool error messages silently passed through

    Returns:
        Dict with ``passed`` bool and ``issues`` list.
    """
    issues: list[str] = []

    if not text or not text.strip():
        issues.append("Reply is empty.")
        return {"passed": False, "issues": issues}

    if _RAW_JSON_PATTERN.search(text):
        issues.append("Reply contains the raw JSON envelope.")

    if contains_sentinel(text):
        issues.append("Reply contains stream markers.")

    for pattern in _SWALLOWED_ERROR_PATTERNS:
        if pattern.search(text):
            issues.append(f"Reply contains tool error message: {pattern.pattern}")
            break  # One error message finding is enough

    return {"passed": len(issues) == 0, "issues": issues}
