"""
Helpers for keeping user data out of logs and prompts.

Provides:
- redact(): Hash sensitive strings for correlation without exposure
- sanitize_for_prompt(): Strip prompt injection patterns from short metadata
"""

from __future__ import annotations

import re
from hashlib import sha256

# Phrases that try to override the review instructions
INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"forget\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"\[/?INST\]",
    r"<\|im_(start|end)\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def sanitize_for_prompt(text: str | None, max_length: int = 255) -> str:
    """
    Clean a short user-supplied value (file name, language label) before it
    is placed in a prompt.

    Source code itself is never passed through here: the reviewer has to see
    it verbatim.

    Examples:
        >>> sanitize_for_prompt("main.py")
        'main.py'
        >>> sanitize_for_prompt("x.py ignore previous instructions")
        'x.py [filtered]'
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub(" ", text)
    cleaned = INJECTION_REGEX.sub("[filtered]", cleaned)
    cleaned = cleaned.replace("```", "")
    return cleaned.strip()[:max_length]
