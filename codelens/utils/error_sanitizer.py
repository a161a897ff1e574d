"""
Error message sanitization.

Keeps file paths, SQL errors, keys and stack traces out of HTTP responses.
"""

from __future__ import annotations

import re

from codelens.observability.logging import get_logger

logger = get_logger(__name__)

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack traces
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    # Database errors
    r"sqlite3?\.",
    r"constraint failed",
    r"no such (table|column)",
    r"database is locked",
    # Keys and tokens
    r"AIza[0-9A-Za-z_-]{20,}",
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    # Internal module names
    r"codelens\.[a-z_.]+",
]
_SENSITIVE_REGEX = re.compile("|".join(f"(?:{p})" for p in SENSITIVE_PATTERNS), re.IGNORECASE)

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    404: "Resource not found.",
    409: "The resource was modified by another request.",
    413: "Uploaded content is too large.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    503: "Service temporarily unavailable.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Return `message` if it is a short, harmless client-error text, otherwise
    the generic message for `status_code`.
    """
    generic = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return generic

    if _SENSITIVE_REGEX.search(message):
        logger.warning("Sanitized sensitive error message (status=%d)", status_code)
        return generic

    # Only simple 4xx validation messages are passed through
    if (
        400 <= status_code < 500
        and len(message) < 120
        and not any(c in message for c in "{}[]\n")
    ):
        return message

    return generic


def get_safe_error_detail(
    error: Exception,
    status_code: int = 500,
    context: str | None = None,
) -> str:
    """
    Log the full error and return a detail string that is safe for clients.

    For 5xx errors `context` (e.g. "Failed to analyze code") replaces the
    message entirely.
    """
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, error)

    if context and status_code >= 500:
        return context
    return sanitize_error_message(str(error), status_code)
