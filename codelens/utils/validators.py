"""
Input validation for identifiers and uploaded file metadata.
"""

from __future__ import annotations

import re
import uuid

# Printable file names, no path separators
FILE_NAME_PATTERN = re.compile(r"^[^/\\\x00-\x1f]+$")
MAX_FILE_NAME_LENGTH = 255


class ValidationError(ValueError):
    """Raised when input validation fails."""


class ContentTooLargeError(ValidationError):
    """Raised when uploaded content exceeds the configured size limit."""


def validate_document_id(document_id: str | None) -> str:
    """
    Validate a document id (canonical UUID string).

    Raises:
        ValidationError: If the id is missing or not a UUID
    """
    if not document_id or not document_id.strip():
        raise ValidationError("Document ID is required")

    try:
        parsed = uuid.UUID(document_id.strip())
    except ValueError as e:
        raise ValidationError("Invalid document ID format") from e

    return str(parsed)


def validate_file_name(file_name: str | None) -> str:
    """
    Validate an uploaded file name and return it stripped.

    Any directory part sent by the browser is discarded.

    Raises:
        ValidationError: If the name is empty, too long or contains control chars
    """
    if file_name is None:
        raise ValidationError("File name is required")

    name = re.split(r"[/\\]", file_name.strip())[-1]
    if not name or name in {".", ".."}:
        raise ValidationError("File name is required")

    if len(name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(f"File name exceeds maximum length of {MAX_FILE_NAME_LENGTH}")

    if not FILE_NAME_PATTERN.match(name):
        raise ValidationError("File name contains invalid characters")

    return name


def validate_content(content: str | None, max_chars: int) -> str:
    """
    Validate uploaded source text.

    Raises:
        ValidationError: If the content is empty or whitespace only
        ContentTooLargeError: If it exceeds `max_chars`
    """
    if content is None or not content.strip():
        raise ValidationError("Content is required")
    if len(content) > max_chars:
        raise ContentTooLargeError(f"Content exceeds maximum size of {max_chars} characters")
    return content
