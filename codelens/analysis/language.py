"""File-extension based language detection."""

from __future__ import annotations

UNKNOWN_LANGUAGE = "Unknown"

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "js": "JavaScript",
    "jsx": "JavaScript",
    "ts": "TypeScript",
    "tsx": "TypeScript",
    "py": "Python",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "go": "Go",
    "rb": "Ruby",
    "php": "PHP",
    "sql": "SQL",
    "css": "CSS",
    "html": "HTML",
    "xml": "XML",
    "json": "JSON",
    "yaml": "YAML",
    "yml": "YAML",
}


def detect_language(file_name: str | None) -> str:
    """
    Map a file name to a language label using its last extension.

    Examples:
        >>> detect_language("App.TSX")
        'TypeScript'
        >>> detect_language("Makefile")
        'Unknown'
    """
    if not file_name or "." not in file_name:
        return UNKNOWN_LANGUAGE
    extension = file_name.rsplit(".", 1)[1].strip().lower()
    return LANGUAGE_BY_EXTENSION.get(extension, UNKNOWN_LANGUAGE)


def is_supported(file_name: str | None) -> bool:
    return detect_language(file_name) != UNKNOWN_LANGUAGE
