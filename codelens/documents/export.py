"""
Report export - render a document's report as a downloadable file.

Formats:
- json: the stored report plus document metadata
- markdown: header, summary table, then one section per suggestion
"""

from __future__ import annotations

import json
import re
from typing import Any

from codelens.analysis.models import AnalysisReport, Suggestion
from codelens.documents.models import Document

EXPORT_FORMATS = ("json", "markdown")

MEDIA_TYPES = {
    "json": "application/json",
    "markdown": "text/markdown; charset=utf-8",
}

_EXTENSIONS = {"json": "json", "markdown": "md"}

MARKDOWN_TEMPLATE = """# Code Review: {file_name}

- **Language:** {language}
- **Analyzed:** {updated_at}
- **Report source:** {source}

## Summary

| Metric | Value |
| --- | --- |
| Total issues | {total_issues} |
| Overall severity | {overall_severity} |
| Overall score | {overall_score}/100 |
| Main categories | {main_categories} |
| Critical errors | {has_critical_errors} |
| Runtime errors | {has_runtime_errors} |
| Logical errors | {has_logical_errors} |
{quality}
## Suggestions

{suggestions}
"""


class ExportError(ValueError):
    """Raised when a document cannot be exported."""


def export_file_name(document: Document, fmt: str) -> str:
    """`report.py` → `report.py-review.md` (quotes and separators removed)."""
    safe = re.sub(r'[^\w.\-]', "_", document.file_name) or "document"
    return f"{safe}-review.{_EXTENSIONS[fmt]}"


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


def _render_quality(report: AnalysisReport) -> str:
    if report.code_quality is None:
        return ""
    quality = report.code_quality
    return (
        "\n## Code Quality\n\n"
        "| Aspect | Score |\n"
        "| --- | --- |\n"
        f"| Readability | {quality.readability}/10 |\n"
        f"| Maintainability | {quality.maintainability}/10 |\n"
        f"| Efficiency | {quality.efficiency}/10 |\n"
        f"| Security | {quality.security}/10 |\n"
    )


def _render_suggestion(index: int, suggestion: Suggestion) -> str:
    parts = [
        f"### {index}. {suggestion.title}",
        "",
        f"*{suggestion.severity} / {suggestion.category} / line {suggestion.line_number}*",
        "",
        suggestion.description,
    ]
    if suggestion.code_snippet:
        # Longer fences keep snippets that contain ``` intact
        parts += ["", "````", suggestion.code_snippet, "````"]
    parts += ["", f"**Suggestion:** {suggestion.suggestion}"]
    if suggestion.potential_impact:
        parts += ["", f"**Impact:** {suggestion.potential_impact}"]
    return "\n".join(parts)


def render_markdown(document: Document) -> str:
    report = document.report
    if report is None:
        raise ExportError("Document has no report yet")

    summary = report.summary
    suggestions = "\n\n".join(
        _render_suggestion(i, s) for i, s in enumerate(report.suggestions, start=1)
    )

    return MARKDOWN_TEMPLATE.format(
        file_name=document.file_name,
        language=document.language,
        updated_at=document.updated_at.isoformat(),
        source=report.source,
        total_issues=summary.total_issues,
        overall_severity=summary.overall_severity,
        overall_score=summary.overall_score,
        main_categories=", ".join(summary.main_categories),
        has_critical_errors=_yes_no(summary.has_critical_errors),
        has_runtime_errors=_yes_no(summary.has_runtime_errors),
        has_logical_errors=_yes_no(summary.has_logical_errors),
        quality=_render_quality(report),
        suggestions=suggestions or "No issues found.",
    )


def render_json(document: Document) -> str:
    if document.report is None:
        raise ExportError("Document has no report yet")

    payload: dict[str, Any] = {
        "id": document.id,
        "fileName": document.file_name,
        "language": document.language,
        "analyzedAt": document.updated_at.isoformat(),
        "report": document.report.to_api_dict(),
    }
    return json.dumps(payload, indent=2)


def export_report(document: Document, fmt: str) -> tuple[str, str, str]:
    """
    Render `document`'s report.

    Returns:
        (body, media type, download file name)

    Raises:
        ExportError: Unknown format or no report stored
    """
    fmt = (fmt or "").lower()
    if fmt == "md":
        fmt = "markdown"
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unsupported export format: {fmt}")

    body = render_markdown(document) if fmt == "markdown" else render_json(document)
    return body, MEDIA_TYPES[fmt], export_file_name(document, fmt)
