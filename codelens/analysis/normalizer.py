"""
Turn an untrusted LLM review payload into a validated AnalysisReport.

Every field of the raw payload is optional and may have the wrong type; the
normalizer never raises on bad input. It fills defaults, clamps numbers,
merges the static findings and recomputes every aggregate from the final
suggestion list, so the same input always yields the same report.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import Any

from codelens.analysis.models import (
    AnalysisReport,
    Category,
    CodeMetrics,
    CodeQuality,
    ExecutionAnalysis,
    ReportSource,
    ReportSummary,
    Severity,
    StaticFinding,
    Suggestion,
    SuggestionOrigin,
)
from codelens.analysis.static_checks import compute_metrics
from codelens.config import ANALYSIS_DEFAULT_SCORE
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter

logger = get_logger(__name__)

DEFAULT_TITLE = "Code Improvement Opportunity"
DEFAULT_DESCRIPTION = "An area for code improvement has been identified."
DEFAULT_SUGGESTION = "Consider reviewing and improving this code section."
DEFAULT_SNIPPET = "// Code section"
DEFAULT_MAIN_CATEGORIES = ["analysis"]

_CATEGORY_VALUES = {c.value for c in Category}
_SEVERITY_VALUES = {s.value for s in Severity}

# Loose spellings the model tends to produce
_CATEGORY_ALIASES = {
    "bug": Category.BUGS.value,
    "error": Category.BUGS.value,
    "errors": Category.BUGS.value,
    "best practice": Category.BEST_PRACTICE.value,
    "best practices": Category.BEST_PRACTICE.value,
    "best-practice": Category.BEST_PRACTICE.value,
    "best_practices": Category.BEST_PRACTICE.value,
    "debug": Category.DEBUG_CODE.value,
    "debug code": Category.DEBUG_CODE.value,
    "design": Category.DESIGN_ISSUE.value,
    "design issue": Category.DESIGN_ISSUE.value,
    "style": Category.READABILITY.value,
    "documentation": Category.READABILITY.value,
    "architecture": Category.MODULARITY.value,
}
_SEVERITY_ALIASES = {
    "critical": Severity.HIGH.value,
    "major": Severity.HIGH.value,
    "error": Severity.HIGH.value,
    "moderate": Severity.MEDIUM.value,
    "warning": Severity.MEDIUM.value,
    "minor": Severity.LOW.value,
    "info": Severity.LOW.value,
}

_LEADING_INT = re.compile(r"^\s*[-+]?\d+")


# ============================================================================
# Coercion helpers
# ============================================================================


def split_lines(content: str) -> list[str]:
    """Source lines; an empty file still has one (empty) line."""
    return (content or "").split("\n")


def coerce_int(value: Any) -> int | None:
    """
    Best-effort integer conversion.

    Accepts ints, finite floats (truncated), numeric strings and ranges such
    as "12-15" or "L12" (first number wins). Booleans are rejected.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = re.sub(r"^(lines?|l)\s*", "", value.strip(), flags=re.IGNORECASE)
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            pass
        match = _LEADING_INT.match(text)
        if match:
            try:
                return int(match.group(0))
            except ValueError:
                # Over the interpreter's integer-string digit limit
                return None
    return None


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return default


def normalize_category(value: Any) -> str:
    if not isinstance(value, str):
        return Category.READABILITY.value
    lowered = value.strip().lower()
    if lowered in _CATEGORY_VALUES:
        return lowered
    snake = re.sub(r"[\s-]+", "_", lowered)
    if snake in _CATEGORY_VALUES:
        return snake
    return _CATEGORY_ALIASES.get(lowered, Category.READABILITY.value)


def normalize_severity(value: Any) -> str | None:
    """Lower-cased severity, or None when the value is not recognised."""
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    if lowered in _SEVERITY_VALUES:
        return lowered
    return _SEVERITY_ALIASES.get(lowered)


def highest_severity(suggestions: list[Suggestion]) -> str:
    if not suggestions:
        return Severity.LOW.value
    return max((Severity(s.severity) for s in suggestions), key=lambda s: s.rank).value


# ============================================================================
# Sections
# ============================================================================


def _normalize_suggestion(raw: dict[str, Any], index: int, lines: list[str]) -> Suggestion:
    line_count = max(1, len(lines))
    line_number = clamp(coerce_int(raw.get("lineNumber", raw.get("line_number"))) or 1, 1, line_count)

    snippet = _optional_text(raw.get("codeSnippet", raw.get("code_snippet")))
    if snippet is None:
        snippet = lines[line_number - 1].strip() if line_number <= len(lines) else ""
        snippet = snippet or DEFAULT_SNIPPET

    raw_id = raw.get("id")
    suggestion_id = (
        str(raw_id).strip()
        if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool) and str(raw_id).strip()
        else f"suggestion-{index + 1}"
    )

    return Suggestion(
        id=suggestion_id,
        category=normalize_category(raw.get("category")),
        severity=normalize_severity(raw.get("severity")) or Severity.MEDIUM.value,
        title=_text(raw.get("title"), DEFAULT_TITLE),
        description=_text(raw.get("description"), DEFAULT_DESCRIPTION),
        line_number=line_number,
        code_snippet=snippet,
        suggestion=_text(raw.get("suggestion"), DEFAULT_SUGGESTION),
        error_type=_optional_text(raw.get("errorType", raw.get("error_type"))),
        potential_impact=_optional_text(raw.get("potentialImpact", raw.get("potential_impact"))),
        origin=SuggestionOrigin.LLM,
    )


def _dedupe_ids(suggestions: list[Suggestion]) -> list[Suggestion]:
    seen: set[str] = set()
    result = []
    for suggestion in suggestions:
        candidate = suggestion.id
        n = 2
        while candidate in seen:
            candidate = f"{suggestion.id}-{n}"
            n += 1
        seen.add(candidate)
        result.append(
            suggestion if candidate == suggestion.id else suggestion.model_copy(update={"id": candidate})
        )
    return result


def _normalize_code_quality(raw: Any) -> CodeQuality | None:
    if not isinstance(raw, dict):
        return None
    values = {}
    for field in ("readability", "maintainability", "efficiency", "security"):
        number = coerce_int(raw.get(field))
        values[field] = clamp(number if number is not None else 5, 0, 10)
    return CodeQuality(**values)


def _normalize_execution(raw: Any) -> ExecutionAnalysis | None:
    if not isinstance(raw, dict):
        return None
    return ExecutionAnalysis(
        will_compile=_coerce_bool(raw.get("willCompile"), True),
        will_run=_coerce_bool(raw.get("willRun"), True),
        has_infinite_loops=_coerce_bool(raw.get("hasInfiniteLoops"), False),
        has_memory_issues=_coerce_bool(raw.get("hasMemoryIssues"), False),
        potential_output=_text(raw.get("potentialOutput"), ""),
    )


def merge_static_findings(
    suggestions: list[Suggestion], static_findings: list[StaticFinding] | None
) -> list[Suggestion]:
    """
    Append static findings after the given suggestions.

    A finding is skipped when a suggestion already covers the same line and
    category, or when an identical finding was already merged.
    """
    if not static_findings:
        return list(suggestions)

    covered = {(s.line_number, s.category) for s in suggestions}
    merged = list(suggestions)
    for finding in static_findings:
        key = (finding.line_number, finding.category)
        if key in covered:
            continue
        covered.add(key)
        merged.append(finding.to_suggestion())
    return merged


def _main_categories(raw: Any, suggestions: list[Suggestion]) -> list[str]:
    if isinstance(raw, list):
        cleaned = []
        for item in raw:
            if isinstance(item, str) and item.strip():
                value = item.strip().lower()
                if value not in cleaned:
                    cleaned.append(value)
        if cleaned:
            return cleaned

    if suggestions:
        frequency = Counter(s.category for s in suggestions)
        # Ties keep first-seen order (Counter preserves insertion order)
        return [category for category, _ in frequency.most_common()]

    return list(DEFAULT_MAIN_CATEGORIES)


def build_report(
    suggestions: list[Suggestion],
    *,
    source: ReportSource,
    overall_score: int,
    overall_severity: str | None = None,
    main_categories: Any = None,
    code_quality: CodeQuality | None = None,
    execution_analysis: ExecutionAnalysis | None = None,
) -> AnalysisReport:
    """Recompute aggregates from the final suggestion list and validate."""
    suggestions = _dedupe_ids(suggestions)
    categories = {s.category for s in suggestions}

    summary = ReportSummary(
        total_issues=len(suggestions),
        overall_severity=overall_severity or highest_severity(suggestions),
        main_categories=_main_categories(main_categories, suggestions),
        overall_score=clamp(overall_score, 0, 100),
        has_critical_errors=any(s.severity == Severity.HIGH.value for s in suggestions),
        has_runtime_errors=bool(categories & {Category.BUGS.value, Category.SYNTAX.value}),
        has_logical_errors=Category.LOGIC.value in categories,
    )
    return AnalysisReport(
        summary=summary,
        suggestions=suggestions,
        code_quality=code_quality,
        execution_analysis=execution_analysis,
        source=source,
    )


# ============================================================================
# Public API
# ============================================================================


def normalize_report(
    raw: Any,
    content: str,
    language: str,
    static_findings: list[StaticFinding] | None = None,
) -> AnalysisReport:
    """
    Validate and complete a raw LLM review payload.

    Args:
        raw: Parsed JSON from the model (any shape)
        content: The reviewed source, used to clamp line numbers and fill snippets
        language: Language label (logged only)
        static_findings: Deterministic findings to merge after the LLM suggestions

    Returns:
        AnalysisReport with source="llm"
    """
    data = raw if isinstance(raw, dict) else {}
    lines = split_lines(content)

    summary_raw = data.get("summary")
    if not isinstance(summary_raw, dict):
        summary_raw = {}

    raw_suggestions = data.get("suggestions")
    if not isinstance(raw_suggestions, list):
        raw_suggestions = []

    dropped = sum(1 for item in raw_suggestions if not isinstance(item, dict))
    if dropped:
        counter("normalizer.dropped_suggestions", dropped)
        logger.warning("Dropped %d malformed suggestions (language=%s)", dropped, language)

    suggestions = [
        _normalize_suggestion(item, index, lines)
        for index, item in enumerate(raw_suggestions)
        if isinstance(item, dict)
    ]
    suggestions = merge_static_findings(_dedupe_ids(suggestions), static_findings)

    score = coerce_int(summary_raw.get("overallScore"))
    severity = normalize_severity(summary_raw.get("overallSeverity"))
    if severity is None:
        counter("normalizer.severity_derived")

    return build_report(
        suggestions,
        source=ReportSource.LLM,
        overall_score=score if score is not None else ANALYSIS_DEFAULT_SCORE,
        overall_severity=severity,
        main_categories=summary_raw.get("mainCategories"),
        code_quality=_normalize_code_quality(data.get("codeQuality")),
        execution_analysis=_normalize_execution(data.get("executionAnalysis")),
    )


def fallback_report(
    content: str,
    language: str,
    file_name: str,
    static_findings: list[StaticFinding] | None = None,
    metrics: CodeMetrics | None = None,
) -> AnalysisReport:
    """
    Deterministic report used when the LLM fails or returns nothing usable.

    Three heuristic suggestions (documentation, function organization, error
    handling) driven by line count, comments and error handling, followed by
    the static findings.
    """
    lines = split_lines(content)
    metrics = metrics or compute_metrics(content)
    n = len(lines)

    overall_severity = Severity.MEDIUM.value
    overall_score = 65
    if n > 100 and not metrics.has_comments:
        overall_severity = Severity.HIGH.value
        overall_score = 45
    elif n > 50 and not metrics.has_error_handling:
        overall_score = 60

    def line_at(index: int, default: str) -> str:
        if 0 <= index < n and lines[index].strip():
            return lines[index].strip()
        return default

    has_functions = metrics.has_functions
    has_error_handling = metrics.has_error_handling

    heuristics = [
        Suggestion(
            id="fallback-1",
            category=Category.READABILITY,
            severity=Severity.MEDIUM,
            title="Code Documentation Needed",
            description=(
                f"The {language} code in {file_name} lacks sufficient comments and "
                "documentation, making it difficult for other developers to understand "
                "the logic and purpose."
            ),
            line_number=max(1, n // 2),
            code_snippet=line_at(n // 2, "// Complex logic section"),
            suggestion=(
                "Add inline comments explaining complex logic, document function purposes, "
                "and consider adding a file header with overview documentation."
            ),
            origin=SuggestionOrigin.HEURISTIC,
        ),
        Suggestion(
            id="fallback-2",
            category=Category.MODULARITY,
            severity=Severity.LOW if has_functions else Severity.HIGH,
            title="Function Organization" if has_functions else "Procedural Code Structure",
            description=(
                "Functions could be better organized with clearer responsibilities and "
                "separation of concerns."
                if has_functions
                else "Code appears to be written procedurally without proper "
                "function/module separation."
            ),
            line_number=min(10, n),
            code_snippet=line_at(min(9, n - 1), "// Main logic section"),
            suggestion=(
                "Refactor functions to follow single responsibility principle. Consider "
                "breaking large functions into smaller, focused ones."
                if has_functions
                else "Extract reusable logic into functions. Organize code into logical "
                "modules or classes based on functionality."
            ),
            origin=SuggestionOrigin.HEURISTIC,
        ),
        Suggestion(
            id="fallback-3",
            category=Category.BUGS,
            severity=Severity.LOW if has_error_handling else Severity.MEDIUM,
            title="Error Handling Review" if has_error_handling else "Missing Error Handling",
            description=(
                "Existing error handling should be reviewed for completeness and consistency."
                if has_error_handling
                else "Code lacks proper error handling for potential runtime exceptions "
                "and edge cases."
            ),
            line_number=min(5, n),
            code_snippet=line_at(min(4, n - 1), "// Potential error-prone section"),
            suggestion=(
                "Ensure all external calls and potential failure points have appropriate "
                "error handling. Consider consistent error logging."
                if has_error_handling
                else "Implement try-catch blocks around external API calls, file operations, "
                "and user input processing. Add validation for function parameters."
            ),
            origin=SuggestionOrigin.HEURISTIC,
        ),
    ]

    suggestions = merge_static_findings(heuristics, static_findings)
    # Only static findings may raise the heuristic severity
    static_part = suggestions[len(heuristics):]
    severity = max(
        (Severity(overall_severity), Severity(highest_severity(static_part))),
        key=lambda s: s.rank,
    ).value

    return build_report(
        suggestions,
        source=ReportSource.FALLBACK,
        overall_score=overall_score,
        overall_severity=severity,
        main_categories=["readability", "structure", "maintainability"],
    )
