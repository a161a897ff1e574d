"""
Code reviewer: static pass, Gemini review and normalization.

Pipeline for one file:
    static checks → prompt → LLM (retried) → JSON extraction → normalization

Any provider error, timeout or unusable response degrades to the
deterministic fallback report. The only error that escapes is a missing LLM
configuration, which callers surface as "service unavailable".
"""

from __future__ import annotations

from functools import lru_cache

from codelens.analysis.json_extraction import JSONExtractionError, extract_json
from codelens.analysis.models import AnalysisReport, StaticFinding
from codelens.analysis.normalizer import fallback_report, normalize_report
from codelens.analysis.static_checks import run_static_checks
from codelens.config import LLM_BREAKER_FAIL_MAX, LLM_BREAKER_RESET_SECONDS
from codelens.infrastructure import settings
from codelens.infrastructure.retry import CircuitBreaker
from codelens.llm.gemini import GeminiInitializationError
from codelens.llm.prompts import get_review_prompt
from codelens.llm.retry import call_llm
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter, log_event, time_block
from codelens.utils.redaction import redact

logger = get_logger(__name__)


class LLMNotConfiguredError(RuntimeError):
    """Raised when no Gemini credentials/project are configured."""


class CodeReviewer:
    """
    Reviews one source file and always returns a valid AnalysisReport.

    Repeated provider failures open a circuit breaker; while it is open the
    LLM is skipped and the fallback report is returned immediately.
    """

    def __init__(self, breaker: CircuitBreaker | None = None):
        self.breaker = breaker or CircuitBreaker(
            stage="reviewer",
            fail_max=LLM_BREAKER_FAIL_MAX,
            reset_timeout=LLM_BREAKER_RESET_SECONDS,
        )

    def review(self, content: str, language: str, file_name: str) -> AnalysisReport:
        """
        Review `content` and return a normalized report.

        Side Effects:
            - Calls Gemini API (unless the circuit breaker is open)
            - Increments telemetry counters

        Raises:
            LLMNotConfiguredError: If no Gemini backend is configured
        """
        static_findings = (
            run_static_checks(content, language) if settings.USE_STATIC_CHECKS else []
        )

        if not self.breaker.allow_request():
            logger.warning("Reviewer circuit open, using fallback for file=%s", redact(file_name))
            counter("reviewer.fallback.circuit_open")
            return fallback_report(content, language, file_name, static_findings)

        prompt = get_review_prompt(content, language, file_name)

        try:
            logger.info(
                "Reviewing file=%s language=%s lines=%d",
                redact(file_name),
                language,
                content.count("\n") + 1,
            )
            with time_block("reviewer.llm"):
                response_text = call_llm(
                    prompt,
                    counter_prefix="reviewer",
                    temperature=settings.REVIEW_TEMPERATURE,
                    max_output_tokens=settings.REVIEW_MAX_TOKENS,
                )
        except GeminiInitializationError as e:
            counter("reviewer.not_configured")
            raise LLMNotConfiguredError(str(e)) from e
        except Exception as e:
            self.breaker.record_failure()
            counter("reviewer.fallback.llm_error")
            logger.error("LLM review failed (%s), using fallback report", type(e).__name__)
            log_event("reviewer.llm_error", error_type=type(e).__name__, file=redact(file_name))
            return fallback_report(content, language, file_name, static_findings)

        self.breaker.record_success()
        return self._parse(response_text, content, language, file_name, static_findings)

    def _parse(
        self,
        response_text: str,
        content: str,
        language: str,
        file_name: str,
        static_findings: list[StaticFinding],
    ) -> AnalysisReport:
        try:
            raw = extract_json(response_text)
        except JSONExtractionError as e:
            counter("reviewer.fallback.parse_error")
            logger.warning("Unusable review response (%s), using fallback report", e)
            return fallback_report(content, language, file_name, static_findings)

        try:
            report = normalize_report(raw, content, language, static_findings)
        except Exception as e:
            counter("reviewer.fallback.normalize_error")
            logger.error(
                "Review normalization failed (%s), using fallback report", type(e).__name__
            )
            return fallback_report(content, language, file_name, static_findings)

        counter("reviewer.success")
        log_event(
            "reviewer.result",
            file=redact(file_name),
            total_issues=report.summary.total_issues,
            severity=report.summary.overall_severity,
            static_findings=len(static_findings),
        )
        return report


@lru_cache(maxsize=1)
def get_reviewer() -> CodeReviewer:
    """Shared reviewer (one circuit breaker per process)."""
    return CodeReviewer()
