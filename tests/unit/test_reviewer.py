"""Unit tests for CodeReviewer: LLM path, fallbacks and circuit breaker.

The Gemini call is mocked (mock_llm fixture); no network access.
"""

from __future__ import annotations

import pytest

from codelens.analysis.reviewer import CodeReviewer, LLMNotConfiguredError
from codelens.infrastructure.retry import CircuitBreaker
from codelens.llm.gemini import GeminiInitializationError
from codelens.observability.telemetry import get_counter


@pytest.fixture
def reviewer():
    return CodeReviewer(CircuitBreaker(stage="reviewer", fail_max=2, reset_timeout=60))


def test_llm_review_normalized_and_static_merged(reviewer, mock_llm, review_response, sample_code):
    """Static findings not already reported by the model are appended"""
    mock_llm.return_value = review_response

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "llm"
    # The model already reported line 5 as security, so the eval finding is not duplicated
    assert [s.id for s in report.suggestions] == ["s1", "s2"]
    assert report.summary.total_issues == 2
    assert get_counter("reviewer.success") == 1

    prompt = mock_llm.call_args.args[0]
    assert sample_code in prompt
    assert mock_llm.call_args.kwargs["counter_prefix"] == "reviewer"


def test_static_findings_added_when_model_misses_them(reviewer, mock_llm, sample_code):
    mock_llm.return_value = '{"summary": {"overallScore": 90}, "suggestions": []}'

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert [s.id for s in report.suggestions] == ["static-eval-5"]
    assert report.summary.overall_severity == "high"


def test_llm_error_returns_fallback(reviewer, mock_llm, sample_code):
    mock_llm.side_effect = TimeoutError("deadline exceeded")

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "fallback"
    assert report.suggestions[0].id == "fallback-1"
    # Static findings still reach the fallback report
    assert "static-eval-5" in [s.id for s in report.suggestions]
    assert get_counter("reviewer.fallback.llm_error") == 1


def test_unparseable_response_returns_fallback(reviewer, mock_llm, sample_code):
    mock_llm.return_value = "Sorry, I cannot help with that."

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "fallback"
    assert get_counter("reviewer.fallback.parse_error") == 1


def test_not_configured_raises(reviewer, mock_llm, sample_code):
    mock_llm.side_effect = GeminiInitializationError("LLM not configured")

    with pytest.raises(LLMNotConfiguredError):
        reviewer.review(sample_code, "Python", "loader.py")


def test_circuit_opens_after_repeated_failures(reviewer, mock_llm, sample_code):
    """Once open, the LLM is skipped and the fallback returned immediately"""
    mock_llm.side_effect = ConnectionError("unavailable")

    for _ in range(3):
        assert reviewer.review(sample_code, "Python", "a.py").source == "fallback"

    assert mock_llm.call_count == 2
    assert reviewer.breaker.state == "open"
    assert get_counter("reviewer.fallback.circuit_open") == 1


def test_success_resets_failures(reviewer, mock_llm, review_response, sample_code):
    mock_llm.side_effect = [ConnectionError("x"), review_response, ConnectionError("y")]

    for _ in range(3):
        reviewer.review(sample_code, "Python", "a.py")

    assert reviewer.breaker.state == "closed"


@pytest.mark.parametrize(
    "response",
    [
        '{"summary": {"overallScore": ' + "9" * 5000 + '}, "suggestions": []}',
        "[" * 100000,
        '{"a": ' * 100000,
    ],
    ids=["oversized-integer", "deep-array", "deep-object-truncated"],
)
def test_pathological_response_returns_fallback(reviewer, mock_llm, sample_code, response):
    """Decoder limits in model output end in the fallback report, not an exception"""
    mock_llm.return_value = response

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "fallback"
    assert report.summary.total_issues == len(report.suggestions)
    assert get_counter("reviewer.fallback.parse_error") == 1


def test_oversized_line_number_still_yields_llm_report(reviewer, mock_llm, sample_code):
    mock_llm.return_value = (
        '{"suggestions": [{"id": "big", "title": "Huge", "lineNumber": "' + "9" * 5000 + '"}]}'
    )

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "llm"
    assert report.suggestions[0].id == "big"
    assert report.suggestions[0].line_number == 1
    assert report.summary.total_issues == len(report.suggestions)


def test_normalization_error_returns_fallback(reviewer, mock_llm, sample_code, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("unexpected shape")

    monkeypatch.setattr("codelens.analysis.reviewer.normalize_report", broken)
    mock_llm.return_value = '{"suggestions": []}'

    report = reviewer.review(sample_code, "Python", "loader.py")

    assert report.source == "fallback"
    assert get_counter("reviewer.fallback.normalize_error") == 1
    assert get_counter("reviewer.success") == 0


class TestCircuitBreaker:
    def test_half_open_after_timeout(self):
        now = [0.0]
        breaker = CircuitBreaker(stage="t", fail_max=1, reset_timeout=10, clock=lambda: now[0])

        breaker.record_failure()
        assert breaker.state == "open"
        assert breaker.allow_request() is False

        now[0] = 10.0
        assert breaker.allow_request() is True
        assert breaker.state == "half_open"

    def test_failed_trial_request_reopens(self):
        now = [0.0]
        breaker = CircuitBreaker(stage="t", fail_max=3, reset_timeout=5, clock=lambda: now[0])
        for _ in range(3):
            breaker.record_failure()

        now[0] = 6.0
        assert breaker.allow_request() is True
        breaker.record_failure()

        assert breaker.state == "open"
        assert breaker.allow_request() is False

    def test_reset(self):
        breaker = CircuitBreaker(stage="t", fail_max=1)
        breaker.record_failure()
        breaker.reset()
        assert breaker.state == "closed"
        assert breaker.allow_request() is True
