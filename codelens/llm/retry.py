"""Gemini request used by code review and code explanation.

A review prompt carries a whole source file and asks for a JSON report, so a
single call can be slow and can hit the per-minute quota when several files
are analyzed back to back. `call_llm` turns the Google API errors that are
worth another attempt into builtin exceptions and lets tenacity retry them.
Everything else goes straight back to the caller. CodeReviewer answers a
final failure with the fallback report and CodeExplainer with the fallback
explanation. A missing backend is never retried and surfaces as 503.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from codelens.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from codelens.infrastructure.settings import REVIEW_MAX_TOKENS, REVIEW_TEMPERATURE
from codelens.llm.gemini import get_gemini_model
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter

logger = get_logger(__name__)


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, OSError)),
    reraise=True,
)
def call_llm(
    prompt: str,
    counter_prefix: str = "llm",
    temperature: float = REVIEW_TEMPERATURE,
    max_output_tokens: int = REVIEW_MAX_TOKENS,
    json_output: bool = True,
) -> str:
    """Run one review or explanation prompt and return the model's raw text.

    The text is unparsed; callers hand it to `extract_json`.

    Args:
        prompt: Rendered review or explanation prompt, source code included.
        counter_prefix: "reviewer" or "explainer"; prefixes the call counters.
        temperature: Review runs low so repeated reviews of a file agree.
        max_output_tokens: Room for the JSON report or explanation.
        json_output: Request application/json so the report needs less repair.

    Raises:
        TimeoutError: On deadline exceeded (retryable).
        ConnectionError: On service unavailable or internal error (retryable).
        OSError: On resource exhausted / rate limited (retryable).
        GeminiInitializationError: When no backend is configured (not retried).
        Exception: Anything else the SDK raises (not retried, caller handles).
    """
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    model = get_gemini_model()

    generation_config: dict = {
        "temperature": temperature,
        "max_output_tokens": max_output_tokens,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    counter(f"{counter_prefix}.llm_calls")
    try:
        response = model.generate_content(prompt, generation_config=generation_config)
        return response.text
    except DeadlineExceeded as e:
        counter(f"{counter_prefix}.timeout")
        logger.warning("Gemini %s call timed out after %ds", counter_prefix, LLM_TIMEOUT_SECONDS)
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        counter(f"{counter_prefix}.service_unavailable")
        logger.warning("Gemini unavailable during %s call, will retry: %s", counter_prefix, e)
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        counter(f"{counter_prefix}.rate_limited")
        logger.warning(
            "Gemini quota hit during %s call (429), will retry: %s", counter_prefix, e
        )
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        counter(f"{counter_prefix}.internal_error")
        logger.warning(
            "Gemini internal error during %s call (500), will retry: %s", counter_prefix, e
        )
        raise ConnectionError(f"LLM internal error: {e}") from e
