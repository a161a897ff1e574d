"""
Shared Gemini model instance.

Supports two backends:
  1. Vertex AI SDK, when GOOGLE_CLOUD_PROJECT is set (service account auth)
  2. google-generativeai, when GEMINI_API_KEY or GOOGLE_API_KEY is set
"""

from __future__ import annotations

import os
from functools import lru_cache

from codelens.infrastructure.settings import GEMINI_LOCATION, GEMINI_MODEL
from codelens.observability.logging import get_logger

logger = get_logger(__name__)

# "vertexai" or "genai" once a model has been created
_backend: str | None = None


class GeminiInitializationError(RuntimeError):
    """Raised when no Gemini backend can be configured."""


def get_backend() -> str | None:
    return _backend


def _model_name() -> str:
    return os.getenv("GEMINI_MODEL") or GEMINI_MODEL


def _init_vertex(project: str):
    try:
        import vertexai
        from vertexai.generative_models import GenerativeModel
    except ImportError as e:
        raise GeminiInitializationError(
            "GOOGLE_CLOUD_PROJECT is set but google-cloud-aiplatform is not installed"
        ) from e

    location = os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION
    vertexai.init(project=project, location=location)
    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        project,
        location,
        _model_name(),
    )
    return GenerativeModel(_model_name())


def _init_genai(api_key: str):
    try:
        import google.generativeai as genai
    except ImportError as e:
        raise GeminiInitializationError(
            "An API key is set but google-generativeai is not installed"
        ) from e

    genai.configure(api_key=api_key)
    logger.info("Initialized Gemini model (google-generativeai): model=%s", _model_name())
    return genai.GenerativeModel(_model_name())


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create the shared Gemini model.

    Environment is read at call time, not import time, so values loaded by
    python-dotenv after import are honoured.

    Raises:
        GeminiInitializationError: If no backend is configured or the SDK fails
    """
    global _backend

    project = os.getenv("GOOGLE_CLOUD_PROJECT")
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")

    if not project and not api_key:
        raise GeminiInitializationError(
            "LLM not configured: set GOOGLE_CLOUD_PROJECT or GEMINI_API_KEY"
        )

    try:
        if project:
            model = _init_vertex(project)
            _backend = "vertexai"
        else:
            model = _init_genai(api_key)
            _backend = "genai"
    except GeminiInitializationError:
        raise
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    return model


def clear_model_cache() -> None:
    """Forget the cached model (tests, reconfiguration)."""
    global _backend
    get_gemini_model.cache_clear()
    _backend = None
    logger.info("Cleared Gemini model cache")
