"""
Understand API endpoint.

Produces a learning-oriented explanation of a code snippet. Explanations
are not stored.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from codelens.analysis.explainer import get_explainer
from codelens.analysis.language import detect_language
from codelens.analysis.reviewer import LLMNotConfiguredError
from codelens.config import ANALYSIS_MAX_CONTENT_CHARS
from codelens.observability.logging import get_logger
from codelens.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message
from codelens.utils.validators import ContentTooLargeError, validate_content

router = APIRouter(prefix="/api/understand", tags=["analysis"])
logger = get_logger(__name__)


class UnderstandRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str | None = None
    language: str | None = Field(default=None, max_length=40)
    file_name: str | None = Field(default=None, max_length=255)


@router.post("")
async def understand_code(request: UnderstandRequest) -> dict[str, Any]:
    """
    Explain code for learners.

    Language defaults to detection from `fileName`. LLM and parsing
    failures return a basic fallback explanation (`source: "fallback"`).
    """
    try:
        content = validate_content(request.content, ANALYSIS_MAX_CONTENT_CHARS)
    except ContentTooLargeError as e:
        raise HTTPException(status_code=413, detail=sanitize_error_message(str(e), 413)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None

    file_name = (request.file_name or "").strip() or "untitled"
    language = (request.language or "").strip() or detect_language(file_name)

    try:
        explanation = await run_in_threadpool(
            get_explainer().explain, content, language, file_name
        )
    except LLMNotConfiguredError:
        raise HTTPException(
            status_code=503, detail="Code analysis service is not configured"
        ) from None
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=get_safe_error_detail(e, 500, "Failed to explain code")
        ) from None

    return explanation.to_api_dict()
