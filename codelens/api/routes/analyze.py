"""
Analyze API endpoint.

Runs a Gemini code review for a stored document and writes the normalized
report back (unless a newer analysis of the same document started meanwhile).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from codelens.analysis.reviewer import LLMNotConfiguredError
from codelens.documents.service import DocumentNotFoundError, DocumentService
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter
from codelens.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message
from codelens.utils.validators import ContentTooLargeError, validate_document_id

router = APIRouter(prefix="/api/analyze", tags=["analysis"])
logger = get_logger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================


class AnalyzeRequest(BaseModel):
    """
    Request to analyze a stored document.

    `content` and `language` replace the stored values when given, so the
    persisted report always describes the persisted content.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str = Field(..., min_length=1)
    content: str | None = None
    language: str | None = Field(default=None, max_length=40)
    file_name: str | None = Field(default=None, max_length=255)


# ============================================================================
# Endpoints
# ============================================================================


@router.post("")
async def analyze_code(request: AnalyzeRequest) -> dict[str, Any]:
    """
    Review a document's code.

    Returns the normalized report (summary, suggestions, quality scores)
    plus `documentId`, `revision` and `persisted`. `persisted` is false when
    the report was superseded by a newer analysis and therefore not stored.

    Errors:
        400: Invalid document id or empty content
        404: Unknown document, or deleted while the review ran
        413: Content over the size limit
        503: No Gemini backend configured
    """
    try:
        document_id = validate_document_id(request.document_id)
        outcome = await run_in_threadpool(
            DocumentService.analyze_document,
            document_id,
            request.content,
            request.language,
            request.file_name,
        )

    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None
    except LLMNotConfiguredError:
        counter("api.analyze.not_configured")
        raise HTTPException(
            status_code=503, detail="Code analysis service is not configured"
        ) from None
    except ContentTooLargeError as e:
        raise HTTPException(status_code=413, detail=sanitize_error_message(str(e), 413)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        counter("api.analyze.error")
        raise HTTPException(
            status_code=500, detail=get_safe_error_detail(e, 500, "Failed to analyze code")
        ) from None

    body = outcome.report.to_api_dict()
    body["documentId"] = outcome.document_id
    body["revision"] = outcome.revision
    body["persisted"] = outcome.persisted
    return body
