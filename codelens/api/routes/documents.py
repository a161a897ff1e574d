"""
Documents API endpoints.

CRUD for uploaded source files, multipart upload with optional immediate
analysis, and report download.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.concurrency import run_in_threadpool

from codelens.analysis.reviewer import LLMNotConfiguredError
from codelens.config import ANALYSIS_MAX_CONTENT_CHARS, API_LIST_LIMIT_DEFAULT, API_LIST_LIMIT_MAX
from codelens.documents.export import ExportError, export_report
from codelens.documents.models import DocumentCreate, DocumentSummary, DocumentUpdate
from codelens.documents.service import DocumentNotFoundError, DocumentService
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter
from codelens.utils.error_sanitizer import get_safe_error_detail, sanitize_error_message
from codelens.utils.validators import ContentTooLargeError, validate_document_id

router = APIRouter(prefix="/api/documents", tags=["documents"])
logger = get_logger(__name__)

# UTF-8 needs at most 4 bytes per character
MAX_UPLOAD_BYTES = ANALYSIS_MAX_CONTENT_CHARS * 4


def _checked_id(document_id: str) -> str:
    try:
        return validate_document_id(document_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None


# ============================================================================
# Endpoints
# ============================================================================


@router.post("", status_code=201)
async def create_document(request: DocumentCreate) -> dict[str, Any]:
    """
    Store a document without analyzing it.

    Analysis is requested separately via POST /api/analyze.
    """
    try:
        document = DocumentService.create_document(request)
        return document.to_api_dict()

    except ContentTooLargeError as e:
        raise HTTPException(status_code=413, detail=sanitize_error_message(str(e), 413)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        logger.error("Failed to create document: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create document") from None


@router.post("/upload", status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    analyze: bool = Form(True),
) -> dict[str, Any]:
    """
    Upload a source file (multipart) and optionally analyze it right away.

    The response is the stored document; when analysis ran, `analysis`
    carries the run's revision and whether its report was persisted.
    """
    raw = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        counter("documents.upload.bad_encoding")
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded text") from None

    try:
        document, outcome = await run_in_threadpool(
            DocumentService.upload_document, file.filename or "", content, analyze
        )
    except LLMNotConfiguredError:
        raise HTTPException(
            status_code=503, detail="Code analysis service is not configured"
        ) from None
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None
    except ContentTooLargeError as e:
        raise HTTPException(status_code=413, detail=sanitize_error_message(str(e), 413)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        raise HTTPException(
            status_code=500, detail=get_safe_error_detail(e, 500, "Failed to upload document")
        ) from None

    body = document.to_api_dict()
    if outcome is not None:
        body["analysis"] = {"revision": outcome.revision, "persisted": outcome.persisted}
    return body


@router.get("")
async def list_documents(
    limit: int = Query(API_LIST_LIMIT_DEFAULT, ge=1, le=API_LIST_LIMIT_MAX),
    offset: int = Query(0, ge=0),
    search: str | None = Query(None, max_length=255),
    language: str | None = Query(None, max_length=40),
    view: Literal["full", "summary"] = "full",
) -> list[dict[str, Any]]:
    """
    List documents, newest first.

    `view=summary` omits content and reports.
    """
    try:
        documents = DocumentService.list_documents(
            limit=limit, offset=offset, search=search, language=language
        )
    except Exception as e:
        logger.error("Failed to list documents: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch documents") from None

    if view == "summary":
        return [
            DocumentSummary.from_document(d).model_dump(mode="json", by_alias=True)
            for d in documents
        ]
    return [d.to_api_dict() for d in documents]


@router.get("/{document_id}")
async def get_document(document_id: str) -> dict[str, Any]:
    document_id = _checked_id(document_id)
    try:
        return DocumentService.get_document(document_id).to_api_dict()
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None


@router.put("/{document_id}")
async def update_document(document_id: str, request: DocumentUpdate) -> dict[str, Any]:
    """
    Store a manual analysis result.

    A supplied report (`report` or `geminiReport`) is normalized against the
    stored content; issue count and severity then follow the report.
    """
    document_id = _checked_id(document_id)
    try:
        return DocumentService.update_document(document_id, request).to_api_dict()

    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None
    except Exception as e:
        logger.error("Failed to update document: %s", e)
        raise HTTPException(status_code=500, detail="Failed to update document") from None


@router.delete("/{document_id}")
async def delete_document(document_id: str) -> Response:
    document_id = _checked_id(document_id)
    try:
        DocumentService.delete_document(document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None

    return Response(status_code=204)


@router.get("/{document_id}/report")
async def download_report(
    document_id: str,
    format: Literal["json", "markdown", "md"] = "json",  # noqa: A002
) -> Response:
    """Download the stored report as a JSON or Markdown attachment."""
    document_id = _checked_id(document_id)
    try:
        document = DocumentService.get_document(document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found") from None

    if document.report is None:
        raise HTTPException(status_code=404, detail="Document has not been analyzed yet")

    try:
        body, media_type, file_name = export_report(document, format)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=sanitize_error_message(str(e), 400)) from None

    counter("documents.export")
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
