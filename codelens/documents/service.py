"""Documents service layer: facade between API routes and the repository.

Owns input validation, the analyze-and-reconcile flow and dashboard
aggregation.
"""

from __future__ import annotations

from dataclasses import dataclass

from codelens import config
from codelens.analysis.language import detect_language
from codelens.analysis.models import AnalysisReport, ReportSource
from codelens.analysis.normalizer import normalize_report
from codelens.analysis.reviewer import LLMNotConfiguredError, get_reviewer
from codelens.documents.models import (
    DashboardStats,
    Document,
    DocumentCreate,
    DocumentStatus,
    DocumentUpdate,
)
from codelens.documents.repository import DocumentRepository
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter, log_event, time_block
from codelens.utils.redaction import redact
from codelens.utils.validators import validate_content, validate_file_name

logger = get_logger(__name__)


class DocumentNotFoundError(LookupError):
    """Raised when a document id does not exist (or was deleted mid-operation)."""

    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


@dataclass
class AnalysisOutcome:
    """Result of one analysis run."""

    document_id: str
    report: AnalysisReport
    revision: int
    # False when a newer analysis started before this one finished
    persisted: bool


class DocumentService:
    """Service layer for document operations."""

    @staticmethod
    def create_document(create: DocumentCreate) -> Document:
        """Validate and store a new document (status in-progress, no report)."""
        file_name = validate_file_name(create.file_name)
        content = validate_content(create.content, config.ANALYSIS_MAX_CONTENT_CHARS)
        language = (create.language or "").strip() or detect_language(file_name)
        return DocumentRepository.create(file_name, content, language)

    @staticmethod
    def get_document(document_id: str) -> Document:
        document = DocumentRepository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    @staticmethod
    def list_documents(
        limit: int = config.API_LIST_LIMIT_DEFAULT,
        offset: int = 0,
        search: str | None = None,
        language: str | None = None,
    ) -> list[Document]:
        limit = max(1, min(limit, config.API_LIST_LIMIT_MAX))
        return DocumentRepository.list_documents(
            limit=limit, offset=max(0, offset), search=search or None, language=language or None
        )

    @staticmethod
    def update_document(document_id: str, update: DocumentUpdate) -> Document:
        """
        Apply a manual analysis update.

        A supplied report is normalized against the stored content, and the
        document's issue count and severity are taken from it.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        updates: dict = {}

        if update.report is not None:
            document = DocumentService.get_document(document_id)
            report = normalize_report(update.report, document.content, document.language)
            if update.report.get("source") == ReportSource.FALLBACK.value:
                report = report.model_copy(update={"source": ReportSource.FALLBACK.value})
            updates["report"] = report
            updates["issues_found"] = report.summary.total_issues
            updates["severity"] = report.summary.overall_severity
            updates["status"] = update.status or DocumentStatus.COMPLETED.value
            updates["analysis_completed"] = (
                True if update.analysis_completed is None else update.analysis_completed
            )
        else:
            for field in ("issues_found", "severity", "status", "analysis_completed"):
                value = getattr(update, field)
                if value is not None:
                    updates[field] = value

        updated = DocumentRepository.update_analysis(document_id, updates)
        if updated is None:
            raise DocumentNotFoundError(document_id)
        return updated

    @staticmethod
    def delete_document(document_id: str) -> None:
        if not DocumentRepository.delete(document_id):
            raise DocumentNotFoundError(document_id)

    @staticmethod
    def upload_document(
        file_name: str, content: str, analyze: bool = True
    ) -> tuple[Document, AnalysisOutcome | None]:
        """
        Store an uploaded file and optionally analyze it right away.

        Returns:
            (document as stored after the optional analysis, analysis outcome or None)
        """
        file_name = validate_file_name(file_name)
        document = DocumentService.create_document(
            DocumentCreate(file_name=file_name, content=content)
        )
        if not analyze:
            return document, None

        outcome = DocumentService.analyze_document(document.id)
        return DocumentService.get_document(document.id), outcome

    @staticmethod
    def analyze_document(
        document_id: str,
        content: str | None = None,
        language: str | None = None,
        file_name: str | None = None,
    ) -> AnalysisOutcome:
        """
        Review a document and reconcile the report with the stored record.

        1. A new analysis revision is recorded and the document marked in-progress.
        2. The reviewer runs (LLM errors degrade to the fallback report).
        3. The report is written back only if no newer analysis has started.

        Raises:
            DocumentNotFoundError: Unknown id, or deleted while the review ran
            LLMNotConfiguredError: No Gemini backend (document marked failed)

        Side Effects:
            - Updates documents table (twice)
            - Calls Gemini API
        """
        if content is not None:
            content = validate_content(content, config.ANALYSIS_MAX_CONTENT_CHARS)
        language = (language or "").strip() or None

        document = DocumentRepository.begin_analysis(document_id, content, language)
        if document is None:
            raise DocumentNotFoundError(document_id)
        revision = document.analysis_revision

        review_name = (file_name or "").strip() or document.file_name

        try:
            with time_block("documents.analyze"):
                report = get_reviewer().review(document.content, document.language, review_name)
        except LLMNotConfiguredError:
            DocumentRepository.mark_failed(document_id, revision)
            counter("documents.analyze.not_configured")
            raise
        except Exception:
            DocumentRepository.mark_failed(document_id, revision)
            counter("documents.analyze.error")
            raise

        persisted = DocumentRepository.complete_analysis(document_id, revision, report)
        if not persisted:
            if not DocumentRepository.exists(document_id):
                counter("documents.analyze.deleted")
                logger.warning("Document %s deleted during analysis", document_id)
                raise DocumentNotFoundError(document_id)
            counter("documents.analyze.superseded")
            logger.info(
                "Analysis revision %d of %s superseded, result not stored", revision, document_id
            )

        log_event(
            "documents.analyzed",
            document_id=document_id,
            file=redact(document.file_name),
            revision=revision,
            persisted=persisted,
            source=report.source,
            total_issues=report.summary.total_issues,
        )
        return AnalysisOutcome(
            document_id=document_id, report=report, revision=revision, persisted=persisted
        )

    @staticmethod
    def dashboard_stats() -> DashboardStats:
        raw = DocumentRepository.stats()
        by_status = raw["by_status"]
        return DashboardStats(
            total_documents=raw["total"],
            completed=by_status.get(DocumentStatus.COMPLETED.value, 0),
            in_progress=by_status.get(DocumentStatus.IN_PROGRESS.value, 0),
            failed=by_status.get(DocumentStatus.FAILED.value, 0),
            high_priority=raw["high_priority"],
            total_issues=raw["total_issues"],
            by_language=raw["by_language"],
            by_severity=raw["by_severity"],
        )
