"""
Document domain models.

A document pairs an uploaded source file with its latest analysis report.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from codelens.analysis.models import AnalysisReport, ReportSource, Severity
from codelens.observability.logging import get_logger

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


class DocumentStatus(str, Enum):
    """Lifecycle of a document's analysis."""

    IN_PROGRESS = "in-progress"  # Uploaded or re-analysis running
    COMPLETED = "completed"  # Report stored
    FAILED = "failed"  # Analysis could not run (e.g. LLM not configured)


_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class Document(BaseModel):
    """A stored document with its latest report."""

    model_config = _CAMEL

    id: str
    file_name: str
    language: str = "Unknown"
    content: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    issues_found: int = Field(default=0, ge=0)
    severity: Severity = Severity.LOW
    status: DocumentStatus = DocumentStatus.IN_PROGRESS
    report: AnalysisReport | None = Field(
        default=None,
        validation_alias=AliasChoices("report", "geminiReport"),
        serialization_alias="geminiReport",
    )
    analysis_completed: bool = False
    report_source: ReportSource | None = None
    analysis_revision: int = 0

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "file_name": self.file_name,
            "language": self.language,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "issues_found": self.issues_found,
            "severity": self.severity,
            "status": self.status,
            "report": json.dumps(self.report.to_api_dict()) if self.report else None,
            "analysis_completed": int(self.analysis_completed),
            "report_source": self.report_source,
            "analysis_revision": self.analysis_revision,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Document:
        """Create Document from database row."""
        report = None
        if row.get("report"):
            try:
                report = AnalysisReport.model_validate(json.loads(row["report"]))
            except ValueError as e:
                # pydantic.ValidationError and JSONDecodeError are both ValueErrors
                logger.warning("Stored report for document %s is invalid: %s", row["id"], e)

        return cls(
            id=row["id"],
            file_name=row["file_name"],
            language=row.get("language") or "Unknown",
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            issues_found=row.get("issues_found") or 0,
            severity=row.get("severity") or Severity.LOW,
            status=row.get("status") or DocumentStatus.IN_PROGRESS,
            report=report,
            analysis_completed=bool(row.get("analysis_completed")),
            report_source=row.get("report_source"),
            analysis_revision=row.get("analysis_revision") or 0,
        )

    def to_api_dict(self, include_content: bool = True) -> dict[str, Any]:
        exclude = None if include_content else {"content"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class DocumentSummary(BaseModel):
    """List-view projection of a document (no content or report)."""

    model_config = _CAMEL

    id: str
    file_name: str
    language: str
    created_at: datetime
    updated_at: datetime
    issues_found: int
    severity: Severity
    status: DocumentStatus
    analysis_completed: bool = False

    @classmethod
    def from_document(cls, document: Document) -> DocumentSummary:
        return cls(
            id=document.id,
            file_name=document.file_name,
            language=document.language,
            created_at=document.created_at,
            updated_at=document.updated_at,
            issues_found=document.issues_found,
            severity=document.severity,
            status=document.status,
            analysis_completed=document.analysis_completed,
        )


class DocumentCreate(BaseModel):
    """Input model for creating a document (without id/timestamps)."""

    model_config = _CAMEL

    file_name: str = Field(..., min_length=1, max_length=255)
    content: str
    language: str | None = None

    @field_validator("file_name")
    @classmethod
    def file_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("fileName cannot be empty")
        return v.strip()


class DocumentUpdate(BaseModel):
    """
    Manual analysis update (all fields optional).

    `report` is an untrusted payload: it is normalized against the stored
    content before being saved.
    """

    model_config = _CAMEL

    report: dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("report", "geminiReport")
    )
    issues_found: int | None = Field(default=None, ge=0)
    severity: Severity | None = None
    status: DocumentStatus | None = None
    analysis_completed: bool | None = None


class DashboardStats(BaseModel):
    model_config = _CAMEL

    total_documents: int = 0
    completed: int = 0
    in_progress: int = 0
    failed: int = 0
    high_priority: int = 0
    total_issues: int = 0
    by_language: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
