"""
CodeLens documents module - stored source files and their review reports.
"""

from codelens.documents.models import (
    DashboardStats,
    Document,
    DocumentCreate,
    DocumentStatus,
    DocumentSummary,
    DocumentUpdate,
)
from codelens.documents.repository import DocumentRepository
from codelens.documents.service import AnalysisOutcome, DocumentNotFoundError, DocumentService

__all__ = [
    # Models
    "DashboardStats",
    "Document",
    "DocumentCreate",
    "DocumentStatus",
    "DocumentSummary",
    "DocumentUpdate",
    # Persistence
    "DocumentRepository",
    # Service
    "AnalysisOutcome",
    "DocumentNotFoundError",
    "DocumentService",
]
