"""
Document Repository - CRUD and analysis bookkeeping for the documents table.

Follows the database patterns in codelens/infrastructure/database.py.

Concurrent analyses of one document are serialized by `analysis_revision`:
`begin_analysis` bumps it, and `complete_analysis` / `mark_failed` only
write when the revision they started with is still current.
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from codelens.analysis.models import AnalysisReport
from codelens.documents.models import Document, DocumentStatus, utc_now
from codelens.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from codelens.observability.logging import get_logger

logger = get_logger(__name__)


class DocumentRepository:
    """
    Repository for Document CRUD operations.

    All methods use connection pooling and proper transaction handling.
    """

    @staticmethod
    @retry_on_db_lock()
    def create(file_name: str, content: str, language: str) -> Document:
        """
        Create a new document awaiting analysis.

        Side Effects:
            - Inserts row into documents table
            - Commits transaction
        """
        now = utc_now()
        document = Document(
            id=str(uuid.uuid4()),
            file_name=file_name,
            language=language,
            content=content,
            created_at=now,
            updated_at=now,
        )

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents (
                    id, file_name, language, content, created_at, updated_at,
                    issues_found, severity, status, report, analysis_completed,
                    report_source, analysis_revision
                ) VALUES (
                    :id, :file_name, :language, :content, :created_at, :updated_at,
                    :issues_found, :severity, :status, :report, :analysis_completed,
                    :report_source, :analysis_revision
                )
                """,
                document.to_db_dict(),
            )

        logger.info("Created document %s (language=%s)", document.id, language)
        return document

    @staticmethod
    def get_by_id(document_id: str) -> Document | None:
        with get_db_connection() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()

        if not row:
            return None

        return Document.from_db_row(dict(row))

    @staticmethod
    def exists(document_id: str) -> bool:
        with get_db_connection() as conn:
            row = conn.execute("SELECT 1 FROM documents WHERE id = ?", (document_id,)).fetchone()
        return row is not None

    @staticmethod
    def list_documents(
        limit: int = 10,
        offset: int = 0,
        search: str | None = None,
        language: str | None = None,
    ) -> list[Document]:
        """
        List documents, newest first.

        Args:
            limit: Maximum number of documents to return
            offset: Number of documents to skip
            search: Case-insensitive substring of the file name
            language: Exact language label
        """
        clauses: list[str] = []
        params: list[Any] = []

        if search:
            escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            clauses.append("file_name LIKE ? ESCAPE '\\'")
            params.append(f"%{escaped}%")
        if language:
            clauses.append("language = ?")
            params.append(language)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with get_db_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM documents
                {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            ).fetchall()

        return [Document.from_db_row(dict(row)) for row in rows]

    @staticmethod
    @retry_on_db_lock()
    def update_analysis(document_id: str, updates: dict[str, Any]) -> Document | None:
        """
        Apply a manual analysis update.

        Args:
            document_id: Document to update
            updates: Column → value; `report` may be an AnalysisReport

        Returns:
            Updated Document, or None if not found

        Side Effects:
            - Updates specified columns in documents table
            - Commits transaction
        """
        update_data = dict(updates)
        if isinstance(update_data.get("report"), AnalysisReport):
            report: AnalysisReport = update_data["report"]
            update_data["report"] = json.dumps(report.to_api_dict())
            update_data["report_source"] = report.source
        if "analysis_completed" in update_data:
            update_data["analysis_completed"] = int(bool(update_data["analysis_completed"]))

        if not update_data:
            return DocumentRepository.get_by_id(document_id)

        update_data["updated_at"] = utc_now().isoformat()
        # Column names come from the service layer, never from the request
        set_clause = ", ".join(f"{column} = :{column}" for column in update_data)
        update_data["id"] = document_id

        with db_transaction() as conn:
            cursor = conn.execute(
                f"UPDATE documents SET {set_clause} WHERE id = :id",
                update_data,
            )
            if cursor.rowcount == 0:
                return None

        logger.info("Updated document %s fields: %s", document_id, sorted(updates))
        return DocumentRepository.get_by_id(document_id)

    @staticmethod
    @retry_on_db_lock()
    def begin_analysis(
        document_id: str,
        content: str | None = None,
        language: str | None = None,
    ) -> Document | None:
        """
        Start a new analysis run.

        Bumps `analysis_revision` and marks the document in-progress. When
        `content`/`language` are given they replace the stored values, so the
        report always describes the stored content.

        Returns:
            The document as of this run (its `analysis_revision` is the new
            revision), or None if the document does not exist

        Side Effects:
            - Updates documents table
            - Commits transaction
        """
        now = utc_now().isoformat()

        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET analysis_revision = analysis_revision + 1,
                    status = ?,
                    content = COALESCE(?, content),
                    language = COALESCE(?, language),
                    updated_at = ?
                WHERE id = ?
                """,
                (DocumentStatus.IN_PROGRESS.value, content, language, now, document_id),
            )
            if cursor.rowcount == 0:
                return None

            # Read back in the same transaction so a concurrent run cannot interleave
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()

        return Document.from_db_row(dict(row))

    @staticmethod
    @retry_on_db_lock()
    def complete_analysis(document_id: str, revision: int, report: AnalysisReport) -> bool:
        """
        Store a finished report if `revision` is still current.

        Returns:
            True if written, False if the document is gone or a newer
            analysis has started since

        Side Effects:
            - Updates documents table
            - Commits transaction
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET report = ?,
                    report_source = ?,
                    analysis_completed = 1,
                    issues_found = ?,
                    severity = ?,
                    status = ?,
                    updated_at = ?
                WHERE id = ? AND analysis_revision = ?
                """,
                (
                    json.dumps(report.to_api_dict()),
                    report.source,
                    report.summary.total_issues,
                    report.summary.overall_severity,
                    DocumentStatus.COMPLETED.value,
                    utc_now().isoformat(),
                    document_id,
                    revision,
                ),
            )
            return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def mark_failed(document_id: str, revision: int) -> bool:
        """Mark the analysis run `revision` as failed (no-op if superseded)."""
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE documents
                SET status = ?, updated_at = ?
                WHERE id = ? AND analysis_revision = ?
                """,
                (DocumentStatus.FAILED.value, utc_now().isoformat(), document_id, revision),
            )
            return cursor.rowcount > 0

    @staticmethod
    @retry_on_db_lock()
    def delete(document_id: str) -> bool:
        """
        Delete a document.

        Side Effects:
            - Removes row from documents table
            - Commits transaction
        """
        with db_transaction() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted document %s", document_id)

        return deleted

    @staticmethod
    def stats() -> dict[str, Any]:
        """
        Aggregate counts for the dashboard.

        Returns:
            Dict with total, per-status, per-language and per-severity counts,
            high-priority count and total issues
        """
        with get_db_connection() as conn:
            totals = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(issues_found), 0) AS total_issues,
                    COALESCE(SUM(CASE WHEN severity = 'high' THEN 1 ELSE 0 END), 0)
                        AS high_priority
                FROM documents
                """
            ).fetchone()
            by_status = conn.execute(
                "SELECT status, COUNT(*) AS count FROM documents GROUP BY status"
            ).fetchall()
            by_language = conn.execute(
                "SELECT language, COUNT(*) AS count FROM documents GROUP BY language"
            ).fetchall()
            by_severity = conn.execute(
                "SELECT severity, COUNT(*) AS count FROM documents GROUP BY severity"
            ).fetchall()

        return {
            "total": totals["total"],
            "total_issues": totals["total_issues"],
            "high_priority": totals["high_priority"],
            "by_status": {row["status"]: row["count"] for row in by_status},
            "by_language": {row["language"]: row["count"] for row in by_language},
            "by_severity": {row["severity"]: row["count"] for row in by_severity},
        }
