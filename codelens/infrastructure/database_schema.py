"""
SQL schema for the CodeLens document store.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from codelens.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS: dict[str, list[str]] = {
    "documents": [
        "id",
        "file_name",
        "language",
        "content",
        "created_at",
        "updated_at",
        "issues_found",
        "severity",
        "status",
        "report",
        "analysis_completed",
        "report_source",
        "analysis_revision",
    ],
}


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates the parent directory if needed
    - Creates the documents table and its indexes if they don't exist
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                file_name TEXT NOT NULL,
                language TEXT NOT NULL DEFAULT 'Unknown',
                content TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                issues_found INTEGER NOT NULL DEFAULT 0,
                severity TEXT NOT NULL DEFAULT 'low'
                    CHECK (severity IN ('low', 'medium', 'high')),
                status TEXT NOT NULL DEFAULT 'in-progress'
                    CHECK (status IN ('in-progress', 'completed', 'failed')),
                report TEXT,
                analysis_completed INTEGER NOT NULL DEFAULT 0,
                report_source TEXT,
                analysis_revision INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_documents_created_at
            ON documents(created_at DESC);

            CREATE INDEX IF NOT EXISTS idx_documents_language
            ON documents(language);

            CREATE INDEX IF NOT EXISTS idx_documents_status
            ON documents(status);
        """)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Check that every required table and column exists.

    Raises:
        ValueError: If a table or column is missing
    """
    existing_tables = {
        row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    missing_tables = set(REQUIRED_COLUMNS) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in REQUIRED_COLUMNS.items():
        # Identifiers can't be parameterized; names come from the dict above
        existing_cols = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True
