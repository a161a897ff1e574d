"""Unit tests for telemetry helpers and the SQLite access layer."""

from __future__ import annotations

import sqlite3

import pytest

from codelens.infrastructure.database import (
    DatabaseConnectionPool,
    db_transaction,
    get_db_connection,
    get_db_path,
    retry_on_db_lock,
)
from codelens.infrastructure.database_schema import validate_schema
from codelens.observability.telemetry import (
    counter,
    get_counter,
    get_latency_stats,
    time_block,
)


class TestTelemetry:
    def test_time_block_appends_ms_suffix(self):
        with time_block("reviewer.llm"):
            pass

        assert get_latency_stats("reviewer.llm")["count"] == 1
        assert get_latency_stats("reviewer.llm_ms")["count"] == 1
        assert get_latency_stats("reviewer.llm")["p95"] >= 0.0

    def test_time_block_records_on_error(self):
        with pytest.raises(ValueError), time_block("failing"):
            raise ValueError("boom")

        assert get_latency_stats("failing")["count"] == 1

    def test_unknown_metric(self):
        assert get_latency_stats("never.recorded")["count"] == 0

    def test_counter_increments(self):
        assert counter("test.counter") == 1
        assert counter("test.counter", 4) == 5
        assert get_counter("test.counter") == 5
        assert get_counter("missing") == 0


class TestRetryOnDbLock:
    def test_retries_then_succeeds(self):
        calls = []

        @retry_on_db_lock(max_retries=3, base_delay=0, max_delay=0)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_exhausted(self):
        @retry_on_db_lock(max_retries=2, base_delay=0, max_delay=0)
        def always_locked():
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(sqlite3.OperationalError):
            always_locked()
        assert get_counter("database.lock_retry_exhausted") == 1

    def test_other_errors_not_retried(self):
        calls = []

        @retry_on_db_lock(max_retries=3, base_delay=0, max_delay=0)
        def broken():
            calls.append(1)
            raise sqlite3.OperationalError("no such table: documents")

        with pytest.raises(sqlite3.OperationalError):
            broken()
        assert len(calls) == 1


class TestConnectionPool:
    def test_temporary_connection_when_drained(self, tmp_path, monkeypatch):
        monkeypatch.setattr("codelens.infrastructure.database.DB_POOL_TIMEOUT", 0.01)
        pool = DatabaseConnectionPool(tmp_path / "pool.db", pool_size=1)

        first = pool.get_connection()
        second = pool.get_connection()
        assert pool.temp_conn_count == 1

        pool.return_connection(second)
        assert pool.temp_conn_count == 0
        pool.return_connection(first)
        assert pool.pool.qsize() == 1
        pool.close_all()

    def test_closed_pool_refuses(self, tmp_path):
        pool = DatabaseConnectionPool(tmp_path / "pool.db", pool_size=1)
        pool.close_all()
        with pytest.raises(RuntimeError, match="closed"):
            pool.get_connection()


class TestSchema:
    def test_db_path_from_env(self, tmp_path):
        assert get_db_path() == tmp_path / "codelens.db"

    def test_schema_valid_after_init(self):
        with get_db_connection() as conn:
            assert validate_schema(conn) is True

    def test_missing_table_detected(self):
        with db_transaction() as conn:
            conn.execute("DROP TABLE documents")

        with get_db_connection() as conn, pytest.raises(ValueError, match="missing tables"):
            validate_schema(conn)

    def test_transaction_rolls_back(self):
        with pytest.raises(RuntimeError), db_transaction() as conn:
            conn.execute(
                "INSERT INTO documents (id, file_name, content, created_at, updated_at) "
                "VALUES ('x', 'a.py', 'x = 1', '2026-01-01', '2026-01-01')"
            )
            raise RuntimeError("abort")

        with get_db_connection() as conn:
            assert conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0] == 0


def test_package_lazy_exports():
    import codelens
    from codelens.analysis.reviewer import CodeReviewer
    from codelens.documents import DocumentService

    assert codelens.CodeReviewer is CodeReviewer
    assert codelens.DocumentService is DocumentService
    with pytest.raises(AttributeError):
        codelens.DoesNotExist  # noqa: B018
