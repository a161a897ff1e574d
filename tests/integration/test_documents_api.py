"""
API tests for the document lifecycle.

create → list/search → get → manual update → report download → delete
"""

from __future__ import annotations

import uuid

import pytest


@pytest.fixture
def document(client, sample_code):
    response = client.post(
        "/api/documents", json={"fileName": "loader.py", "content": sample_code}
    )
    assert response.status_code == 201
    return response.json()


def test_root_lists_endpoints(client):
    data = client.get("/").json()
    assert data["service"] == "CodeLens API"
    assert data["endpoints"]["analyze"] == "/api/analyze"


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["llm"]["ready"] is False
    assert data["review"]["circuit"] == "closed"
    assert data["review"]["static_checks"] is True


def test_health_reports_open_circuit(client):
    """Once Gemini keeps failing, health shows reviews are on the fallback path"""
    from codelens.analysis.reviewer import get_reviewer

    breaker = get_reviewer().breaker
    for _ in range(breaker.fail_max):
        breaker.record_failure()

    assert client.get("/health").json()["review"]["circuit"] == "open"


def test_health_db(client):
    data = client.get("/health/db").json()
    assert data["status"] in ("healthy", "degraded")
    assert {"pool_size", "available", "in_use", "usage_percent"} <= set(data["pool"])


def test_security_headers_on_api_responses(client):
    response = client.get("/api/documents")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_create_document(document, sample_code):
    assert uuid.UUID(document["id"])
    assert document["fileName"] == "loader.py"
    assert document["language"] == "Python"
    assert document["content"] == sample_code
    assert document["status"] == "in-progress"
    assert document["issuesFound"] == 0
    assert document["severity"] == "low"
    assert document["analysisCompleted"] is False
    assert document["geminiReport"] is None


def test_create_with_explicit_language(client):
    response = client.post(
        "/api/documents", json={"fileName": "script", "content": "echo hi", "language": "Shell"}
    )
    assert response.json()["language"] == "Shell"


def test_create_strips_directories(client):
    response = client.post("/api/documents", json={"fileName": "src/a/b.ts", "content": "let x;"})
    assert response.json()["fileName"] == "b.ts"
    assert response.json()["language"] == "TypeScript"


def test_create_rejects_empty_content(client):
    response = client.post("/api/documents", json={"fileName": "a.py", "content": "  "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Content is required"


def test_create_rejects_oversized_content(client, monkeypatch):
    monkeypatch.setattr("codelens.config.ANALYSIS_MAX_CONTENT_CHARS", 10)
    response = client.post("/api/documents", json={"fileName": "a.py", "content": "x" * 11})
    assert response.status_code == 413


def test_validation_error_is_sanitized(client):
    response = client.post("/api/documents", json={"fileName": "a.py"})
    assert response.status_code == 422
    body = response.json()
    assert body["invalid_fields"] == ["content"]
    assert body["error_count"] == 1


def test_list_newest_first(client):
    for name in ("one.py", "two.py", "three.py"):
        client.post("/api/documents", json={"fileName": name, "content": "x = 1"})

    names = [d["fileName"] for d in client.get("/api/documents").json()]
    assert names == ["three.py", "two.py", "one.py"]


def test_list_limit_offset(client):
    for n in range(12):
        client.post("/api/documents", json={"fileName": f"f{n}.py", "content": "x = 1"})

    assert len(client.get("/api/documents").json()) == 10
    page = client.get("/api/documents", params={"limit": 5, "offset": 10}).json()
    assert [d["fileName"] for d in page] == ["f1.py", "f0.py"]
    assert client.get("/api/documents", params={"limit": 1000}).status_code == 422


def test_list_search_and_language(client):
    client.post("/api/documents", json={"fileName": "user_service.py", "content": "x = 1"})
    client.post("/api/documents", json={"fileName": "user-card.tsx", "content": "let x;"})
    client.post("/api/documents", json={"fileName": "main.go", "content": "package main"})

    found = client.get("/api/documents", params={"search": "USER"}).json()
    assert {d["fileName"] for d in found} == {"user_service.py", "user-card.tsx"}

    # "_" is a literal, not a LIKE wildcard
    found = client.get("/api/documents", params={"search": "user_"}).json()
    assert [d["fileName"] for d in found] == ["user_service.py"]

    found = client.get("/api/documents", params={"language": "Go"}).json()
    assert [d["fileName"] for d in found] == ["main.go"]


def test_list_summary_view(client, document):
    item = client.get("/api/documents", params={"view": "summary"}).json()[0]
    assert item["id"] == document["id"]
    assert "content" not in item
    assert "geminiReport" not in item


def test_get_document(client, document):
    response = client.get(f"/api/documents/{document['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == document["id"]


def test_get_unknown_document(client):
    assert client.get(f"/api/documents/{uuid.uuid4()}").status_code == 404


def test_get_invalid_id(client):
    response = client.get("/api/documents/not-a-uuid")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid document ID format"


def test_manual_update_normalizes_report(client, document, review_payload):
    """A client-supplied report is validated against the stored content"""
    review_payload["summary"]["totalIssues"] = 99
    review_payload["suggestions"][0]["lineNumber"] = 400

    response = client.put(
        f"/api/documents/{document['id']}", json={"geminiReport": review_payload}
    )
    assert response.status_code == 200
    updated = response.json()

    assert updated["status"] == "completed"
    assert updated["analysisCompleted"] is True
    assert updated["issuesFound"] == 2
    assert updated["severity"] == "high"
    assert updated["geminiReport"]["summary"]["totalIssues"] == 2
    # Clamped to the last line of the stored content
    assert updated["geminiReport"]["suggestions"][0]["lineNumber"] == 9


def test_manual_update_status_only(client, document):
    response = client.put(f"/api/documents/{document['id']}", json={"status": "failed"})
    assert response.json()["status"] == "failed"
    assert response.json()["geminiReport"] is None


def test_manual_update_rejects_bad_status(client, document):
    response = client.put(f"/api/documents/{document['id']}", json={"status": "done"})
    assert response.status_code == 422


def test_update_unknown_document(client):
    response = client.put(f"/api/documents/{uuid.uuid4()}", json={"status": "failed"})
    assert response.status_code == 404


def test_delete_document(client, document):
    assert client.delete(f"/api/documents/{document['id']}").status_code == 204
    assert client.get(f"/api/documents/{document['id']}").status_code == 404
    assert client.delete(f"/api/documents/{document['id']}").status_code == 404


class TestUpload:
    def test_upload_without_analysis(self, client, sample_code):
        response = client.post(
            "/api/documents/upload",
            files={"file": ("loader.py", sample_code.encode(), "text/x-python")},
            data={"analyze": "false"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["language"] == "Python"
        assert body["status"] == "in-progress"
        assert "analysis" not in body

    def test_upload_and_analyze(self, client, mock_llm, review_response, sample_code):
        mock_llm.return_value = review_response

        response = client.post(
            "/api/documents/upload",
            files={"file": ("loader.py", sample_code.encode(), "text/x-python")},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "completed"
        assert body["issuesFound"] == 2
        assert body["geminiReport"]["source"] == "llm"
        assert body["analysis"] == {"revision": 1, "persisted": True}

    def test_upload_rejects_binary(self, client):
        response = client.post(
            "/api/documents/upload",
            files={"file": ("image.png", b"\x89PNG\r\n\x1a\n\xff\xd8", "image/png")},
        )
        assert response.status_code == 400
        assert "UTF-8" in response.json()["detail"]

    def test_upload_rejects_empty_file(self, client):
        response = client.post(
            "/api/documents/upload", files={"file": ("empty.py", b"", "text/x-python")}
        )
        assert response.status_code == 400

    def test_upload_not_configured(self, client, mock_llm):
        from codelens.llm.gemini import GeminiInitializationError

        mock_llm.side_effect = GeminiInitializationError("LLM not configured")
        response = client.post(
            "/api/documents/upload", files={"file": ("a.py", b"x = 1", "text/x-python")}
        )
        assert response.status_code == 503

        stored = client.get("/api/documents").json()[0]
        assert stored["status"] == "failed"


class TestReportDownload:
    @pytest.fixture
    def analyzed(self, client, document, mock_llm, review_response):
        mock_llm.return_value = review_response
        client.post("/api/analyze", json={"documentId": document["id"]})
        return document

    def test_json_download(self, client, analyzed):
        response = client.get(f"/api/documents/{analyzed['id']}/report")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert 'filename="loader.py-review.json"' in response.headers["content-disposition"]
        assert response.json()["report"]["summary"]["totalIssues"] == 2

    def test_markdown_download(self, client, analyzed):
        response = client.get(
            f"/api/documents/{analyzed['id']}/report", params={"format": "markdown"}
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert "attachment" in response.headers["content-disposition"]
        text = response.text
        assert text.startswith("# Code Review: loader.py")
        assert "| Total issues | 2 |" in text
        assert "### 1. eval on file contents" in text
        assert "## Code Quality" in text

    def test_unknown_format(self, client, analyzed):
        response = client.get(f"/api/documents/{analyzed['id']}/report", params={"format": "pdf"})
        assert response.status_code == 422

    def test_not_analyzed_yet(self, client, document):
        response = client.get(f"/api/documents/{document['id']}/report")
        assert response.status_code == 404
