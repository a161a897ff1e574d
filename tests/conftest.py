"""
Pytest configuration shared across the CodeLens test suite.

Every test gets its own SQLite database and fresh telemetry; the Gemini
client is never reached unless a test asks for it explicitly.
"""

from __future__ import annotations

import json
import os
import tempfile
from unittest.mock import MagicMock

import pytest

# Must be set before codelens.api.app is imported (it initializes the DB at import)
os.environ.setdefault(
    "CODELENS_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="codelens-tests-"), "codelens.db")
)
os.environ.setdefault("CODELENS_RATE_LIMIT_RPM", "100000")
os.environ.setdefault("CODELENS_RATE_LIMIT_RPH", "1000000")
os.environ.setdefault("CODELENS_LOG_LEVEL", "WARNING")

from codelens.analysis.explainer import get_explainer  # noqa: E402
from codelens.analysis.reviewer import get_reviewer  # noqa: E402
from codelens.infrastructure.database import init_database, reset_pool  # noqa: E402
from codelens.llm.gemini import clear_model_cache  # noqa: E402
from codelens.observability.telemetry import reset_telemetry  # noqa: E402

LLM_ENV_VARS = ("GOOGLE_CLOUD_PROJECT", "GEMINI_API_KEY", "GOOGLE_API_KEY")

SAMPLE_CODE = """import os

def load(path):
    data = open(path).read()
    return eval(data)

def main():
    print(load(os.environ["CONFIG"]))
"""


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Fresh database, telemetry and cached singletons for every test"""
    monkeypatch.setenv("CODELENS_DB_PATH", str(tmp_path / "codelens.db"))
    for var in LLM_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    reset_pool()
    init_database()
    reset_telemetry()
    get_reviewer.cache_clear()
    get_explainer.cache_clear()
    clear_model_cache()

    yield

    reset_pool()


@pytest.fixture
def mock_llm(monkeypatch):
    """Replace the Gemini call used by the reviewer and the explainer"""
    mock = MagicMock(name="call_llm")
    monkeypatch.setattr("codelens.analysis.reviewer.call_llm", mock)
    monkeypatch.setattr("codelens.analysis.explainer.call_llm", mock)
    return mock


@pytest.fixture
def sample_code() -> str:
    return SAMPLE_CODE


@pytest.fixture
def review_payload() -> dict:
    """A well-formed model review for SAMPLE_CODE"""
    return {
        "summary": {
            "totalIssues": 2,
            "overallSeverity": "high",
            "mainCategories": ["security", "bugs"],
            "overallScore": 42,
        },
        "suggestions": [
            {
                "id": "s1",
                "category": "security",
                "severity": "high",
                "title": "eval on file contents",
                "description": "Arbitrary code execution if the file is attacker controlled.",
                "lineNumber": 5,
                "codeSnippet": "return eval(data)",
                "suggestion": "Parse the file with json.loads instead.",
            },
            {
                "id": "s2",
                "category": "bugs",
                "severity": "medium",
                "title": "File handle never closed",
                "description": "open() without a context manager leaks the handle.",
                "lineNumber": 4,
                "codeSnippet": "data = open(path).read()",
                "suggestion": "Use `with open(path) as f:`.",
            },
        ],
        "codeQuality": {"readability": 6, "maintainability": 5, "efficiency": 7, "security": 2},
    }


@pytest.fixture
def review_response(review_payload) -> str:
    """review_payload as the model would return it (fenced JSON)"""
    return f"```json\n{json.dumps(review_payload, indent=2)}\n```"


@pytest.fixture
def client():
    """TestClient for the full application"""
    from fastapi.testclient import TestClient

    from codelens.api.app import app

    with TestClient(app) as test_client:
        yield test_client
