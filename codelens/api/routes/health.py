"""Readiness of the code-review pipeline.

/health answers "can a review run right now": whether Gemini credentials are
present, which backend and model would serve the review, whether the static
pass is enabled and whether the reviewer's circuit breaker is letting calls
through. /health/db reports SQLite pool usage for the document store.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from codelens.analysis.reviewer import get_reviewer
from codelens.config import APP_VERSION
from codelens.infrastructure import settings
from codelens.infrastructure.database import get_pool_stats
from codelens.llm.gemini import get_backend

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Credential presence only; no Gemini request is made."""
    has_api_key = bool(os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"))
    has_project = bool(os.getenv("GOOGLE_CLOUD_PROJECT"))
    breaker_state = get_reviewer().breaker.state

    return {
        "status": "healthy",
        "service": "CodeLens API",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "llm": {
            "ready": has_api_key or has_project,
            "backend": get_backend(),
            "model": settings.GEMINI_MODEL,
            "gemini_api_key": has_api_key,
            "google_cloud_project": has_project,
        },
        "review": {
            "static_checks": settings.USE_STATIC_CHECKS,
            # "open" means reviews are served from the fallback report
            "circuit": breaker_state,
        },
    }


@router.get("/health/db")
async def database_health() -> dict[str, Any]:
    """Document store pool usage, degraded above 80%."""
    stats = get_pool_stats()
    usage_percent = stats["usage_percent"]

    return {
        "status": "degraded" if usage_percent > 80 else "healthy",
        "pool": stats,
        "warning": "Pool usage high" if usage_percent > 80 else None,
    }
