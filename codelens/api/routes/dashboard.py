"""Dashboard statistics endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from codelens.documents.service import DocumentService
from codelens.observability.logging import get_logger

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])
logger = get_logger(__name__)


@router.get("/stats")
async def dashboard_stats() -> dict[str, Any]:
    """Document totals, status and severity breakdowns, issues found."""
    try:
        stats = DocumentService.dashboard_stats()
    except Exception as e:
        logger.error("Failed to compute dashboard stats: %s", e)
        raise HTTPException(status_code=500, detail="Failed to load dashboard stats") from None

    return stats.model_dump(mode="json", by_alias=True)
