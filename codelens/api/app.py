"""FastAPI server for CodeLens"""

from __future__ import annotations

import os
import sqlite3
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from codelens.api.middleware.rate_limit import RateLimitMiddleware
from codelens.api.middleware.security_headers import SecurityHeadersMiddleware
from codelens.api.routes.analyze import router as analyze_router
from codelens.api.routes.dashboard import router as dashboard_router
from codelens.api.routes.documents import router as documents_router
from codelens.api.routes.health import router as health_router
from codelens.api.routes.understand import router as understand_router
from codelens.config import APP_VERSION, RATE_LIMIT_RPH, RATE_LIMIT_RPM
from codelens.infrastructure.database import init_database
from codelens.infrastructure.settings import is_development
from codelens.observability.logging import get_logger
from codelens.observability.telemetry import counter, log_event
from codelens.utils.redaction import redact

# Load environment variables from .env file
load_dotenv()

app = FastAPI(title="CodeLens API", version=APP_VERSION)

logger = get_logger(__name__)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Return a sanitized 422 that names the invalid fields but not the rules.
    """
    logger.warning("Validation error on %s: %d errors", redact(request.url.path), len(exc.errors()))
    counter("api.validation_errors")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Invalid request format. Please check your request and try again.",
            "error_count": len(exc.errors()),
            "invalid_fields": [str(err["loc"][-1]) for err in exc.errors()],
        },
    )


# CORS - comma-separated CODELENS_CORS_ORIGINS, plus local dev servers
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CODELENS_CORS_ORIGINS", "").split(",")
    if origin.strip()
]

if is_development():
    ALLOWED_ORIGINS.extend(
        [
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ]
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    expose_headers=["Content-Disposition", "Retry-After"],
)

# Rate limiting - 429 responses keep CORS headers so browsers can read them
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=RATE_LIMIT_RPM,
    requests_per_hour=RATE_LIMIT_RPH,
    cors_origins=ALLOWED_ORIGINS,
)

app.add_middleware(SecurityHeadersMiddleware)

# Initialize database schema
try:
    logger.info("Initializing database schema...")
    init_database()
    logger.info("Database initialization complete")
except sqlite3.OperationalError as e:
    logger.critical("Database schema error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e
except Exception as e:
    logger.critical("Unexpected database initialization error: %s", e)
    raise RuntimeError(f"Database initialization failed: {e}") from e

app.include_router(health_router)
app.include_router(documents_router)
app.include_router(analyze_router)
app.include_router(understand_router)
app.include_router(dashboard_router)

log_event("api.startup", service="codelens", version=APP_VERSION)


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "CodeLens API",
        "version": APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/health",
            "health_db": "/health/db",
            "documents": "/api/documents",
            "upload": "/api/documents/upload",
            "report_download": "/api/documents/{id}/report",
            "analyze": "/api/analyze",
            "understand": "/api/understand",
            "dashboard_stats": "/api/dashboard/stats",
        },
    }


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    from codelens.config import API_HOST, API_PORT, DEBUG

    uvicorn.run("codelens.api.app:app", host=API_HOST, port=API_PORT, reload=DEBUG)
