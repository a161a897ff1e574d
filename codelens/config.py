"""Centralized configuration for the CodeLens backend.

Re-exports everything from codelens.infrastructure.settings so existing imports
continue to work, then adds typed constants for database, analysis, LLM,
rate-limiting, and API settings.  Environment variable overrides use safe
defaults so the app starts without extra env configuration.
"""

from __future__ import annotations

import os

from codelens.infrastructure.settings import *  # noqa: F401, F403

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("CODELENS_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("CODELENS_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("CODELENS_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("CODELENS_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("CODELENS_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("CODELENS_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("CODELENS_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("CODELENS_DB_RETRY_JITTER", "0.1"))

# --- Analysis ---
ANALYSIS_MAX_CONTENT_CHARS: int = int(os.getenv("CODELENS_MAX_CONTENT_CHARS", "200000"))
ANALYSIS_DEFAULT_SCORE: int = 50
STATIC_MAX_FINDINGS_PER_RULE: int = 5
STATIC_MAX_LINE_LENGTH: int = 120

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("CODELENS_LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES: int = int(os.getenv("CODELENS_LLM_MAX_RETRIES", "3"))
LLM_BREAKER_FAIL_MAX: int = int(os.getenv("CODELENS_LLM_BREAKER_FAIL_MAX", "5"))
LLM_BREAKER_RESET_SECONDS: float = float(os.getenv("CODELENS_LLM_BREAKER_RESET", "60"))

# --- Rate Limiting ---
RATE_LIMIT_RPM: int = int(os.getenv("CODELENS_RATE_LIMIT_RPM", "60"))
RATE_LIMIT_RPH: int = int(os.getenv("CODELENS_RATE_LIMIT_RPH", "1000"))
RATE_LIMIT_MAX_IPS: int = 10000

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 10
API_LIST_LIMIT_MAX: int = 100
