"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os

# Environment
ENV = os.getenv("CODELENS_ENV", "development")
DEBUG = ENV == "development"

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Google Cloud / Gemini
# Credentials (GOOGLE_CLOUD_PROJECT, GEMINI_API_KEY) are read when the model is first built
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")

# Review calls want consistent JSON, explanations can be more verbose
REVIEW_TEMPERATURE = float(os.getenv("CODELENS_REVIEW_TEMPERATURE", "0.2"))
REVIEW_MAX_TOKENS = int(os.getenv("CODELENS_REVIEW_MAX_TOKENS", "2048"))
EXPLAIN_TEMPERATURE = float(os.getenv("CODELENS_EXPLAIN_TEMPERATURE", "0.7"))
EXPLAIN_MAX_TOKENS = int(os.getenv("CODELENS_EXPLAIN_MAX_TOKENS", "4000"))

# Feature Flags
USE_STATIC_CHECKS = os.getenv("CODELENS_USE_STATIC_CHECKS", "true").lower() == "true"


def is_development() -> bool:
    """Check if running in development"""
    return ENV == "development"
