"""
Runtime configuration for StudyMind.

Values are read from the environment once at import time. `main` calls
load_dotenv() before importing anything else, so a local .env file is
picked up automatically.
"""

import os

# AI gateway (OpenAI-compatible chat completions endpoint)
AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1")
AI_MODEL = os.getenv("AI_MODEL", "google/gemini-3-flash-preview")
AI_EXTRACTION_MODEL = os.getenv("AI_EXTRACTION_MODEL", "google/gemini-2.5-flash")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "120"))

# Bearer token verification
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

# Uploaded material bucket
MATERIALS_STORAGE_DIR = os.getenv("MATERIALS_STORAGE_DIR", "./storage/materials")

# Text limits
EXTRACTED_TEXT_MAX_CHARS = 50000
QUERY_CONTEXT_MAX_CHARS = 8000
QUERY_CONTEXT_MAX_CHUNKS = 10
QUESTION_PREVIEW_MAX_CHARS = 200


def get_ai_gateway_api_key() -> str:
    """Read lazily so tests and scripts can set the key after import."""
    return os.getenv("AI_GATEWAY_API_KEY", "")


def get_auth_jwt_secret() -> str:
    return os.getenv("AUTH_JWT_SECRET", "")


def get_allowed_origins() -> list:
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]
