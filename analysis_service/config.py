"""Environment-variable-driven configuration for the analysis service.

All config comes from env vars; values are read once at import time.
"""

from __future__ import annotations

import os
import shlex


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# -- Backend process ----------------------------------------------------------
ANALYSIS_BACKEND_COMMAND: list[str] = shlex.split(
    os.getenv("ANALYSIS_BACKEND_COMMAND", "npx -y @azure/mcp@latest server start")
)
ANALYSIS_BACKEND_AUTOSTART: bool = _env_bool("ANALYSIS_BACKEND_AUTOSTART", True)
ANALYSIS_BACKEND_SETTLE_SECONDS: float = float(os.getenv("ANALYSIS_BACKEND_SETTLE_SECONDS", "3.0"))
ANALYSIS_BACKEND_RECONNECT_DELAY_SECONDS: float = float(
    os.getenv("ANALYSIS_BACKEND_RECONNECT_DELAY_SECONDS", "5.0")
)
ANALYSIS_BACKEND_MAX_RECONNECT_ATTEMPTS: int = int(
    os.getenv("ANALYSIS_BACKEND_MAX_RECONNECT_ATTEMPTS", "3")
)
ANALYSIS_BACKEND_SHUTDOWN_GRACE_SECONDS: float = float(
    os.getenv("ANALYSIS_BACKEND_SHUTDOWN_GRACE_SECONDS", "5.0")
)

# -- Model API ----------------------------------------------------------------
ANALYSIS_MODEL: str = os.getenv("ANALYSIS_MODEL", "gemini-2.5-flash")
ANALYSIS_CALL_TIMEOUT_SECONDS: float = float(os.getenv("ANALYSIS_CALL_TIMEOUT_SECONDS", "60"))
ANALYSIS_TEMPERATURE: float = float(os.getenv("ANALYSIS_TEMPERATURE", "0.7"))
ANALYSIS_MAX_TOKENS_SINGLE: int = int(os.getenv("ANALYSIS_MAX_TOKENS_SINGLE", "1500"))
ANALYSIS_MAX_TOKENS_MULTI: int = int(os.getenv("ANALYSIS_MAX_TOKENS_MULTI", "3000"))
ANALYSIS_MAX_TOKENS_IMAGE: int = int(os.getenv("ANALYSIS_MAX_TOKENS_IMAGE", "1000"))

# -- Batching -----------------------------------------------------------------
ANALYSIS_MAX_CONTENT_CHARS: int = int(os.getenv("ANALYSIS_MAX_CONTENT_CHARS", "8000"))
ANALYSIS_MAX_BATCH_FILES: int = int(os.getenv("ANALYSIS_MAX_BATCH_FILES", "20"))

# -- Storage ------------------------------------------------------------------
ANALYSIS_STORAGE_BUCKET: str | None = os.getenv("ANALYSIS_STORAGE_BUCKET")

# -- GCP ----------------------------------------------------------------------
VERTEX_PROJECT: str | None = os.getenv("GOOGLE_CLOUD_PROJECT")
VERTEX_LOCATION: str = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")

# -- CORS ---------------------------------------------------------------------
ANALYSIS_CORS_ALLOW_ORIGINS: list[str] = _env_csv(
    "ANALYSIS_CORS_ALLOW_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
)
ANALYSIS_CORS_ALLOW_METHODS: list[str] = _env_csv(
    "ANALYSIS_CORS_ALLOW_METHODS",
    "GET,POST,OPTIONS",
)
ANALYSIS_CORS_ALLOW_HEADERS: list[str] = _env_csv(
    "ANALYSIS_CORS_ALLOW_HEADERS",
    "Authorization,Content-Type,X-User-Id",
)
ANALYSIS_CORS_ALLOW_CREDENTIALS: bool = _env_bool("ANALYSIS_CORS_ALLOW_CREDENTIALS", False)
