"""Optional API-key auth middleware.

When ``API_KEY`` is set every non-public request must carry it in the
``x-api-key`` header. When it is unset the server runs in open-access
mode and prompt endpoints fall back to the per-host daily limiter in
``prompt_limit``.
"""

from __future__ import annotations

import hmac
import logging
import os

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"

_PUBLIC_PATHS = ("/", "/v1/branding")

_PUBLIC_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/v1/chat/webhook",
    "/v1/chat/slack/",
)


def get_expected_api_key() -> str:
    """Return configured API key; empty string means auth disabled."""
    return os.environ.get("API_KEY", "").strip()


def get_client_ip(request: Request) -> str:
    """Extract client IP, honouring X-Forwarded-For only when TRUST_PROXY is on."""
    if os.environ.get("TRUST_PROXY", "").strip().lower() in ("1", "true"):
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _is_quote_download(path: str) -> bool:
    return path.startswith("/v1/chat/rfq/") and path.endswith("/download")


def should_authenticate(path: str) -> bool:
    """Return True when this path should be protected by API-key auth."""
    if path in _PUBLIC_PATHS or path.startswith(_PUBLIC_PATH_PREFIXES):
        return False
    return not _is_quote_download(path)


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """FastAPI middleware entrypoint for optional API-key auth."""
    if request.method.upper() == "OPTIONS":
        return await call_next(request)

    expected_key = get_expected_api_key()
    if not expected_key or not should_authenticate(request.url.path):
        return await call_next(request)

    provided_key = request.headers.get(API_KEY_HEADER, "")
    if not provided_key or not hmac.compare_digest(provided_key, expected_key):
        logger.warning("Rejected request to %s: bad API key", request.url.path)
        return JSONResponse(
            status_code=401,
            content={"detail": "Invalid or missing API key"},
        )
    return await call_next(request)
