"""FastAPI application for the AIOS assistant backend.

Provides the main application instance with routers, middleware and
exception handlers configured. All channel routes live under ``/v1``.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from http import HTTPStatus

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("aios").setLevel(logging.INFO)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aios.api.middleware.auth import get_expected_api_key, maybe_require_api_key
from aios.api.routes import chat, expose, slack, whatsapp
from aios.api.schemas import BrandingResponse
from aios.db.connection import init_db
from aios.errors import DomainError
from aios.services.kv_store import shutdown_kv_store

logger = logging.getLogger(__name__)

API_PREFIX = "/v1"


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release the key-value store on shutdown."""
    init_db()
    logger.info(
        "API key auth: %s",
        "ENABLED (x-api-key header required)" if get_expected_api_key() else "DISABLED (open access)",
    )
    author = os.environ.get("AUTHOR_NAME")
    logger.info("Branding: %s", f"ACTIVE ({author})" if author else "DISABLED (AUTHOR_NAME not set)")
    yield
    await shutdown_kv_store()


app = FastAPI(
    title=f"{os.environ.get('PLATFORM_NAME', 'AIOS')} API",
    description="Assistant backend for web chat, WhatsApp and Slack",
    version="1.0.0",
    lifespan=lifespan,
)

_allowed_origins = _parse_allowed_origins()
if _allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["GET", "PATCH", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

app.middleware("http")(maybe_require_api_key)


def _error_body(request: Request, status: int, message) -> dict:
    try:
        status_type = HTTPStatus(status).phrase
    except ValueError:
        status_type = "Unknown Error"
    return {
        "statusCode": status,
        "statusType": status_type,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
        "path": request.url.path,
    }


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain errors onto their HTTP status with a consistent body."""
    if exc.status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.message),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content=_error_body(request, 400, message))


# Include routers
app.include_router(chat.router, prefix=API_PREFIX)
app.include_router(whatsapp.router, prefix=API_PREFIX)
app.include_router(slack.router, prefix=API_PREFIX)
app.include_router(expose.router, prefix=API_PREFIX)


@app.get("/", response_class=PlainTextResponse)
def hello() -> str:
    return "Hello World!"


@app.get(f"{API_PREFIX}/branding", response_model=BrandingResponse)
def branding() -> BrandingResponse:
    """Author attribution shown by the web demo, when configured."""
    return BrandingResponse(
        authorName=os.environ.get("AUTHOR_NAME") or None,
        authorUrl=os.environ.get("AUTHOR_URL") or None,
    )


@app.get("/health")
def health_check() -> dict:
    return {"status": "healthy"}
