"""
StudyShare Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application.
How:   create_app() wires middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn studyshare.main:app).

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                      FastAPI App                          │
    │                                                           │
    │  Middleware:  RequestID → RateLimit → Logging → GZip → CORS│
    │                                                           │
    │  Routers:     /api/auth   /api/users   /api/resources     │
    │               /api/files  /  /health                      │
    │                                                           │
    │  Exception handlers: StudyShareError subclasses → JSON    │
    │  {error, message, details?, request_id}                   │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, local storage directory
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from studyshare import __version__
from studyshare.config import settings
from studyshare.database import dispose_engine
from studyshare.exceptions import (
    ConflictError,
    DatabaseError,
    DataUnavailableError,
    EmailDeliveryError,
    FileStorageError,
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    StudyShareError,
    UnauthorizedError,
    UploadRejectedError,
    ValidationError,
)
from studyshare.middleware.logging import RequestLoggingMiddleware
from studyshare.middleware.rate_limit import RateLimitMiddleware
from studyshare.middleware.request_id import RequestIDMiddleware, request_id_var
from studyshare.routes import auth, files, health, resources, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2024-01-15T12:00:00 [INFO] studyshare.services.search_service: message
    Output goes to stdout, where Docker collects it.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-operation chatter from libraries
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx", "botocore", "boto3", "passlib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("StudyShare Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health and error responses still help diagnose
        logger.error("Configuration error: %s", str(e))

    if settings.storage_backend == "local":
        storage = Path(settings.storage_root)
        storage.mkdir(parents=True, exist_ok=True)
        logger.info("Storage: local directory %s", storage.resolve())
    else:
        logger.info("Storage: S3 bucket %s (%s)", settings.s3_bucket_name, settings.aws_region)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("StudyShare Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# exception class → (HTTP status, machine-readable error code)
# Order matters: subclasses before their bases.
ERROR_STATUS: Dict[Type[StudyShareError], tuple] = {
    UploadRejectedError: (400, "upload_rejected"),
    ValidationError: (400, "validation_error"),
    UnauthorizedError: (401, "unauthorized"),
    ForbiddenError: (403, "forbidden"),
    NotFoundError: (404, "not_found"),
    ConflictError: (409, "conflict"),
    RateLimitExceededError: (429, "rate_limit_exceeded"),
    DataUnavailableError: (503, "data_unavailable"),
    EmailDeliveryError: (503, "email_unavailable"),
    FileStorageError: (500, "server_error"),
    DatabaseError: (500, "server_error"),
}

# Client errors whose context helps the caller fix the request
_EXPOSE_DETAILS = (ValidationError, RateLimitExceededError)


def _classify(exc: StudyShareError) -> tuple:
    for exc_type, mapping in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return mapping
    return 500, "server_error"


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

        ValidationError family  → 400 (details returned)
        UnauthorizedError       → 401
        ForbiddenError          → 403
        NotFoundError           → 404
        ConflictError           → 409
        RateLimitExceededError  → 429 + Retry-After
        DataUnavailableError    → 503 + Retry-After
        EmailDeliveryError      → 503
        DatabaseError / FileStorageError / anything else → 500, generic message

    Server-side failures log their context; responses never carry stack
    traces, SQL or file system paths.
    """

    @app.exception_handler(StudyShareError)
    async def handle_studyshare_error(request: Request, exc: StudyShareError):
        status_code, code = _classify(exc)
        rid = request_id_var.get("")
        headers = None

        if status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        elif status_code != 404:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        if isinstance(exc, (RateLimitExceededError, DataUnavailableError)):
            headers = {"Retry-After": str(exc.retry_after)}

        message = exc.message
        if isinstance(exc, DatabaseError):
            message = "An internal error occurred. Please try again later."

        details = exc.context if isinstance(exc, _EXPOSE_DETAILS) else None
        return error_response(status_code, code, message, details, headers)

    @app.exception_handler(PydanticValidationError)
    async def handle_model_validation_error(request: Request, exc: PydanticValidationError):
        """Form fields validated inside a handler (e.g. a blank title) → 422."""
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return error_response(422, "validation_error", "Request validation failed", {"errors": errors})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StudyShare API",
        description=(
            "Share, search and discuss academic study resources: upload PDFs, "
            "slides and documents, then browse them by subject, department, "
            "semester, teacher and tags."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(resources.router)
    app.include_router(files.router)

    return app


app = create_app()
