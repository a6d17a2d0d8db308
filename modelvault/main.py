import socket
from contextlib import asynccontextmanager
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .domain.exceptions import DomainError
from .infrastructure.database.database import get_main_engine, init_db
from .logging_config import get_logger, setup_logging
from .logging_utils import log_system_info
from .middleware import log_requests_middleware
from .presentation.api_routes import api_router
from .presentation.dependencies import close_asset_store
from .presentation.error_handlers import (
    handle_database_error,
    handle_domain_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from .rate_limiting import rate_limit_middleware
from .telemetry import setup_telemetry


@asynccontextmanager
async def lifespan(_app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    init_db(get_main_engine())
    logger.info("Database initialized successfully")

    hostname = socket.gethostname()
    try:
        ip_addr = socket.gethostbyname(hostname)
    except OSError:
        ip_addr = "unknown"
    log_system_info(hostname, ip_addr, settings.debug)

    yield

    close_asset_store()
    logger.info("Application shutdown completed")


app: Final = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
    description="""
**ModelVault** - internal catalogue of 3D models for a design team.

## Core Features

- **Models**: zip archive plus screenshots, stored in Nextcloud
- **Projects and spheres** to group and filter models
- **Two-stage deletion**: users request, administrators approve or reject,
  and assets are purged only as a final explicit step
- **Audit log** of every change, filterable by action, user and date

## Authentication

Sign in with `POST /api/auth/login`; the session travels in an http-only
`session` cookie. Every mutating route checks a role permission.

## Rate Limiting

- **Login**: 10 requests per minute per IP
- **Write operations**: 60 requests per minute per IP
- **Other endpoints**: 300 requests per minute per IP

Rate limit headers (`X-RateLimit-*`) are included in all API responses.
    """.strip(),
    openapi_tags=[
        {"name": "auth", "description": "Sign in, sign out, current user"},
        {"name": "models", "description": "Catalogue models and deletion requests"},
        {"name": "deleted-models", "description": "Tombstones awaiting purge"},
        {"name": "employees", "description": "User accounts and permissions"},
        {"name": "logs", "description": "Audit trail"},
        {"name": "projects", "description": "Projects grouping models"},
        {"name": "spheres", "description": "Business domains of models"},
        {"name": "assets", "description": "Direct asset store access"},
    ],
)

setup_telemetry(app)

# Order matters: rate limiting before logging
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(log_requests_middleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Global handler for domain-specific errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Domain error occurred",
        error_type=type(exc).__name__,
        kind=exc.kind,
        error_message=exc.message,
        path=request.url.path,
        method=request.method,
    )
    return handle_domain_error(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Global handler for Pydantic validation errors."""
    logger = get_logger(__name__)
    logger.warning(
        "Request validation error occurred",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
    )
    return handle_request_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Global handler for database errors."""
    logger = get_logger(__name__)
    logger.error(
        "Database error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return handle_database_error(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Global handler for unexpected errors."""
    logger = get_logger(__name__)
    logger.error(
        "Unexpected error occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )
    return handle_unexpected_error(request)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": settings.version}


app.include_router(api_router)
