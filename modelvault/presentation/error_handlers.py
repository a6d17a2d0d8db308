"""Centralized error handling for the presentation layer."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.exceptions import DomainError, UnauthorizedError
from .problem_details import ProblemDetailFactory
from .session_cookie import clear_session_cookie


def handle_domain_error(error: DomainError, request: Request) -> JSONResponse:
    """Convert domain errors to Problem Details responses."""
    problem = ProblemDetailFactory.from_domain_error(error, str(request.url.path))
    response = problem.to_response()
    if isinstance(error, UnauthorizedError) and request.cookies:
        # A stale cookie would keep failing; drop it
        clear_session_cookie(response)
    return response


def handle_request_validation_error(
    error: RequestValidationError, request: Request
) -> JSONResponse:
    """Turn FastAPI body/query validation errors into a 400 with field errors."""
    field_errors = []
    for item in error.errors():
        field_name = ".".join(
            str(loc) for loc in item["loc"] if loc not in ("body", "query", "path")
        )
        field_errors.append(
            {
                "field": field_name or "unknown",
                "code": item["type"],
                "message": item["msg"],
            }
        )

    problem = ProblemDetailFactory.validation_failed(
        detail="Request validation failed",
        instance=str(request.url.path),
        field_errors=field_errors,
    )
    return problem.to_response()


def handle_database_error(error: SQLAlchemyError, request: Request) -> JSONResponse:
    if isinstance(error, IntegrityError):
        problem = ProblemDetailFactory.resource_already_exists(
            resource_type="resource",
            detail="A resource with these values already exists",
            instance=str(request.url.path),
        )
    else:
        problem = ProblemDetailFactory.internal_server_error(
            detail="A database error occurred. Please try again.",
            instance=str(request.url.path),
        )
    return problem.to_response()


def handle_unexpected_error(request: Request) -> JSONResponse:
    problem = ProblemDetailFactory.internal_server_error(
        detail="An unexpected error occurred. Please try again.",
        instance=str(request.url.path),
    )
    return problem.to_response()
