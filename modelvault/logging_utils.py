import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import Request

_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "credential",
        "auth",
        "session",
        "cookie",
    }
)


def log_api_request(
    request: Request,
    response_status: int,
    process_time_ms: float | None = None,
    logger_name: str = "api",
) -> None:
    """Log API requests with consistent format.

    Args:
        request: FastAPI request object
        response_status: HTTP response status code
        process_time_ms: Request processing time in milliseconds
        logger_name: Name of the logger to use
    """
    logger = logging.getLogger(logger_name)

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response_status,
        "client_ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent", "Unknown")[:100],
    }

    if process_time_ms is not None:
        log_data["process_time_ms"] = str(round(process_time_ms, 2))

    if response_status >= 500:
        log_level = logging.ERROR
    elif response_status >= 400:
        log_level = logging.WARNING
    else:
        log_level = logging.INFO

    message = f"{request.method} {request.url.path} - {response_status}"
    if process_time_ms is not None:
        message += f" ({process_time_ms:.1f}ms)"

    logger.log(log_level, message, extra=log_data)


def log_database_operation(
    operation: str,
    table: str,
    success: bool = True,
    logger_name: str = "database",
    **kwargs: Any,
) -> None:
    """Log database operations.

    Args:
        operation: Database operation (create, update, delete, select)
        table: Table name being operated on
        success: Whether the operation was successful
        logger_name: Name of the logger to use
        **kwargs: Additional context data
    """
    logger = logging.getLogger(logger_name)

    log_data = {"operation": operation, "table": table, "success": success, **kwargs}

    level = logging.INFO if success else logging.ERROR
    status = "succeeded" if success else "failed"

    logger.log(level, f"Database {operation} on {table} {status}", extra=log_data)


def log_upstream_call(
    method: str,
    path: str,
    status_code: int | None,
    duration_ms: float,
    logger_name: str = "upstream",
) -> None:
    """Log a call to the asset store.

    ``status_code`` is None when the request never produced a response
    (timeouts, refused connections).
    """
    logger = logging.getLogger(logger_name)

    failed = status_code is None or status_code >= 500
    logger.log(
        logging.WARNING if failed else logging.DEBUG,
        f"WebDAV {method} {path} -> {status_code or 'no response'} "
        f"({duration_ms:.1f}ms)",
        extra={
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        },
    )


def log_system_info(hostname: str, ip_address: str, debug_mode: bool) -> None:
    """Log system startup information."""
    logger = logging.getLogger("system")

    logger.info(
        "Application startup",
        extra={
            "hostname": hostname,
            "ip_address": ip_address,
            "debug_mode": debug_mode,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


def log_validation_error(
    field: str, value: Any, error_message: str, logger_name: str = "validation"
) -> None:
    """Log validation errors with context.

    Values of credential-like fields are never written out.
    """
    logger = logging.getLogger(logger_name)

    safe_value = redact(field, value)

    logger.warning(
        f"Validation failed for field '{field}': {error_message}",
        extra={"field": field, "value": safe_value, "error": error_message},
    )


def redact(field: str, value: Any) -> str:
    """Return a loggable rendering of ``value`` for ``field``."""
    if _is_sensitive_field(field):
        return "[REDACTED]"
    return str(value)[:100]


def _is_sensitive_field(field_name: str) -> bool:
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in _SENSITIVE_FIELDS)
