"""Domain-specific exceptions.

Each error class carries the ``kind`` clients switch on and the HTTP status the
API layer maps it to.
"""

from typing import ClassVar


class DomainError(Exception):
    """Base exception for domain errors."""

    kind: ClassVar[str] = "internal_error"
    status_code: ClassVar[int] = 500
    title: ClassVar[str] = "Internal Server Error"

    def __init__(self, message: str, *, field_errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors


class UnauthorizedError(DomainError):
    """No valid session."""

    kind = "unauthorized"
    status_code = 401
    title = "Unauthorized"


class ForbiddenError(DomainError):
    """Session present but lacks the permission for the action."""

    kind = "forbidden"
    status_code = 403
    title = "Forbidden"


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404
    title = "Not Found"


class InvalidStateError(DomainError):
    """The entity is not in a state that permits the transition."""

    kind = "invalid_state"
    status_code = 409
    title = "Invalid State"


class ConflictError(DomainError):
    """A uniqueness or referential constraint would be violated."""

    kind = "conflict"
    status_code = 409
    title = "Conflict"


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    kind = "validation_error"
    status_code = 400
    title = "Validation Failed"


class UpstreamError(DomainError):
    """The asset store failed or timed out."""

    kind = "upstream_error"
    status_code = 502
    title = "Bad Gateway"
