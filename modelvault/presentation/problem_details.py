"""RFC 7807 Problem Details bodies for API errors."""

from typing import Final

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..domain.exceptions import DomainError

PROBLEM_MEDIA_TYPE: Final = "application/problem+json"


class FieldError(BaseModel):
    field: str = Field(description="Name of the offending field")
    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable explanation")


class ProblemDetail(BaseModel):
    """Error body returned by every API route."""

    type: str = Field(
        default="about:blank", description="URI reference identifying the problem"
    )
    title: str = Field(description="Short summary of the problem type")
    status: int = Field(description="HTTP status code")
    detail: str | None = Field(default=None, description="Explanation")
    instance: str | None = Field(default=None, description="Request path")
    kind: str = Field(description="Error kind clients switch on")
    errors: list[FieldError] | None = Field(
        default=None, description="Per-field validation errors"
    )

    def to_response(self, headers: dict[str, str] | None = None) -> JSONResponse:
        return JSONResponse(
            status_code=self.status,
            content=self.model_dump(exclude_none=True),
            media_type=PROBLEM_MEDIA_TYPE,
            headers=headers,
        )


def _problem_type(kind: str) -> str:
    return f"/problems/{kind.replace('_', '-')}"


class ProblemDetailFactory:
    """Builds ``ProblemDetail`` instances for the common cases."""

    @staticmethod
    def from_domain_error(error: DomainError, instance: str) -> ProblemDetail:
        errors = None
        if error.field_errors:
            errors = [FieldError(**field_error) for field_error in error.field_errors]
        return ProblemDetail(
            type=_problem_type(error.kind),
            title=error.title,
            status=error.status_code,
            detail=error.message,
            instance=instance,
            kind=error.kind,
            errors=errors,
        )

    @staticmethod
    def validation_failed(
        detail: str,
        instance: str,
        field_errors: list[dict[str, str]] | None = None,
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("validation_error"),
            title="Validation Failed",
            status=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            instance=instance,
            kind="validation_error",
            errors=[FieldError(**error) for error in field_errors or []] or None,
        )

    @staticmethod
    def resource_already_exists(
        resource_type: str, detail: str, instance: str
    ) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("conflict"),
            title=f"{resource_type.capitalize()} Already Exists",
            status=status.HTTP_409_CONFLICT,
            detail=detail,
            instance=instance,
            kind="conflict",
        )

    @staticmethod
    def internal_server_error(detail: str, instance: str) -> ProblemDetail:
        return ProblemDetail(
            type=_problem_type("internal_error"),
            title="Internal Server Error",
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            instance=instance,
            kind="internal_error",
        )
