"""Shared validation helpers for the application layer.

Wraps the pure domain validators so that every rejected value is also logged
(with credentials redacted) before the ``ValidationError`` propagates.
"""

from collections.abc import Callable
from typing import TypeVar

from ..domain.exceptions import ValidationError
from ..logging_utils import log_validation_error

T = TypeVar("T")


def validated(field: str, validator: Callable[[T], T], value: T) -> T:
    """Run ``validator`` on ``value`` and log the failure if it raises.

    Raises:
        ValidationError: Re-raised with ``field`` attached for the problem body
    """
    try:
        return validator(value)
    except ValidationError as e:
        log_validation_error(field, value, e.message)
        raise ValidationError(
            e.message,
            field_errors=[{"field": field, "code": "invalid", "message": e.message}],
        ) from e


def require_ids_exist(kind: str, requested: list[str], found: list) -> None:
    """Fail if any requested id has no matching row."""
    missing = set(requested) - {row.id for row in found}
    if missing:
        raise ValidationError(
            f"Unknown {kind} id(s): {', '.join(sorted(missing))}",
            field_errors=[
                {"field": f"{kind}_ids", "code": "unknown_id", "message": value}
                for value in sorted(missing)
            ],
        )
