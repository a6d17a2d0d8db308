"""Deletion workflow states and their legal transitions."""

from enum import StrEnum
from typing import Final

from .exceptions import InvalidStateError


class DeletionState(StrEnum):
    ACTIVE = "ACTIVE"
    MARKED_FOR_DELETION = "MARKED_FOR_DELETION"
    PURGED_PENDING = "PURGED_PENDING"
    PURGED = "PURGED"


VALID_TRANSITIONS: Final[dict[DeletionState, frozenset[DeletionState]]] = {
    # ACTIVE -> PURGED_PENDING is the administrator shortcut
    DeletionState.ACTIVE: frozenset(
        {DeletionState.MARKED_FOR_DELETION, DeletionState.PURGED_PENDING}
    ),
    DeletionState.MARKED_FOR_DELETION: frozenset(
        {DeletionState.ACTIVE, DeletionState.PURGED_PENDING}
    ),
    DeletionState.PURGED_PENDING: frozenset({DeletionState.PURGED}),
    DeletionState.PURGED: frozenset(),
}


def can_transit(src: DeletionState, dst: DeletionState) -> bool:
    return dst in VALID_TRANSITIONS[src]


def ensure_transition(src: DeletionState, dst: DeletionState, title: str) -> None:
    if not can_transit(src, dst):
        raise InvalidStateError(
            f"Model '{title}' cannot move from {src.value} to {dst.value}"
        )


def state_of(marked_for_deletion: bool) -> DeletionState:
    """State of a model row that still exists."""
    if marked_for_deletion:
        return DeletionState.MARKED_FOR_DELETION
    return DeletionState.ACTIVE
