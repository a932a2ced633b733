"""Admission status enum and transition guards for one upload attempt."""

from __future__ import annotations

from enum import StrEnum
from typing import Final


class AdmissionStatus(StrEnum):
    """All states an upload attempt passes through during admission."""

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    INTENT_OPEN = "INTENT_OPEN"
    BYTES_TRANSFERRED = "BYTES_TRANSFERRED"
    FINALIZED = "FINALIZED"
    REJECTED = "REJECTED"


class InvalidAdmissionTransitionError(ValueError):
    """Raised when an attempted admission state transition is not allowed."""


_ALLOWED_TRANSITIONS: Final[dict[AdmissionStatus, frozenset[AdmissionStatus]]] = {
    AdmissionStatus.RECEIVED: frozenset({AdmissionStatus.VALIDATED, AdmissionStatus.REJECTED}),
    AdmissionStatus.VALIDATED: frozenset(
        {AdmissionStatus.INTENT_OPEN, AdmissionStatus.REJECTED}
    ),
    AdmissionStatus.INTENT_OPEN: frozenset(
        {AdmissionStatus.BYTES_TRANSFERRED, AdmissionStatus.REJECTED}
    ),
    AdmissionStatus.BYTES_TRANSFERRED: frozenset(
        {AdmissionStatus.FINALIZED, AdmissionStatus.REJECTED}
    ),
    AdmissionStatus.FINALIZED: frozenset(),
    AdmissionStatus.REJECTED: frozenset(),
}


def can_transition(from_status: AdmissionStatus, to_status: AdmissionStatus) -> bool:
    """Return whether the transition is valid for the admission state machine."""

    return to_status in _ALLOWED_TRANSITIONS[from_status]


def assert_transition(from_status: AdmissionStatus, to_status: AdmissionStatus) -> None:
    """Assert a transition is allowed, else raise deterministic domain error."""

    if not can_transition(from_status, to_status):
        raise InvalidAdmissionTransitionError(
            f"Invalid admission status transition: {from_status.value} -> {to_status.value}"
        )


def is_terminal(status: AdmissionStatus) -> bool:
    """Return whether no further transition can leave this status."""

    return not _ALLOWED_TRANSITIONS[status]
