from __future__ import annotations

import pytest

from agent_images.domain.admission_status import (
    AdmissionStatus,
    InvalidAdmissionTransitionError,
    assert_transition,
    can_transition,
    is_terminal,
)

HAPPY_PATH = [
    AdmissionStatus.RECEIVED,
    AdmissionStatus.VALIDATED,
    AdmissionStatus.INTENT_OPEN,
    AdmissionStatus.BYTES_TRANSFERRED,
    AdmissionStatus.FINALIZED,
]


def test_happy_path_transitions_are_allowed() -> None:
    for from_status, to_status in zip(HAPPY_PATH, HAPPY_PATH[1:], strict=False):
        assert_transition(from_status, to_status)


@pytest.mark.parametrize("status", HAPPY_PATH[:-1])
def test_every_non_terminal_status_can_be_rejected(status: AdmissionStatus) -> None:
    assert can_transition(status, AdmissionStatus.REJECTED)


@pytest.mark.parametrize("status", [AdmissionStatus.FINALIZED, AdmissionStatus.REJECTED])
def test_terminal_statuses_have_no_exits(status: AdmissionStatus) -> None:
    assert is_terminal(status)
    for target in AdmissionStatus:
        assert not can_transition(status, target)


def test_skipping_a_step_raises() -> None:
    with pytest.raises(InvalidAdmissionTransitionError, match="RECEIVED -> FINALIZED"):
        assert_transition(AdmissionStatus.RECEIVED, AdmissionStatus.FINALIZED)


def test_moving_backwards_raises() -> None:
    with pytest.raises(InvalidAdmissionTransitionError):
        assert_transition(AdmissionStatus.BYTES_TRANSFERRED, AdmissionStatus.INTENT_OPEN)
