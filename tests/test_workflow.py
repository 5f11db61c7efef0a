# tests/test_workflow.py
import pytest

from app.models.medical import REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED
from app.models.ticket import (
    STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_DENOUNCED,
    APPROVAL_NONE, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED,
)
from app.services.workflow import (
    TICKET_STATUS, APPROVAL_STATUS, MEDICAL_STATUS, RESIT_STATUS, InvalidTransition,
)

OPEN = (STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS)
WORKING = (STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_DENOUNCED)


@pytest.mark.parametrize("src", OPEN)
@pytest.mark.parametrize("dst", WORKING)
def test_open_ticket_reaches_any_working_status(src, dst):
    assert TICKET_STATUS.transition(src, dst) == dst


@pytest.mark.parametrize("src", OPEN + (STATUS_RESOLVED, STATUS_DENOUNCED))
def test_nothing_goes_back_to_issued(src):
    assert not TICKET_STATUS.can(src, STATUS_ISSUED)


@pytest.mark.parametrize("src", (STATUS_RESOLVED, STATUS_DENOUNCED))
def test_closed_tickets_can_be_reopened(src):
    assert TICKET_STATUS.targets(src) == set(WORKING)
    assert TICKET_STATUS.transition(src, STATUS_IN_PROGRESS) == STATUS_IN_PROGRESS
    assert not TICKET_STATUS.is_terminal(src)
    with pytest.raises(InvalidTransition):
        TICKET_STATUS.transition(src, STATUS_ISSUED)


def test_approval_cycle():
    assert APPROVAL_STATUS.targets(APPROVAL_NONE) == {APPROVAL_PENDING}
    assert APPROVAL_STATUS.targets(APPROVAL_PENDING) == {APPROVAL_APPROVED, APPROVAL_REJECTED}
    # a decided approval only returns to none (new cycle)
    for decided in (APPROVAL_APPROVED, APPROVAL_REJECTED):
        assert APPROVAL_STATUS.targets(decided) == {APPROVAL_NONE}
        with pytest.raises(InvalidTransition):
            APPROVAL_STATUS.transition(decided, APPROVAL_PENDING)
    with pytest.raises(InvalidTransition):
        APPROVAL_STATUS.transition(APPROVAL_PENDING, APPROVAL_PENDING)


@pytest.mark.parametrize("machine", [MEDICAL_STATUS, RESIT_STATUS], ids=["medical", "resit"])
def test_review_machines(machine):
    assert machine.targets(REVIEW_PENDING) == {REVIEW_APPROVED, REVIEW_REJECTED}
    for decided in (REVIEW_APPROVED, REVIEW_REJECTED):
        assert machine.is_terminal(decided)
        for target in (REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED):
            assert not machine.can(decided, target)


def test_invalid_transition_message():
    with pytest.raises(InvalidTransition) as exc:
        MEDICAL_STATUS.transition(REVIEW_APPROVED, REVIEW_REJECTED)
    assert exc.value.current == REVIEW_APPROVED
    assert exc.value.target == REVIEW_REJECTED
    assert "medical submission status" in str(exc.value)
