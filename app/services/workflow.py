# app/services/workflow.py
"""Explicit transition tables for every status field that has a lifecycle."""
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Mapping

from app.models.ticket import (
    STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_DENOUNCED,
    APPROVAL_NONE, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED,
)
from app.models.medical import REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED


class InvalidTransition(ValueError):
    def __init__(self, machine: str, current: str, target: str):
        self.machine = machine
        self.current = current
        self.target = target
        super().__init__(f"Cannot change {machine} from '{current}' to '{target}'")


class StateMachine:
    def __init__(self, name: str, transitions: Mapping[str, Iterable[str]]):
        self.name = name
        self.transitions: Dict[str, FrozenSet[str]] = {
            src: frozenset(dsts) for src, dsts in transitions.items()
        }

    @property
    def states(self) -> FrozenSet[str]:
        return frozenset(self.transitions)

    def targets(self, current: str) -> FrozenSet[str]:
        return self.transitions.get(current, frozenset())

    def can(self, current: str, target: str) -> bool:
        return target in self.targets(current)

    def is_terminal(self, state: str) -> bool:
        return not (self.targets(state) - {state})

    def transition(self, current: str, target: str) -> str:
        """Return ``target`` if allowed, else raise InvalidTransition."""
        if not self.can(current, target):
            raise InvalidTransition(self.name, current, target)
        return target


_WORKING = (STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_DENOUNCED)

# Issued is only ever an initial state. A closed ticket may be reopened by its assignee;
# only (re)assignment treats Resolved/Denounced as final.
TICKET_STATUS = StateMachine("ticket status", {
    STATUS_ISSUED: _WORKING,
    STATUS_SEEN: _WORKING,
    STATUS_IN_PROGRESS: _WORKING,
    STATUS_RESOLVED: _WORKING,
    STATUS_DENOUNCED: _WORKING,
})

# A decided approval goes back to none to open a new cycle.
APPROVAL_STATUS = StateMachine("approval status", {
    APPROVAL_NONE: (APPROVAL_PENDING,),
    APPROVAL_PENDING: (APPROVAL_APPROVED, APPROVAL_REJECTED),
    APPROVAL_APPROVED: (APPROVAL_NONE,),
    APPROVAL_REJECTED: (APPROVAL_NONE,),
})

MEDICAL_STATUS = StateMachine("medical submission status", {
    REVIEW_PENDING: (REVIEW_APPROVED, REVIEW_REJECTED),
    REVIEW_APPROVED: (),
    REVIEW_REJECTED: (),
})

RESIT_STATUS = StateMachine("resit form status", {
    REVIEW_PENDING: (REVIEW_APPROVED, REVIEW_REJECTED),
    REVIEW_APPROVED: (),
    REVIEW_REJECTED: (),
})
