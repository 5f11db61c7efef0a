# app/services/assignment.py
"""Routing of newly created tickets to support staff (role ``party``)."""
from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.department import Department
from app.models.ticket import Ticket, OPEN_STATUSES, STATUS_ISSUED, STATUS_SEEN
from app.models.user import User, ROLE_PARTY

log = logging.getLogger("assignment")

_default_rng = random.Random()


def get_assignment_rng() -> random.Random:
    """FastAPI dependency; tests override it with a seeded generator."""
    return _default_rng


def open_loads(db: Session, user_ids: Sequence[int]) -> Dict[int, int]:
    """Open-ticket count per user (Issued, Seen, In Progress)."""
    loads = {uid: 0 for uid in user_ids}
    if not user_ids:
        return loads
    rows = (
        db.query(Ticket.assigned_to_id, func.count(Ticket.id))
        .filter(Ticket.assigned_to_id.in_(list(user_ids)), Ticket.status.in_(OPEN_STATUSES))
        .group_by(Ticket.assigned_to_id)
        .all()
    )
    for uid, n in rows:
        loads[uid] = int(n)
    return loads


def active_parties(db: Session, department_id: Optional[int] = None) -> List[User]:
    q = db.query(User).filter(User.role == ROLE_PARTY, User.is_active.is_(True))
    if department_id is not None:
        q = q.filter(User.department_id == department_id)
    return q.order_by(User.id.asc()).all()


def least_loaded(db: Session, candidates: List[User], rng: random.Random) -> Optional[User]:
    """Uniform random choice among the candidates tied for the lowest load."""
    if not candidates:
        return None
    loads = open_loads(db, [c.id for c in candidates])
    lowest = min(loads.values())
    tied = [c for c in candidates if loads[c.id] == lowest]
    return rng.choice(tied)


def choose_assignee(
    db: Session,
    department: Department,
    rng: random.Random,
) -> Tuple[Optional[User], str]:
    """
    Pick the assignee for a ticket routed to ``department``.

    Returns ``(user, status)``. A department default party wins outright;
    otherwise the least-loaded active party of the department, then of the
    whole system. With nobody available the ticket stays unassigned/Issued.
    """
    if department.assigned_party_id:
        return department.assigned_party, STATUS_SEEN

    pool = active_parties(db, department.id)
    if not pool:
        log.info("No active party in department %s, falling back system-wide", department.id)
        pool = active_parties(db)

    chosen = least_loaded(db, pool, rng)
    if chosen is None:
        return None, STATUS_ISSUED
    return chosen, STATUS_SEEN
