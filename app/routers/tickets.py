# app/routers/tickets.py
import logging
import random
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.department import Department, IssueCategory
from app.models.ticket import (
    Ticket, TicketMessage,
    TICKET_STATUSES, PRIORITIES, STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED,
    APPROVAL_NONE, APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_REJECTED,
)
from app.models.user import User, ROLE_PARTY, ROLE_STUDENT
from app.routers.auth import require_user, require_roles, require_superadmin, require_student, require_party
from app.schemas.ticket import (
    TicketCreate, StatusUpdate, MessageIn, AssignIn, PriorityIn, ApprovalRequestIn, ApprovalReviewIn,
)
from app.services import policy
from app.services.assignment import choose_assignee, get_assignment_rng
from app.services.audit import write_log
from app.services.numbering import next_ticket_number
from app.services.workflow import TICKET_STATUS, APPROVAL_STATUS
from app.utils.datetime import utcnow

log = logging.getLogger("tickets")

router = APIRouter(prefix="/tickets", tags=["Tickets"])

UPDATABLE_STATUSES = tuple(s for s in TICKET_STATUSES if s != STATUS_ISSUED)


# ================= helpers =================
def _get_or_404(db: Session, ticket_id: int) -> Ticket:
    t = db.get(Ticket, ticket_id)
    if not t:
        raise HTTPException(404, "Ticket not found")
    return t


def _check_length(value: Optional[str], lo: int, hi: int, message: str) -> str:
    s = (value or "").strip()
    if not lo <= len(s) <= hi:
        raise HTTPException(400, message)
    return s


def _check_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None or notes == "":
        return None
    return _check_length(notes, 5, 500, "Notes must be between 5 and 500 characters")


def _active_party_or_400(db: Session, party_id: Optional[int]) -> User:
    party = db.get(User, party_id) if party_id is not None else None
    if not party or party.role != ROLE_PARTY or not party.is_active:
        raise HTTPException(400, "Invalid party ID")
    return party


def _require_admin_party(user: User) -> None:
    if not policy.is_admin_party(user):
        raise HTTPException(403, "Access denied")


def _after_handover(status: str) -> str:
    """Status after (re)assignment: In Progress survives, anything else becomes Seen."""
    return status if status == STATUS_IN_PROGRESS else STATUS_SEEN


def _ticket_query(db: Session):
    return db.query(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc())


# ===================== LIST =====================
@router.get("", dependencies=[Depends(require_superadmin)])
def list_tickets(
    db: Session = Depends(get_db),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    department: Optional[int] = Query(None),
    assigned_to: Optional[int] = Query(None),
    category: Optional[int] = Query(None),
):
    q = _ticket_query(db)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Ticket.title.ilike(like),
            Ticket.description.ilike(like),
            Ticket.ticket_number.ilike(like),
        ))
    if status:
        q = q.filter(Ticket.status == status)
    if priority:
        q = q.filter(Ticket.priority == priority)
    if department is not None:
        q = q.filter(Ticket.department_id == department)
    if assigned_to is not None:
        q = q.filter(Ticket.assigned_to_id == assigned_to)
    if category is not None:
        q = q.filter(Ticket.category_id == category)
    return [t.to_dict(with_messages=False) for t in q.all()]


@router.get("/my-tickets")
def my_tickets(me: User = Depends(require_roles(ROLE_STUDENT, ROLE_PARTY)), db: Session = Depends(get_db)):
    q = _ticket_query(db)
    if me.role == ROLE_STUDENT:
        q = q.filter(Ticket.submitted_by_id == me.id)
    else:
        q = q.filter(Ticket.assigned_to_id == me.id)
    return [t.to_dict() for t in q.all()]


@router.get("/approvals/pending")
def pending_approvals(me: User = Depends(require_party), db: Session = Depends(get_db)):
    _require_admin_party(me)
    rows = (
        _ticket_query(db)
        .filter(Ticket.approval_admin_id == me.id, Ticket.approval_status == APPROVAL_PENDING)
        .all()
    )
    return [t.to_dict() for t in rows]


@router.get("/approvals/history")
def approval_history(me: User = Depends(require_party), db: Session = Depends(get_db)):
    _require_admin_party(me)
    rows = (
        db.query(Ticket)
        .filter(
            Ticket.approval_reviewed_by_id == me.id,
            Ticket.approval_status.in_((APPROVAL_APPROVED, APPROVAL_REJECTED)),
        )
        .order_by(Ticket.approval_reviewed_at.desc())
        .all()
    )
    return [t.to_dict() for t in rows]


# ===================== CREATE =====================
@router.post("", status_code=201)
def create_ticket(
    payload: TicketCreate,
    request: Request,
    me: User = Depends(require_student),
    db: Session = Depends(get_db),
    rng: random.Random = Depends(get_assignment_rng),
):
    if not payload.title or not payload.description or payload.category_id is None:
        raise HTTPException(400, "Title, description, and category are required")
    title = _check_length(payload.title, 5, 200, "Title must be between 5 and 200 characters")
    description = _check_length(
        payload.description, 10, 2000, "Description must be between 10 and 2000 characters"
    )

    category = db.get(IssueCategory, payload.category_id)
    if not category or not category.is_active:
        raise HTTPException(400, "Invalid or inactive category")

    # 1. resolve the department
    if category.is_other:
        if payload.department_id is None:
            raise HTTPException(400, "Department is required for Other category")
        department = db.get(Department, payload.department_id)
        if not department:
            raise HTTPException(400, "Invalid department")
    else:
        department = category.department
        if department is None:
            raise HTTPException(400, "Category is not mapped to a department")

    # 2-4. pick the assignee
    if category.is_other and payload.assigned_to_id is not None:
        party = db.get(User, payload.assigned_to_id)
        if not party or party.role != ROLE_PARTY:
            raise HTTPException(400, "Invalid party ID")
        if party.department_id is not None and party.department_id != department.id:
            raise HTTPException(400, "Selected party does not belong to the chosen department")
        assignee, status = party, STATUS_SEEN
    else:
        assignee, status = choose_assignee(db, department, rng)

    ticket = Ticket(
        ticket_number=next_ticket_number(db),
        title=title,
        description=description,
        status=status,
        priority="Medium",
        category_id=category.id,
        department_id=department.id,
        submitted_by_id=me.id,
        assigned_to_id=assignee.id if assignee else None,
    )
    db.add(ticket)
    db.flush()

    write_log(
        db, category="ticket", action="ticket_created",
        description=f"New ticket created: {ticket.ticket_number} - {title}",
        request=request, request_body=payload.model_dump(),
        metadata={
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "category": category.name,
            "department": department.name,
            "assigned_to": ticket.assigned_to_id,
            "status": status,
        },
    )
    db.commit()
    db.refresh(ticket)
    log.info("Ticket %s routed to %s (%s)", ticket.ticket_number, ticket.assigned_to_id, status)
    return ticket.to_dict()


# ===================== DETAIL =====================
@router.get("/{ticket_id}")
def get_ticket(ticket_id: int, me: User = Depends(require_user), db: Session = Depends(get_db)):
    t = _get_or_404(db, ticket_id)
    if not policy.can_view_ticket(me, t):
        raise HTTPException(403, "Not authorized to view this ticket")
    return t.to_dict()


# ===================== STATUS =====================
@router.patch("/{ticket_id}/status")
def update_status(
    ticket_id: int,
    payload: StatusUpdate,
    request: Request,
    me: User = Depends(require_party),
    db: Session = Depends(get_db),
):
    if not payload.status:
        raise HTTPException(400, "Status is required")
    if payload.status not in UPDATABLE_STATUSES:
        raise HTTPException(400, "Invalid status")
    resolution = None
    if payload.resolution:
        resolution = _check_length(
            payload.resolution, 5, 1000, "Resolution must be between 5 and 1000 characters"
        )

    t = _get_or_404(db, ticket_id)
    if not policy.can_act_on_ticket(me, t):
        raise HTTPException(403, "Not authorized to update this ticket")
    if not TICKET_STATUS.can(t.status, payload.status):
        raise HTTPException(400, f"Cannot change status from {t.status} to {payload.status}")

    prev = t.status
    t.status = payload.status
    if resolution:
        t.resolution = resolution
    if t.status == STATUS_RESOLVED and t.resolved_at is None:
        t.resolved_at = utcnow()

    write_log(
        db, category="ticket", action="ticket_status_updated",
        description=f"Ticket {t.ticket_number} status changed from {prev} to {t.status}",
        request=request, metadata={"ticket_id": t.id, "from": prev, "to": t.status},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


# ===================== MESSAGES =====================
@router.post("/{ticket_id}/messages")
def add_message(
    ticket_id: int,
    payload: MessageIn,
    request: Request,
    me: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    text = (payload.message or "").strip()
    if not text:
        raise HTTPException(400, "Message is required")
    if len(text) > 1000:
        raise HTTPException(400, "Message must be less than 1000 characters")

    t = _get_or_404(db, ticket_id)
    if not policy.can_message_ticket(me, t):
        raise HTTPException(403, "Not authorized to add messages to this ticket")

    t.messages.append(TicketMessage(sender_id=me.id, message=text))
    t.updated_at = utcnow()
    write_log(
        db, category="ticket", action="ticket_message_added",
        description=f"Message added to ticket {t.ticket_number}",
        request=request, metadata={"ticket_id": t.id},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


# ===================== ASSIGN / REASSIGN =====================
@router.patch("/{ticket_id}/assign")
def assign_ticket(
    ticket_id: int,
    payload: AssignIn,
    request: Request,
    me: User = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    if payload.assigned_to_id is None:
        raise HTTPException(400, "Assigned party ID is required")
    t = _get_or_404(db, ticket_id)
    party = _active_party_or_400(db, payload.assigned_to_id)
    if policy.is_ticket_closed(t):
        raise HTTPException(400, "Cannot assign a resolved or denounced ticket")

    t.assigned_to_id = party.id
    t.status = TICKET_STATUS.transition(t.status, _after_handover(t.status))
    write_log(
        db, category="ticket", action="ticket_assigned",
        description=f"Ticket {t.ticket_number} assigned to {party.email}",
        request=request, metadata={"ticket_id": t.id, "assigned_to": party.id},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


@router.patch("/{ticket_id}/reassign")
def reassign_ticket(
    ticket_id: int,
    payload: AssignIn,
    request: Request,
    me: User = Depends(require_party),
    db: Session = Depends(get_db),
):
    if payload.assigned_to_id is None:
        raise HTTPException(400, "New assigned party ID is required")
    t = _get_or_404(db, ticket_id)
    if policy.is_ticket_closed(t):
        raise HTTPException(400, "Cannot reassign a resolved or denounced ticket")
    if not policy.can_act_on_ticket(me, t):
        raise HTTPException(403, "Not authorized to reassign this ticket")
    party = _active_party_or_400(db, payload.assigned_to_id)

    prev_assignee = t.assigned_to_id
    t.assigned_to_id = party.id
    t.status = TICKET_STATUS.transition(t.status, _after_handover(t.status))
    write_log(
        db, category="ticket", action="ticket_reassigned",
        description=f"Ticket {t.ticket_number} reassigned to {party.email}",
        request=request,
        metadata={"ticket_id": t.id, "from": prev_assignee, "to": party.id},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


# ===================== PRIORITY =====================
@router.patch("/{ticket_id}/priority")
def update_priority(
    ticket_id: int,
    payload: PriorityIn,
    request: Request,
    me: User = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    if not payload.priority:
        raise HTTPException(400, "Priority is required")
    if payload.priority not in PRIORITIES:
        raise HTTPException(400, "Invalid priority level")
    t = _get_or_404(db, ticket_id)
    prev = t.priority
    t.priority = payload.priority
    write_log(
        db, category="ticket", action="ticket_priority_updated",
        description=f"Ticket {t.ticket_number} priority changed from {prev} to {t.priority}",
        request=request, metadata={"ticket_id": t.id, "from": prev, "to": t.priority},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


# ===================== APPROVAL =====================
@router.post("/{ticket_id}/approval/request")
def request_approval(
    ticket_id: int,
    payload: ApprovalRequestIn,
    request: Request,
    me: User = Depends(require_party),
    db: Session = Depends(get_db),
):
    if payload.admin_id is None:
        raise HTTPException(400, "Admin ID is required")
    notes = _check_notes(payload.notes)

    t = _get_or_404(db, ticket_id)
    if policy.is_ticket_closed(t):
        raise HTTPException(400, "Cannot request approval for a resolved or denounced ticket")
    if not policy.can_request_approval(me, t):
        raise HTTPException(403, "Not authorized to request approval for this ticket")
    admin = db.get(User, payload.admin_id)
    if not policy.can_be_approval_admin(admin):
        raise HTTPException(400, "Invalid admin ID")

    current = t.approval_status or APPROVAL_NONE
    if current == APPROVAL_PENDING:
        raise HTTPException(400, "An approval request is already pending for this ticket")
    if current != APPROVAL_NONE:
        # a decided approval starts a fresh cycle
        current = APPROVAL_STATUS.transition(current, APPROVAL_NONE)
        t.approval_reviewed_by_id = None
        t.approval_reviewed_at = None

    t.approval_status = APPROVAL_STATUS.transition(current, APPROVAL_PENDING)
    t.approval_admin_id = admin.id
    t.approval_requested_by_id = me.id
    t.approval_requested_at = utcnow()
    t.approval_notes = notes

    write_log(
        db, category="ticket", action="ticket_approval_requested",
        description=f"Approval requested for ticket {t.ticket_number} from {admin.email}",
        request=request, metadata={"ticket_id": t.id, "admin_id": admin.id},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


def _review_approval(
    ticket_id: int, decision: str, payload: ApprovalReviewIn, request: Request, me: User, db: Session
):
    _require_admin_party(me)
    notes = _check_notes(payload.notes)

    t = _get_or_404(db, ticket_id)
    if not policy.can_review_approval(me, t):
        raise HTTPException(403, "Not authorized or no pending approval for this ticket")

    t.approval_status = APPROVAL_STATUS.transition(t.approval_status, decision)
    t.approval_reviewed_by_id = me.id
    t.approval_reviewed_at = utcnow()
    t.approval_notes = notes or t.approval_notes

    action = "ticket_approved" if decision == APPROVAL_APPROVED else "ticket_rejected"
    write_log(
        db, category="ticket", action=action,
        description=f"Ticket {t.ticket_number} {decision} by {me.email}",
        request=request, metadata={"ticket_id": t.id},
    )
    db.commit()
    db.refresh(t)
    return t.to_dict()


@router.post("/{ticket_id}/approval/approve")
def approve_ticket(
    ticket_id: int,
    request: Request,
    payload: ApprovalReviewIn = ApprovalReviewIn(),
    me: User = Depends(require_party),
    db: Session = Depends(get_db),
):
    return _review_approval(ticket_id, APPROVAL_APPROVED, payload, request, me, db)


@router.post("/{ticket_id}/approval/reject")
def reject_ticket(
    ticket_id: int,
    request: Request,
    payload: ApprovalReviewIn = ApprovalReviewIn(),
    me: User = Depends(require_party),
    db: Session = Depends(get_db),
):
    return _review_approval(ticket_id, APPROVAL_REJECTED, payload, request, me, db)
