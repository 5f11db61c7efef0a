# app/routers/analytics.py
from __future__ import annotations

from io import BytesIO
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.department import Department
from app.models.medical import MedicalSubmission, REVIEW_PENDING
from app.models.resit import ResitForm
from app.models.ticket import (
    Ticket, TICKET_STATUSES, PRIORITIES, OPEN_STATUSES, STATUS_RESOLVED, APPROVAL_PENDING,
)
from app.models.user import User
from app.routers.auth import require_superadmin, require_student, require_party
from app.services.export_service import build_tickets_csv, build_tickets_xlsx
from app.utils.datetime import utcnow

router = APIRouter(prefix="/analytics", tags=["Analytics"])

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _counts(db: Session, column, *filters) -> Dict[str, int]:
    q = db.query(column, func.count(Ticket.id)).filter(*filters).group_by(column)
    return {k: int(n) for k, n in q.all()}


def _recent(db: Session, limit: int, *filters) -> List[dict]:
    rows = (
        db.query(Ticket)
        .filter(*filters)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .limit(limit)
        .all()
    )
    return [t.to_dict(with_messages=False) for t in rows]


def _summary(db: Session, *filters) -> dict:
    by_status = _counts(db, Ticket.status, *filters)
    return {
        "total": sum(by_status.values()),
        "open": sum(by_status.get(s, 0) for s in OPEN_STATUSES),
        "resolved": by_status.get(STATUS_RESOLVED, 0),
        "by_status": {s: by_status.get(s, 0) for s in TICKET_STATUSES},
    }


# ===================== SUPERADMIN =====================
@router.get("/dashboard", dependencies=[Depends(require_superadmin)])
def dashboard(db: Session = Depends(get_db)):
    out = _summary(db)
    by_priority = _counts(db, Ticket.priority)
    out["by_priority"] = {p: by_priority.get(p, 0) for p in PRIORITIES}

    dept_rows = (
        db.query(Department.name, func.count(Ticket.id))
        .join(Ticket, Ticket.department_id == Department.id)
        .group_by(Department.name)
        .all()
    )
    out["by_department"] = [{"department": name, "count": int(n)} for name, n in dept_rows]
    out["recent_tickets"] = _recent(db, 10)
    out["users_by_role"] = {
        role: int(n) for role, n in db.query(User.role, func.count(User.id)).group_by(User.role).all()
    }
    out["pending_approvals"] = db.query(Ticket).filter(Ticket.approval_status == APPROVAL_PENDING).count()
    out["pending_medical_submissions"] = (
        db.query(MedicalSubmission).filter(MedicalSubmission.status == REVIEW_PENDING).count()
    )
    out["pending_resit_forms"] = db.query(ResitForm).filter(ResitForm.status == REVIEW_PENDING).count()
    return out


@router.get("/departments", dependencies=[Depends(require_superadmin)])
def department_stats(db: Session = Depends(get_db)):
    out = []
    for d in db.query(Department).order_by(Department.name.asc()).all():
        tickets = db.query(Ticket).filter(Ticket.department_id == d.id).all()
        resolved = [t for t in tickets if t.status == STATUS_RESOLVED and t.resolved_at and t.created_at]
        hours = [(t.resolved_at - t.created_at).total_seconds() / 3600 for t in resolved]
        out.append({
            "department": d.brief(),
            "total": len(tickets),
            "resolved": sum(1 for t in tickets if t.status == STATUS_RESOLVED),
            "avg_resolution_hours": round(sum(hours) / len(hours), 2) if hours else None,
        })
    return out


@router.get("/export/tickets", dependencies=[Depends(require_superadmin)])
def export_tickets(fmt: str = Query("csv", alias="format"), db: Session = Depends(get_db)):
    rows = db.query(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()
    stamp = utcnow().strftime("%Y%m%d")

    if fmt == "json":
        return [t.to_dict(with_messages=False) for t in rows]
    if fmt == "csv":
        return Response(
            content=build_tickets_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="tickets_{stamp}.csv"'},
        )
    if fmt == "xlsx":
        return StreamingResponse(
            BytesIO(build_tickets_xlsx(rows)),
            media_type=XLSX_MIME,
            headers={"Content-Disposition": f'attachment; filename="tickets_{stamp}.xlsx"'},
        )
    raise HTTPException(400, "Invalid format. Use csv, json or xlsx")


# ===================== STUDENT / PARTY =====================
@router.get("/student-dashboard")
def student_dashboard(me: User = Depends(require_student), db: Session = Depends(get_db)):
    mine = Ticket.submitted_by_id == me.id
    out = _summary(db, mine)
    out["recent_tickets"] = _recent(db, 5, mine)
    return out


@router.get("/party-dashboard")
def party_dashboard(me: User = Depends(require_party), db: Session = Depends(get_db)):
    mine = Ticket.assigned_to_id == me.id
    out = _summary(db, mine)
    out["recent_tickets"] = _recent(db, 5, mine)
    out["pending_approvals"] = (
        db.query(Ticket)
        .filter(Ticket.approval_admin_id == me.id, Ticket.approval_status == APPROVAL_PENDING)
        .count()
    )
    return out
