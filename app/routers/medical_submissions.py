# app/routers/medical_submissions.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.medical import (
    MedicalSubmission, MedicalDocument, REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED,
)
from app.models.user import User
from app.routers.auth import require_user, require_student
from app.schemas.academic import ReviewIn
from app.services import policy
from app.services.audit import write_log
from app.services.numbering import generate_reference_id
from app.services.uploads import save_uploads, remove_files, resolve_stored
from app.services.workflow import MEDICAL_STATUS
from app.utils.datetime import utcnow, parse_date

log = logging.getLogger("medical")

router = APIRouter(prefix="/medical-submissions", tags=["Medical submissions"])

DEFAULT_APPROVAL_NOTE = "Approved by examination department"


def require_medical_reviewer(me: User = Depends(require_user)) -> User:
    if not policy.can_review_medical(me):
        raise HTTPException(403, "Access denied. Only Examination Department users can access this.")
    return me


def _get_or_404(db: Session, submission_id: int) -> MedicalSubmission:
    s = db.get(MedicalSubmission, submission_id)
    if not s:
        raise HTTPException(404, "Medical submission not found")
    return s


def _by_status(db: Session, status: Optional[str] = None):
    q = db.query(MedicalSubmission)
    if status:
        q = q.filter(MedicalSubmission.status == status)
    return [s.to_dict() for s in q.order_by(MedicalSubmission.created_at.desc(), MedicalSubmission.id.desc())]


# ===================== CREATE =====================
@router.post("", status_code=201)
def create_submission(
    request: Request,
    medical_condition: Optional[str] = Form(None),
    start_date: Optional[str] = Form(None),
    end_date: Optional[str] = Form(None),
    documents: Optional[List[UploadFile]] = File(None),
    me: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    condition = (medical_condition or "").strip()
    if not condition or not start_date or not end_date:
        raise HTTPException(400, "Medical condition, start date, and end date are required")
    start, end = parse_date(start_date), parse_date(end_date)
    if start is None or end is None:
        raise HTTPException(400, "Invalid date format")
    if start > end:
        raise HTTPException(400, "Start date must be before or equal to end date")

    saved = save_uploads(documents or [])
    try:
        submission = MedicalSubmission(
            reference_id=generate_reference_id(db),
            student_id=me.id,
            medical_condition=condition,
            start_date=start,
            end_date=end,
            status=REVIEW_PENDING,
        )
        for pos, (name, original, path) in enumerate(saved):
            submission.documents.append(
                MedicalDocument(position=pos, filename=name, original_name=original, path=path)
            )
        db.add(submission)
        db.flush()
        write_log(
            db, category="medical", action="medical_submitted",
            description=f"Medical submission {submission.reference_id} created",
            request=request,
            metadata={"submission_id": submission.id, "documents": len(saved)},
        )
        db.commit()
    except Exception:
        db.rollback()
        remove_files([p for _, _, p in saved])
        raise

    db.refresh(submission)
    return {"message": "Medical submission submitted successfully", "submission": submission.to_dict()}


# ===================== LIST =====================
@router.get("/my-submissions")
def my_submissions(me: User = Depends(require_student), db: Session = Depends(get_db)):
    rows = (
        db.query(MedicalSubmission)
        .filter(MedicalSubmission.student_id == me.id)
        .order_by(MedicalSubmission.created_at.desc(), MedicalSubmission.id.desc())
        .all()
    )
    return [s.to_dict() for s in rows]


@router.get("", dependencies=[Depends(require_medical_reviewer)])
def list_submissions(db: Session = Depends(get_db)):
    return _by_status(db)


@router.get("/pending", dependencies=[Depends(require_medical_reviewer)])
def list_pending(db: Session = Depends(get_db)):
    return _by_status(db, REVIEW_PENDING)


@router.get("/approved", dependencies=[Depends(require_medical_reviewer)])
def list_approved(db: Session = Depends(get_db)):
    return _by_status(db, REVIEW_APPROVED)


@router.get("/rejected", dependencies=[Depends(require_medical_reviewer)])
def list_rejected(db: Session = Depends(get_db)):
    return _by_status(db, REVIEW_REJECTED)


@router.get("/stats/overview", dependencies=[Depends(require_medical_reviewer)])
def stats_overview(db: Session = Depends(get_db)):
    counts = dict(
        db.query(MedicalSubmission.status, func.count(MedicalSubmission.id))
        .group_by(MedicalSubmission.status)
        .all()
    )
    out = {s: int(counts.get(s, 0)) for s in (REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED)}
    out["total"] = sum(int(v) for v in counts.values())
    return out


# ===================== DOWNLOAD =====================
@router.get("/download/{filename}")
def download_document(filename: str, me: User = Depends(require_user), db: Session = Depends(get_db)):
    doc = db.query(MedicalDocument).filter(MedicalDocument.filename == filename).first()
    if not doc:
        raise HTTPException(404, "File not found")
    if not policy.can_download_document(me, doc.submission):
        raise HTTPException(403, "Access denied")
    path = resolve_stored(filename)
    if path is None:
        raise HTTPException(404, "File not found")
    return FileResponse(str(path), filename=doc.original_name)


# ===================== DETAIL / REVIEW =====================
@router.get("/{submission_id}")
def get_submission(submission_id: int, me: User = Depends(require_user), db: Session = Depends(get_db)):
    s = _get_or_404(db, submission_id)
    if not policy.can_view_medical(me, s):
        raise HTTPException(403, "Access denied")
    return s.to_dict()


def _review(db: Session, request: Request, me: User, submission_id: int, decision: str, notes: str):
    s = _get_or_404(db, submission_id)
    if not MEDICAL_STATUS.can(s.status, decision):
        verb = "approve" if decision == REVIEW_APPROVED else "reject"
        raise HTTPException(400, f"Can only {verb} pending submissions")

    s.status = decision
    s.review_notes = notes
    s.reviewed_by_id = me.id
    s.reviewed_at = utcnow()
    write_log(
        db, category="medical", action=f"medical_{decision}",
        description=f"Medical submission {s.reference_id} {decision} by {me.email}",
        request=request, metadata={"submission_id": s.id},
    )
    db.commit()
    db.refresh(s)
    return {"message": f"Medical submission {decision} successfully", "submission": s.to_dict()}


@router.post("/{submission_id}/approve")
def approve_submission(
    submission_id: int,
    request: Request,
    payload: ReviewIn = ReviewIn(),
    me: User = Depends(require_medical_reviewer),
    db: Session = Depends(get_db),
):
    notes = (payload.review_notes or "").strip() or DEFAULT_APPROVAL_NOTE
    return _review(db, request, me, submission_id, REVIEW_APPROVED, notes)


@router.post("/{submission_id}/reject")
def reject_submission(
    submission_id: int,
    request: Request,
    payload: ReviewIn = ReviewIn(),
    me: User = Depends(require_medical_reviewer),
    db: Session = Depends(get_db),
):
    notes = (payload.review_notes or "").strip()
    if not notes:
        raise HTTPException(400, "Review notes are required for rejection")
    return _review(db, request, me, submission_id, REVIEW_REJECTED, notes)
