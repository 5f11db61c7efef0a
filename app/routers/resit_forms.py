# app/routers/resit_forms.py
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.academic import Course, Batch, Module
from app.models.medical import MedicalSubmission, REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED
from app.models.resit import ResitForm, EXAM_TYPES
from app.models.user import User, ROLE_PARTY, ROLE_STUDENT, ROLE_SUPERADMIN
from app.routers.auth import require_user, require_superadmin, require_student
from app.routers.courses import directed_course_ids
from app.schemas.academic import ResitFormIn, ReviewIn
from app.services import policy
from app.services.audit import write_log
from app.services.workflow import RESIT_STATUS
from app.utils.datetime import utcnow, parse_date

router = APIRouter(prefix="/resit-forms", tags=["Resit forms"])

PHONE_RE = re.compile(r"^\d{10}$")
MAX_PAST_DATES = 3


def _get_or_404(db: Session, form_id: int) -> ResitForm:
    f = db.get(ResitForm, form_id)
    if not f:
        raise HTTPException(404, "Resit form not found")
    return f


def require_course_director(me: User = Depends(require_user), db: Session = Depends(get_db)) -> User:
    """Students and superadmins pass; a party must direct at least one course."""
    if me.role in (ROLE_SUPERADMIN, ROLE_STUDENT):
        return me
    if me.role == ROLE_PARTY and directed_course_ids(db, me):
        return me
    raise HTTPException(403, "Access denied. Only course directors can access examination resits.")


def _director_forms(db: Session, me: User):
    q = db.query(ResitForm)
    if me.role != ROLE_SUPERADMIN:
        q = q.filter(ResitForm.course_id.in_(directed_course_ids(db, me) or [-1]))
    return q


def _parse_past_dates(raw) -> list:
    if not isinstance(raw, list) or not raw:
        raise HTTPException(400, "Past exam dates must be an array with at least one date")
    if len(raw) > MAX_PAST_DATES:
        raise HTTPException(400, f"Maximum {MAX_PAST_DATES} past exam dates allowed")
    out = []
    for value in raw:
        d = parse_date(value)
        if d is None:
            raise HTTPException(400, "Invalid exam date format")
        out.append(d.isoformat())
    return out


# ===================== LIST =====================
@router.get("", dependencies=[Depends(require_superadmin)])
def list_forms(db: Session = Depends(get_db)):
    rows = db.query(ResitForm).order_by(ResitForm.created_at.desc(), ResitForm.id.desc()).all()
    return [f.to_dict() for f in rows]


@router.get("/is-course-director")
def is_course_director(me: User = Depends(require_user), db: Session = Depends(get_db)):
    courses = []
    if me.role == ROLE_PARTY:
        courses = db.query(Course).filter(Course.course_director_id == me.id).order_by(Course.name.asc()).all()
    return {
        "is_course_director": bool(courses),
        "courses": [c.brief() for c in courses],
    }


@router.get("/my-courses")
def my_courses(me: User = Depends(require_user), db: Session = Depends(get_db)):
    q = db.query(Course).filter(Course.is_active.is_(True))
    if me.role == ROLE_SUPERADMIN:
        rows = q.order_by(Course.name.asc()).all()
    elif me.role == ROLE_PARTY:
        rows = q.filter(Course.course_director_id == me.id).order_by(Course.name.asc()).all()
    else:
        rows = []
    return {"courses": [c.to_dict() for c in rows]}


@router.get("/my-forms")
def my_forms(me: User = Depends(require_student), db: Session = Depends(get_db)):
    rows = (
        db.query(ResitForm)
        .filter(ResitForm.student_id == me.id)
        .order_by(ResitForm.created_at.desc(), ResitForm.id.desc())
        .all()
    )
    return [f.to_dict() for f in rows]


@router.get("/pending-approvals")
def pending_approvals(me: User = Depends(require_course_director), db: Session = Depends(get_db)):
    if me.role == ROLE_STUDENT:
        return []
    rows = (
        _director_forms(db, me)
        .filter(ResitForm.status == REVIEW_PENDING)
        .order_by(ResitForm.created_at.desc())
        .all()
    )
    return [f.to_dict() for f in rows]


@router.get("/approval-history")
def approval_history(me: User = Depends(require_course_director), db: Session = Depends(get_db)):
    if me.role == ROLE_STUDENT:
        return []
    rows = (
        _director_forms(db, me)
        .filter(ResitForm.status.in_((REVIEW_APPROVED, REVIEW_REJECTED)))
        .order_by(ResitForm.reviewed_at.desc())
        .all()
    )
    return [f.to_dict() for f in rows]


# ===================== CREATE =====================
@router.post("", status_code=201)
def create_form(
    payload: ResitFormIn,
    request: Request,
    me: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    phone = (payload.phone_number or "").strip()
    if (
        payload.course_id is None or payload.batch_id is None or payload.module_id is None
        or not payload.exam_type or not payload.past_exam_dates or not phone
    ):
        raise HTTPException(400, "All required fields must be provided")
    if payload.exam_type not in EXAM_TYPES:
        raise HTTPException(400, 'Invalid exam type. Must be either "Coursework" or "Exam"')
    if not PHONE_RE.match(phone):
        raise HTTPException(400, "Phone number must be exactly 10 digits (numbers only)")
    past_dates = _parse_past_dates(payload.past_exam_dates)

    # medical evidence
    if payload.is_medical and payload.medical_submission_id is None:
        raise HTTPException(400, "Medical submission is required when marking as medical")
    submission = None
    if payload.medical_submission_id is not None:
        submission = db.get(MedicalSubmission, payload.medical_submission_id)
        if not submission:
            raise HTTPException(400, "Medical submission not found")
        if submission.student_id != me.id:
            raise HTTPException(403, "Medical submission does not belong to you")
        if submission.status != REVIEW_APPROVED:
            raise HTTPException(400, "Medical submission must be approved")

    # course / batch / module
    course = db.get(Course, payload.course_id)
    if not course:
        raise HTTPException(400, "Course not found")
    batch = db.get(Batch, payload.batch_id)
    if not batch:
        raise HTTPException(400, "Batch not found")
    module = db.get(Module, payload.module_id)
    if not module:
        raise HTTPException(400, "Module not found")
    if batch.course_id != course.id:
        raise HTTPException(400, "Batch does not belong to the selected course")
    if module.batch_id != batch.id:
        raise HTTPException(400, "Module does not belong to the selected batch")
    if course.course_director_id is None:
        raise HTTPException(400, "Course does not have a course director assigned")

    form = ResitForm(
        student_id=me.id,
        course_id=course.id,
        batch_id=batch.id,
        module_id=module.id,
        exam_type=payload.exam_type,
        past_exam_dates=past_dates,
        phone_number=phone,
        is_medical=bool(payload.is_medical),
        medical_submission_id=submission.id if submission else None,
        medical_submission_ref=submission.reference_id if submission else None,
        status=REVIEW_PENDING,
        course_director_id=course.course_director_id,
    )
    db.add(form)
    db.flush()
    write_log(
        db, category="resit", action="resit_submitted",
        description=f"Resit form submitted for {module.code} ({payload.exam_type})",
        request=request, request_body=payload.model_dump(),
        metadata={"resit_form_id": form.id, "course_id": course.id, "is_medical": form.is_medical},
    )
    db.commit()
    db.refresh(form)
    return form.to_dict()


# ===================== REVIEW =====================
def _review(form_id: int, decision: str, payload: ReviewIn, request: Request, me: User, db: Session):
    form = _get_or_404(db, form_id)
    if not policy.can_review_resit(me, form):
        raise HTTPException(403, "Access denied")
    if not RESIT_STATUS.can(form.status, decision):
        verb = "approve" if decision == REVIEW_APPROVED else "reject"
        raise HTTPException(400, f"Can only {verb} pending resit forms")

    form.status = decision
    form.reviewed_at = utcnow()
    form.review_notes = (payload.review_notes or "").strip() or None
    form.course_director_id = me.id

    write_log(
        db, category="resit", action=f"resit_{decision}",
        description=f"Resit form {form.id} {decision} by {me.email}",
        request=request, metadata={"resit_form_id": form.id},
    )
    db.commit()
    db.refresh(form)
    return form.to_dict()


@router.post("/{form_id}/approve")
def approve_form(
    form_id: int,
    request: Request,
    payload: ReviewIn = ReviewIn(),
    me: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return _review(form_id, REVIEW_APPROVED, payload, request, me, db)


@router.post("/{form_id}/reject")
def reject_form(
    form_id: int,
    request: Request,
    payload: ReviewIn = ReviewIn(),
    me: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return _review(form_id, REVIEW_REJECTED, payload, request, me, db)


# ===================== DETAIL / DELETE =====================
@router.get("/{form_id}")
def get_form(form_id: int, me: User = Depends(require_user), db: Session = Depends(get_db)):
    form = _get_or_404(db, form_id)
    if not policy.can_view_resit(me, form):
        raise HTTPException(403, "Access denied")
    return form.to_dict()


@router.delete("/{form_id}", dependencies=[Depends(require_superadmin)])
def delete_form(form_id: int, db: Session = Depends(get_db)):
    db.delete(_get_or_404(db, form_id))
    db.commit()
    return {"message": "Resit form deleted successfully"}
