# app/routers/batches.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.academic import Course, Batch, Module
from app.models.user import User
from app.routers.auth import require_user, require_superadmin
from app.routers.courses import directed_course_ids
from app.schemas.academic import BatchIn
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/batches", tags=["Batches"])

DUPLICATE_CODE = "Batch code already exists for this course"


def _get_or_404(db: Session, batch_id: int) -> Batch:
    b = db.get(Batch, batch_id)
    if not b:
        raise HTTPException(404, "Batch not found")
    return b


def _check_years(start_year: int, end_year: int):
    if end_year < start_year:
        raise HTTPException(400, "End year must be greater than or equal to start year")


def _code_taken(db: Session, course_id: int, code: str, exclude_id=None) -> bool:
    q = db.query(Batch).filter(Batch.course_id == course_id, Batch.code == code)
    if exclude_id is not None:
        q = q.filter(Batch.id != exclude_id)
    return q.first() is not None


@router.get("", dependencies=[Depends(require_superadmin)])
def list_batches(db: Session = Depends(get_db)):
    rows = db.query(Batch).order_by(Batch.created_at.desc(), Batch.id.desc()).all()
    return [b.to_dict() for b in rows]


@router.get("/course/{course_id}", dependencies=[Depends(require_user)])
def batches_by_course(course_id: int, db: Session = Depends(get_db)):
    rows = db.query(Batch).filter(Batch.course_id == course_id).order_by(Batch.name.asc()).all()
    return [b.to_dict() for b in rows]


@router.get("/my-batches")
def my_batches(me: User = Depends(require_user), db: Session = Depends(get_db)):
    ids = directed_course_ids(db, me)
    if not ids:
        return []
    rows = db.query(Batch).filter(Batch.course_id.in_(ids)).order_by(Batch.name.asc()).all()
    return [b.to_dict() for b in rows]


@router.get("/{batch_id}", dependencies=[Depends(require_user)])
def get_batch(batch_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, batch_id).to_dict()


@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_batch(payload: BatchIn, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    code = (payload.code or "").strip()
    if not name or not code or payload.course_id is None or not payload.start_year or not payload.end_year:
        raise HTTPException(400, "All fields are required")
    if not db.get(Course, payload.course_id):
        raise HTTPException(400, "Course not found")
    _check_years(payload.start_year, payload.end_year)
    if _code_taken(db, payload.course_id, code):
        raise HTTPException(400, DUPLICATE_CODE)

    b = Batch(
        name=name,
        code=code,
        course_id=payload.course_id,
        start_year=payload.start_year,
        end_year=payload.end_year,
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(b)
    commit_unique(db, DUPLICATE_CODE)
    db.refresh(b)
    return b.to_dict()


@router.put("/{batch_id}", dependencies=[Depends(require_superadmin)])
def update_batch(batch_id: int, payload: BatchIn, db: Session = Depends(get_db)):
    b = _get_or_404(db, batch_id)
    data = payload.model_dump(exclude_unset=True)

    course_id = data.get("course_id") or b.course_id
    if course_id != b.course_id and not db.get(Course, course_id):
        raise HTTPException(400, "Course not found")
    code = (data.get("code") or "").strip() or b.code
    if (code != b.code or course_id != b.course_id) and _code_taken(db, course_id, code, exclude_id=b.id):
        raise HTTPException(400, DUPLICATE_CODE)

    start_year = data.get("start_year") or b.start_year
    end_year = data.get("end_year") or b.end_year
    _check_years(start_year, end_year)

    if course_id != b.course_id:
        # modules carry the course too
        db.query(Module).filter(Module.batch_id == b.id).update(
            {Module.course_id: course_id}, synchronize_session=False
        )
    b.course_id, b.code = course_id, code
    b.start_year, b.end_year = start_year, end_year
    if (data.get("name") or "").strip():
        b.name = data["name"].strip()
    if data.get("is_active") is not None:
        b.is_active = data["is_active"]

    commit_unique(db, DUPLICATE_CODE)
    db.refresh(b)
    return b.to_dict()


@router.delete("/{batch_id}", dependencies=[Depends(require_superadmin)])
def delete_batch(batch_id: int, db: Session = Depends(get_db)):
    b = _get_or_404(db, batch_id)
    assert_no_dependents(
        db, parent="batch", child="module(s)", children="modules",
        fk_column=Module.batch_id, parent_id=b.id,
    )
    db.delete(b)
    db.commit()
    return {"message": "Batch deleted successfully"}
