# app/routers/courses.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.academic import Course, Batch
from app.models.user import User, ROLE_PARTY
from app.routers.auth import require_user, require_superadmin
from app.schemas.academic import CourseIn
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/courses", tags=["Courses"])

DUPLICATE_CODE = "Course code already exists"
DUPLICATE_NAME = "Course name already exists"
UNIQUE_MESSAGES = {"code": DUPLICATE_CODE, "name": DUPLICATE_NAME}


def directed_course_ids(db: Session, user: User) -> List[int]:
    rows = db.query(Course.id).filter(Course.course_director_id == user.id).all()
    return [r[0] for r in rows]


def _get_or_404(db: Session, course_id: int) -> Course:
    c = db.get(Course, course_id)
    if not c:
        raise HTTPException(404, "Course not found")
    return c


def _check_director(db: Session, director_id: int):
    director = db.get(User, director_id)
    if not director:
        raise HTTPException(400, "Course director not found")
    if director.role != ROLE_PARTY or not director.is_active:
        raise HTTPException(400, "Course director must be an active party user")


@router.get("", dependencies=[Depends(require_superadmin)])
def list_courses(db: Session = Depends(get_db)):
    rows = db.query(Course).order_by(Course.created_at.desc(), Course.id.desc()).all()
    return [c.to_dict() for c in rows]


@router.get("/available", dependencies=[Depends(require_user)])
def available_courses(db: Session = Depends(get_db)):
    rows = db.query(Course).filter(Course.is_active.is_(True)).order_by(Course.name.asc()).all()
    return [c.to_dict() for c in rows]


@router.get("/my-courses")
def my_courses(me: User = Depends(require_user), db: Session = Depends(get_db)):
    rows = (
        db.query(Course)
        .filter(Course.course_director_id == me.id)
        .order_by(Course.created_at.desc())
        .all()
    )
    return [c.to_dict() for c in rows]


@router.get("/{course_id}", dependencies=[Depends(require_user)])
def get_course(course_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, course_id).to_dict()


@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_course(payload: CourseIn, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    code = (payload.code or "").strip()
    if not name or not code or payload.course_director_id is None:
        raise HTTPException(400, "Name, code, and course director are required")
    _check_director(db, payload.course_director_id)
    if db.query(Course).filter(Course.code == code).first():
        raise HTTPException(400, DUPLICATE_CODE)
    if db.query(Course).filter(Course.name == name).first():
        raise HTTPException(400, DUPLICATE_NAME)

    c = Course(
        name=name,
        code=code,
        description=(payload.description or "").strip() or None,
        course_director_id=payload.course_director_id,
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(c)
    commit_unique(db, DUPLICATE_CODE, UNIQUE_MESSAGES)
    db.refresh(c)
    return c.to_dict()


@router.put("/{course_id}", dependencies=[Depends(require_superadmin)])
def update_course(course_id: int, payload: CourseIn, db: Session = Depends(get_db)):
    c = _get_or_404(db, course_id)
    data = payload.model_dump(exclude_unset=True)

    if data.get("course_director_id") is not None:
        _check_director(db, data["course_director_id"])
        c.course_director_id = data["course_director_id"]

    code = (data.get("code") or "").strip()
    if code and code != c.code:
        if db.query(Course).filter(Course.code == code, Course.id != c.id).first():
            raise HTTPException(400, DUPLICATE_CODE)
        c.code = code
    name = (data.get("name") or "").strip()
    if name and name != c.name:
        if db.query(Course).filter(Course.name == name, Course.id != c.id).first():
            raise HTTPException(400, DUPLICATE_NAME)
        c.name = name
    if "description" in data:
        c.description = (data["description"] or "").strip() or None
    if data.get("is_active") is not None:
        c.is_active = data["is_active"]

    commit_unique(db, DUPLICATE_CODE, UNIQUE_MESSAGES)
    db.refresh(c)
    return c.to_dict()


@router.delete("/{course_id}", dependencies=[Depends(require_superadmin)])
def delete_course(course_id: int, db: Session = Depends(get_db)):
    c = _get_or_404(db, course_id)
    assert_no_dependents(
        db, parent="course", child="batch(es)", children="batches",
        fk_column=Batch.course_id, parent_id=c.id,
    )
    db.delete(c)
    db.commit()
    return {"message": "Course deleted successfully"}
