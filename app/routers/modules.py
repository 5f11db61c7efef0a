# app/routers/modules.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.academic import Batch, Module
from app.models.resit import ResitForm
from app.models.user import User
from app.routers.auth import require_user, require_superadmin
from app.routers.courses import directed_course_ids
from app.schemas.academic import ModuleIn
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/modules", tags=["Modules"])

DUPLICATE_CODE = "Module code already exists for this batch"


def _get_or_404(db: Session, module_id: int) -> Module:
    m = db.get(Module, module_id)
    if not m:
        raise HTTPException(404, "Module not found")
    return m


def _code_taken(db: Session, batch_id: int, code: str, exclude_id=None) -> bool:
    q = db.query(Module).filter(Module.batch_id == batch_id, Module.code == code)
    if exclude_id is not None:
        q = q.filter(Module.id != exclude_id)
    return q.first() is not None


@router.get("", dependencies=[Depends(require_superadmin)])
def list_modules(db: Session = Depends(get_db)):
    rows = db.query(Module).order_by(Module.created_at.desc(), Module.id.desc()).all()
    return [m.to_dict() for m in rows]


@router.get("/batch/{batch_id}", dependencies=[Depends(require_user)])
def modules_by_batch(batch_id: int, db: Session = Depends(get_db)):
    rows = db.query(Module).filter(Module.batch_id == batch_id).order_by(Module.name.asc()).all()
    return [m.to_dict() for m in rows]


@router.get("/course/{course_id}", dependencies=[Depends(require_user)])
def modules_by_course(course_id: int, db: Session = Depends(get_db)):
    rows = db.query(Module).filter(Module.course_id == course_id).order_by(Module.name.asc()).all()
    return [m.to_dict() for m in rows]


@router.get("/my-modules")
def my_modules(me: User = Depends(require_user), db: Session = Depends(get_db)):
    ids = directed_course_ids(db, me)
    if not ids:
        return []
    rows = db.query(Module).filter(Module.course_id.in_(ids)).order_by(Module.name.asc()).all()
    return [m.to_dict() for m in rows]


@router.get("/{module_id}", dependencies=[Depends(require_user)])
def get_module(module_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, module_id).to_dict()


@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_module(payload: ModuleIn, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    code = (payload.code or "").strip()
    if not name or not code or payload.batch_id is None:
        raise HTTPException(400, "All fields are required")
    batch = db.get(Batch, payload.batch_id)
    if not batch:
        raise HTTPException(400, "Batch not found")
    if _code_taken(db, batch.id, code):
        raise HTTPException(400, DUPLICATE_CODE)

    m = Module(
        name=name,
        code=code,
        batch_id=batch.id,
        course_id=batch.course_id,
        credits=payload.credits or 0,
        is_active=True if payload.is_active is None else payload.is_active,
    )
    db.add(m)
    commit_unique(db, DUPLICATE_CODE)
    db.refresh(m)
    return m.to_dict()


@router.put("/{module_id}", dependencies=[Depends(require_superadmin)])
def update_module(module_id: int, payload: ModuleIn, db: Session = Depends(get_db)):
    m = _get_or_404(db, module_id)
    data = payload.model_dump(exclude_unset=True)

    batch = m.batch
    if data.get("batch_id") is not None and data["batch_id"] != m.batch_id:
        batch = db.get(Batch, data["batch_id"])
        if not batch:
            raise HTTPException(400, "Batch not found")
    code = (data.get("code") or "").strip() or m.code
    if (code != m.code or batch.id != m.batch_id) and _code_taken(db, batch.id, code, exclude_id=m.id):
        raise HTTPException(400, DUPLICATE_CODE)

    m.batch_id, m.course_id, m.code = batch.id, batch.course_id, code
    if (data.get("name") or "").strip():
        m.name = data["name"].strip()
    if data.get("credits") is not None:
        m.credits = data["credits"]
    if data.get("is_active") is not None:
        m.is_active = data["is_active"]

    commit_unique(db, DUPLICATE_CODE)
    db.refresh(m)
    return m.to_dict()


@router.delete("/{module_id}", dependencies=[Depends(require_superadmin)])
def delete_module(module_id: int, db: Session = Depends(get_db)):
    m = _get_or_404(db, module_id)
    assert_no_dependents(
        db, parent="module", child="resit form(s)", children="resit forms",
        fk_column=ResitForm.module_id, parent_id=m.id,
    )
    db.delete(m)
    db.commit()
    return {"message": "Module deleted successfully"}
