# app/routers/departments.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.department import Department, IssueCategory
from app.models.ticket import Ticket
from app.models.user import User, ROLE_PARTY
from app.routers.auth import require_user, require_superadmin
from app.schemas.org import DepartmentIn
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/departments", tags=["Departments"])

DUPLICATE_NAME = "Department with this name already exists"


def _get_or_404(db: Session, department_id: int) -> Department:
    d = db.get(Department, department_id)
    if not d:
        raise HTTPException(404, "Department not found")
    return d


def _check_party(db: Session, party_id):
    if party_id is None:
        return
    party = db.get(User, party_id)
    if not party or party.role != ROLE_PARTY or not party.is_active:
        raise HTTPException(400, "Invalid party ID")


@router.get("", dependencies=[Depends(require_user)])
def list_departments(db: Session = Depends(get_db)):
    return [d.to_dict() for d in db.query(Department).order_by(Department.name.asc()).all()]


@router.get("/parties", dependencies=[Depends(require_superadmin)])
def list_all_parties(db: Session = Depends(get_db)):
    parties = db.query(User).filter(User.role == ROLE_PARTY).order_by(User.name.asc()).all()
    return [p.to_dict() for p in parties]


@router.get("/{department_id}", dependencies=[Depends(require_user)])
def get_department(department_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, department_id).to_dict()


@router.get("/{department_id}/parties", dependencies=[Depends(require_user)])
def department_parties(department_id: int, db: Session = Depends(get_db)):
    _get_or_404(db, department_id)
    parties = (
        db.query(User)
        .filter(User.role == ROLE_PARTY, User.is_active.is_(True), User.department_id == department_id)
        .order_by(User.name.asc())
        .all()
    )
    return [p.to_dict() for p in parties]


@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_department(payload: DepartmentIn, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(400, "Department name is required")
    if db.query(Department).filter(Department.name == name).first():
        raise HTTPException(400, DUPLICATE_NAME)
    _check_party(db, payload.assigned_party_id)

    d = Department(
        name=name,
        description=(payload.description or "").strip() or None,
        assigned_party_id=payload.assigned_party_id,
    )
    db.add(d)
    commit_unique(db, DUPLICATE_NAME)
    db.refresh(d)
    return d.to_dict()


@router.put("/{department_id}", dependencies=[Depends(require_superadmin)])
def update_department(department_id: int, payload: DepartmentIn, db: Session = Depends(get_db)):
    d = _get_or_404(db, department_id)
    data = payload.model_dump(exclude_unset=True)

    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(400, "Department name is required")
    if db.query(Department).filter(Department.name == name, Department.id != d.id).first():
        raise HTTPException(400, DUPLICATE_NAME)

    d.name = name
    if "description" in data:
        d.description = (data["description"] or "").strip() or None
    if "assigned_party_id" in data:
        _check_party(db, data["assigned_party_id"])
        d.assigned_party_id = data["assigned_party_id"]

    commit_unique(db, DUPLICATE_NAME)
    db.refresh(d)
    return d.to_dict()


@router.delete("/{department_id}", dependencies=[Depends(require_superadmin)])
def delete_department(department_id: int, db: Session = Depends(get_db)):
    d = _get_or_404(db, department_id)
    assert_no_dependents(
        db, parent="department", child="category(ies)", children="categories",
        fk_column=IssueCategory.department_id, parent_id=d.id,
    )
    assert_no_dependents(
        db, parent="department", child="ticket(s)", children="tickets",
        fk_column=Ticket.department_id, parent_id=d.id,
    )
    db.query(User).filter(User.department_id == d.id).update(
        {User.department_id: None}, synchronize_session=False
    )
    db.delete(d)
    db.commit()
    return {"message": "Department deleted successfully"}
