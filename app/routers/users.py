# app/routers/users.py
from collections import OrderedDict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.db.session import get_db
from app.models.academic import Course
from app.models.department import Department
from app.models.medical import MedicalSubmission
from app.models.resit import ResitForm
from app.models.ticket import Ticket, TicketMessage
from app.models.user import User, VALID_ROLES, ROLE_PARTY, ROLE_SUPERADMIN
from app.routers.auth import require_user, require_roles, require_superadmin
from app.schemas.user import UserCreate, UserUpdate, ProfileUpdate
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/users", tags=["Users"])

DUPLICATE_EMAIL = "User with this email already exists"

# (label, plural, columns) for every table that keeps a user reference
_USER_REFERENCES = (
    ("ticket(s)", "tickets", (
        Ticket.submitted_by_id, Ticket.assigned_to_id, Ticket.approval_admin_id,
        Ticket.approval_requested_by_id, Ticket.approval_reviewed_by_id,
    )),
    ("ticket message(s)", "ticket messages", (TicketMessage.sender_id,)),
    ("course(s)", "courses", (Course.course_director_id,)),
    ("medical submission(s)", "medical submissions",
     (MedicalSubmission.student_id, MedicalSubmission.reviewed_by_id)),
    ("resit form(s)", "resit forms", (ResitForm.student_id, ResitForm.course_director_id)),
)


def _get_user_or_404(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(404, "User not found")
    return u


def _check_role_and_department(db: Session, role: str, is_admin: bool, department_id: Optional[int]):
    if role not in VALID_ROLES:
        raise HTTPException(400, f"Invalid role. Valid roles: {', '.join(sorted(VALID_ROLES))}")
    if role == ROLE_PARTY and not is_admin and not department_id:
        raise HTTPException(400, "Department is required for party users")
    if department_id is not None and not db.get(Department, department_id):
        raise HTTPException(400, "Invalid department")


def _active_parties(db: Session):
    return db.query(User).filter(User.role == ROLE_PARTY, User.is_active.is_(True))


# ===================== LIST =====================
@router.get("", dependencies=[Depends(require_superadmin)])
def list_users(
    db: Session = Depends(get_db),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    department: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    q = db.query(User)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(User.name.ilike(like), User.email.ilike(like)))
    if role:
        q = q.filter(User.role == role)
    if department is not None:
        q = q.filter(User.department_id == department)
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))
    return [u.to_dict() for u in q.order_by(User.created_at.desc()).all()]


@router.get("/profile")
def get_profile(me: User = Depends(require_user)):
    return me.to_dict()


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    me: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if payload.email and payload.email != me.email:
        if db.query(User).filter(User.email == payload.email, User.id != me.id).first():
            raise HTTPException(400, DUPLICATE_EMAIL)
        me.email = payload.email
    if payload.name:
        me.name = payload.name
    if payload.new_password:
        if not verify_password(payload.current_password or "", me.password_hash):
            raise HTTPException(400, "Current password is incorrect")
        me.password_hash = hash_password(payload.new_password)
    commit_unique(db, DUPLICATE_EMAIL)
    db.refresh(me)
    return me.to_dict()


@router.get("/role/{role}", dependencies=[Depends(require_superadmin)])
def list_by_role(role: str, db: Session = Depends(get_db)):
    users = db.query(User).filter(User.role == role).order_by(User.name.asc()).all()
    return [u.to_dict() for u in users]


@router.get("/admins", dependencies=[Depends(require_roles("party", "superadmin"))])
def list_admins(db: Session = Depends(get_db)):
    users = _active_parties(db).filter(User.is_admin.is_(True)).order_by(User.name.asc()).all()
    return [u.to_dict() for u in users]


@router.get("/course-directors", dependencies=[Depends(require_superadmin)])
def list_course_directors(db: Session = Depends(get_db)):
    return [u.to_dict() for u in _active_parties(db).order_by(User.name.asc()).all()]


@router.get("/available-parties", dependencies=[Depends(require_user)])
def available_parties(
    db: Session = Depends(get_db),
    department: Optional[int] = Query(None),
):
    q = _active_parties(db)
    if department is not None:
        q = q.filter(User.department_id == department)
    return [u.to_dict() for u in q.order_by(User.name.asc()).all()]


@router.get("/parties-with-departments", dependencies=[Depends(require_user)])
def parties_with_departments(db: Session = Depends(get_db)):
    groups: "OrderedDict[str, dict]" = OrderedDict()
    for u in _active_parties(db).order_by(User.department_id.asc(), User.name.asc()).all():
        key = str(u.department_id or "none")
        if key not in groups:
            groups[key] = {
                "department": u.department.brief() if u.department else None,
                "parties": [],
            }
        groups[key]["parties"].append(u.brief())
    return list(groups.values())


@router.get("/department/{department_id}", dependencies=[Depends(require_superadmin)])
def list_by_department(department_id: int, db: Session = Depends(get_db)):
    if not db.get(Department, department_id):
        raise HTTPException(400, "Invalid department ID")
    users = db.query(User).filter(User.department_id == department_id).order_by(User.name.asc()).all()
    return [u.to_dict() for u in users]


# ===================== DETAIL =====================
@router.get("/{user_id}")
def get_user(user_id: int, me: User = Depends(require_user), db: Session = Depends(get_db)):
    if me.id != user_id and me.role != ROLE_SUPERADMIN:
        raise HTTPException(403, "Access denied. You can only view your own profile.")
    return _get_user_or_404(db, user_id).to_dict()


# ===================== CREATE / UPDATE / DELETE =====================
@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(400, DUPLICATE_EMAIL)
    _check_role_and_department(db, payload.role, payload.is_admin, payload.department_id)

    u = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        is_admin=bool(payload.is_admin) if payload.role == ROLE_PARTY else False,
        department_id=payload.department_id,
        is_active=payload.is_active,
    )
    db.add(u)
    commit_unique(db, DUPLICATE_EMAIL)
    db.refresh(u)
    return u.to_dict()


@router.put("/{user_id}", dependencies=[Depends(require_superadmin)])
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    u = _get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    role = data.get("role", u.role)
    is_admin = data.get("is_admin", u.is_admin)
    department_id = data.get("department_id", u.department_id)
    _check_role_and_department(db, role, bool(is_admin), department_id)

    email = data.get("email")
    if email and email != u.email:
        if db.query(User).filter(User.email == email, User.id != u.id).first():
            raise HTTPException(400, DUPLICATE_EMAIL)
        u.email = email
    if data.get("name"):
        u.name = data["name"]
    if data.get("password"):
        u.password_hash = hash_password(data["password"])
    if "is_active" in data and data["is_active"] is not None:
        u.is_active = data["is_active"]
    u.role = role
    u.is_admin = bool(is_admin) if role == ROLE_PARTY else False
    u.department_id = department_id

    commit_unique(db, DUPLICATE_EMAIL)
    db.refresh(u)
    return u.to_dict()


@router.patch("/{user_id}/toggle-active")
def toggle_active(user_id: int, me: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    u = _get_user_or_404(db, user_id)
    if u.id == me.id:
        raise HTTPException(400, "You cannot deactivate your own account")
    u.is_active = not bool(u.is_active)
    db.commit()
    db.refresh(u)
    return u.to_dict()


@router.delete("/{user_id}")
def delete_user(user_id: int, me: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    u = _get_user_or_404(db, user_id)
    if u.id == me.id:
        raise HTTPException(400, "You cannot delete your own account")
    for child, children, columns in _USER_REFERENCES:
        assert_no_dependents(
            db, parent="user", child=child, children=children, fk_column=columns, parent_id=u.id
        )
    # departments pointing at this user as default party fall back to load balancing
    db.query(Department).filter(Department.assigned_party_id == u.id).update(
        {Department.assigned_party_id: None}, synchronize_session=False
    )
    db.delete(u)
    db.commit()
    return {"message": "User deleted successfully"}
