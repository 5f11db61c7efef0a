# app/routers/categories.py
import re

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.department import Department, IssueCategory, OTHER_SLUG
from app.models.ticket import Ticket
from app.routers.auth import require_superadmin
from app.schemas.org import CategoryIn
from app.services.integrity import assert_no_dependents, commit_unique

router = APIRouter(prefix="/categories", tags=["Categories"])

DUPLICATE_CATEGORY = "Category with this name already exists"


def slugify(name: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", (name or "").lower())
    return s.strip("-")


def _get_or_404(db: Session, category_id: int) -> IssueCategory:
    c = db.get(IssueCategory, category_id)
    if not c:
        raise HTTPException(404, "Category not found")
    return c


def _check_department(db: Session, slug: str, department_id):
    if department_id is None:
        if slug != OTHER_SLUG:
            raise HTTPException(400, "name and department are required")
        return
    if not db.get(Department, department_id):
        raise HTTPException(400, "Invalid department")


# public: the ticket form needs it before login
@router.get("")
def list_active(db: Session = Depends(get_db)):
    rows = (
        db.query(IssueCategory)
        .filter(IssueCategory.is_active.is_(True))
        .order_by(IssueCategory.ordering.asc(), IssueCategory.name.asc())
        .all()
    )
    return [c.to_dict() for c in rows]


@router.get("/all", dependencies=[Depends(require_superadmin)])
def list_all(db: Session = Depends(get_db)):
    rows = db.query(IssueCategory).order_by(IssueCategory.ordering.asc(), IssueCategory.name.asc()).all()
    return [c.to_dict() for c in rows]


@router.post("", status_code=201, dependencies=[Depends(require_superadmin)])
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    name = (payload.name or "").strip()
    slug = slugify(name)
    if not name or not slug:
        raise HTTPException(400, "name and department are required")
    _check_department(db, slug, payload.department_id)

    dup = db.query(IssueCategory).filter(or_(IssueCategory.name == name, IssueCategory.slug == slug)).first()
    if dup:
        raise HTTPException(400, DUPLICATE_CATEGORY)

    c = IssueCategory(
        name=name,
        slug=slug,
        description=(payload.description or "").strip() or None,
        department_id=payload.department_id,
        is_active=True if payload.is_active is None else payload.is_active,
        ordering=payload.ordering or 0,
    )
    db.add(c)
    commit_unique(db, DUPLICATE_CATEGORY)
    db.refresh(c)
    return c.to_dict()


@router.put("/{category_id}", dependencies=[Depends(require_superadmin)])
def update_category(category_id: int, payload: CategoryIn, db: Session = Depends(get_db)):
    c = _get_or_404(db, category_id)
    data = payload.model_dump(exclude_unset=True)

    if data.get("name"):
        name = data["name"].strip()
        slug = slugify(name)
        if not slug:
            raise HTTPException(400, "Invalid category name")
        dup = (
            db.query(IssueCategory)
            .filter(or_(IssueCategory.name == name, IssueCategory.slug == slug), IssueCategory.id != c.id)
            .first()
        )
        if dup:
            raise HTTPException(400, DUPLICATE_CATEGORY)
        c.name, c.slug = name, slug
    if "department_id" in data:
        _check_department(db, c.slug, data["department_id"])
        c.department_id = data["department_id"]
    if "description" in data:
        c.description = (data["description"] or "").strip() or None
    if data.get("is_active") is not None:
        c.is_active = data["is_active"]
    if data.get("ordering") is not None:
        c.ordering = data["ordering"]

    commit_unique(db, DUPLICATE_CATEGORY)
    db.refresh(c)
    return c.to_dict()


@router.delete("/{category_id}", dependencies=[Depends(require_superadmin)])
def delete_category(category_id: int, db: Session = Depends(get_db)):
    c = _get_or_404(db, category_id)
    assert_no_dependents(
        db, parent="category", child="ticket(s)", children="tickets",
        fk_column=Ticket.category_id, parent_id=c.id,
    )
    db.delete(c)
    db.commit()
    return {"message": "Category deleted successfully"}
