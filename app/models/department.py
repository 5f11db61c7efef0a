from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso

OTHER_SLUG = "other"


# ================= Department =================
class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), unique=True, nullable=False)
    description = Column(Text, nullable=True)

    # users.department_id points back here, so this FK is added after both tables exist
    assigned_party_id = Column(
        Integer,
        ForeignKey("users.id", use_alter=True, name="fk_departments_assigned_party"),
        nullable=True,
    )

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    assigned_party = relationship("User", foreign_keys=[assigned_party_id], post_update=True)

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "assigned_party": self.assigned_party.brief() if self.assigned_party else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


# ================= IssueCategory =================
class IssueCategory(Base):
    __tablename__ = "issue_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), unique=True, nullable=False)
    slug = Column(String(128), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # empty for the "other" category; submitters pick the department themselves
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    ordering = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    department = relationship("Department")

    @property
    def is_other(self) -> bool:
        return self.slug == OTHER_SLUG

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "department": self.department.brief() if self.department else None,
            "is_active": bool(self.is_active),
            "ordering": self.ordering,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
