from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso

ROLE_SUPERADMIN = "superadmin"
ROLE_STUDENT = "student"
ROLE_PARTY = "party"
VALID_ROLES = {ROLE_SUPERADMIN, ROLE_STUDENT, ROLE_PARTY}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)

    password_hash = Column(String(255), nullable=False)

    role = Column(String(20), nullable=False, default=ROLE_STUDENT)
    # only meaningful for role=party
    is_admin = Column(Boolean, nullable=False, default=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    department = relationship("Department", foreign_keys=[department_id])

    @property
    def is_party(self) -> bool:
        return self.role == ROLE_PARTY

    @property
    def is_superadmin(self) -> bool:
        return self.role == ROLE_SUPERADMIN

    @property
    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_admin": bool(self.is_admin),
            "is_active": bool(self.is_active),
            "department": self.department.brief() if self.department else None,
            "last_login_at": iso(self.last_login_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
