# app/models/academic.py
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso


# ================= Course =================
class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), unique=True, nullable=False)
    code = Column(String(32), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    course_director_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    course_director = relationship("User")

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "course_director": self.course_director.brief() if self.course_director else None,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


# ================= Batch =================
class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (UniqueConstraint("course_id", "code", name="uq_batches_course_code"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(32), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    start_year = Column(Integer, nullable=False)
    end_year = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    course = relationship("Course")

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "course": self.course.brief() if self.course else None,
            "start_year": self.start_year,
            "end_year": self.end_year,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


# ================= Module =================
class Module(Base):
    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("batch_id", "code", name="uq_modules_batch_code"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(32), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)
    # denormalized from the batch
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    credits = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    batch = relationship("Batch")
    course = relationship("Course")

    def brief(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "batch": self.batch.brief() if self.batch else None,
            "course": self.course.brief() if self.course else None,
            "credits": self.credits,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
