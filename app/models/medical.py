# app/models/medical.py
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso

REVIEW_PENDING = "pending"
REVIEW_APPROVED = "approved"
REVIEW_REJECTED = "rejected"


# ================= MedicalSubmission =================
class MedicalSubmission(Base):
    __tablename__ = "medical_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference_id = Column(String(16), unique=True, nullable=False, index=True)

    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    medical_condition = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    status = Column(String(16), nullable=False, default=REVIEW_PENDING, index=True)
    review_notes = Column(Text, nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    student = relationship("User", foreign_keys=[student_id])
    reviewed_by = relationship("User", foreign_keys=[reviewed_by_id])
    documents = relationship(
        "MedicalDocument",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="MedicalDocument.position",
    )

    def brief(self) -> dict:
        return {"id": self.id, "reference_id": self.reference_id, "status": self.status}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_id": self.reference_id,
            "student": self.student.brief() if self.student else None,
            "medical_condition": self.medical_condition,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "documents": [d.to_dict() for d in self.documents],
            "status": self.status,
            "review_notes": self.review_notes,
            "reviewed_by": self.reviewed_by.brief() if self.reviewed_by else None,
            "reviewed_at": iso(self.reviewed_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


# ================= MedicalDocument =================
class MedicalDocument(Base):
    __tablename__ = "medical_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        Integer, ForeignKey("medical_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)

    filename = Column(String(255), unique=True, nullable=False)  # stored name
    original_name = Column(String(255), nullable=False)
    path = Column(String(512), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow)

    submission = relationship("MedicalSubmission", back_populates="documents")

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "original_name": self.original_name,
            "path": self.path,
            "uploaded_at": iso(self.uploaded_at),
        }
