# app/models/resit.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso
from app.models.medical import REVIEW_PENDING

EXAM_TYPES = ("Coursework", "Exam")


class ResitForm(Base):
    __tablename__ = "resit_forms"

    id = Column(Integer, primary_key=True, autoincrement=True)

    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=False, index=True)

    exam_type = Column(String(16), nullable=False)
    # ISO dates, 1 to 3 entries
    past_exam_dates = Column(JSON, nullable=False, default=list)
    phone_number = Column(String(10), nullable=False)

    is_medical = Column(Boolean, nullable=False, default=False)
    medical_submission_id = Column(Integer, ForeignKey("medical_submissions.id"), nullable=True)
    # copy of MedicalSubmission.reference_id
    medical_submission_ref = Column(String(16), nullable=True)

    status = Column(String(16), nullable=False, default=REVIEW_PENDING, index=True)
    course_director_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    student = relationship("User", foreign_keys=[student_id])
    course = relationship("Course")
    batch = relationship("Batch")
    module = relationship("Module")
    medical_submission = relationship("MedicalSubmission")
    course_director = relationship("User", foreign_keys=[course_director_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "student": self.student.brief() if self.student else None,
            "course": self.course.brief() if self.course else None,
            "batch": self.batch.brief() if self.batch else None,
            "module": self.module.brief() if self.module else None,
            "exam_type": self.exam_type,
            "past_exam_dates": list(self.past_exam_dates or []),
            "phone_number": self.phone_number,
            "is_medical": bool(self.is_medical),
            "medical_submission": self.medical_submission.brief() if self.medical_submission else None,
            "medical_submission_ref": self.medical_submission_ref,
            "status": self.status,
            "course_director": self.course_director.brief() if self.course_director else None,
            "reviewed_at": iso(self.reviewed_at),
            "review_notes": self.review_notes,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
