# app/schemas/academic.py
from __future__ import annotations

from typing import Optional, Any

from pydantic import BaseModel


class CourseIn(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    course_director_id: Optional[int] = None
    is_active: Optional[bool] = None


class BatchIn(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    course_id: Optional[int] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    is_active: Optional[bool] = None


class ModuleIn(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    batch_id: Optional[int] = None
    credits: Optional[int] = None
    is_active: Optional[bool] = None


# ========= Resit form =========
class ResitFormIn(BaseModel):
    course_id: Optional[int] = None
    batch_id: Optional[int] = None
    module_id: Optional[int] = None
    exam_type: Optional[str] = None
    # raw values: each one is parsed by the handler
    past_exam_dates: Optional[Any] = None
    phone_number: Optional[str] = None
    is_medical: bool = False
    medical_submission_id: Optional[int] = None


class ReviewIn(BaseModel):
    review_notes: Optional[str] = None
