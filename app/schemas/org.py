# app/schemas/org.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


# ========= Department =========
class DepartmentIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    assigned_party_id: Optional[int] = None


# ========= IssueCategory =========
class CategoryIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    department_id: Optional[int] = None
    is_active: Optional[bool] = None
    ordering: Optional[int] = None
