# app/schemas/ticket.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

# Fields are optional on purpose: handlers answer with the exact
# messages clients already rely on instead of pydantic's generic ones.


class TicketCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    # only read for the "other" category
    department_id: Optional[int] = None
    assigned_to_id: Optional[int] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None
    resolution: Optional[str] = None


class MessageIn(BaseModel):
    message: Optional[str] = None


class AssignIn(BaseModel):
    assigned_to_id: Optional[int] = None


class PriorityIn(BaseModel):
    priority: Optional[str] = None


class ApprovalRequestIn(BaseModel):
    admin_id: Optional[int] = None
    notes: Optional[str] = None


class ApprovalReviewIn(BaseModel):
    notes: Optional[str] = None
