# app/services/policy.py
"""Role and ownership decisions. Routers ask here instead of comparing ids inline."""
from __future__ import annotations

from typing import Optional

from app.core.config import settings
from app.models.academic import Course
from app.models.medical import MedicalSubmission
from app.models.resit import ResitForm
from app.models.ticket import Ticket, APPROVAL_PENDING, CLOSED_STATUSES
from app.models.user import User


def is_admin_party(user: User) -> bool:
    return user.is_party and bool(user.is_admin)


# ---------------- medical ----------------
def is_exam_department_member(user: User) -> bool:
    dept = user.department
    return dept is not None and dept.name in settings.exam_department_names


def can_review_medical(user: User) -> bool:
    return user.is_superadmin or is_exam_department_member(user)


def can_view_medical(user: User, submission: MedicalSubmission) -> bool:
    return submission.student_id == user.id or can_review_medical(user)


def can_download_document(user: User, submission: MedicalSubmission) -> bool:
    """Students reach only their own files; staff reach any."""
    if user.is_student:
        return submission.student_id == user.id
    return True


# ---------------- tickets ----------------
def can_view_ticket(user: User, ticket: Ticket) -> bool:
    return (
        user.is_superadmin
        or ticket.submitted_by_id == user.id
        or (ticket.assigned_to_id is not None and ticket.assigned_to_id == user.id)
    )


def can_message_ticket(user: User, ticket: Ticket) -> bool:
    return can_view_ticket(user, ticket)


def can_act_on_ticket(user: User, ticket: Ticket) -> bool:
    """Status updates and reassignment belong to the current assignee."""
    return user.is_party and ticket.assigned_to_id is not None and ticket.assigned_to_id == user.id


def can_request_approval(user: User, ticket: Ticket) -> bool:
    return can_act_on_ticket(user, ticket) or is_admin_party(user)


def can_be_approval_admin(user: Optional[User]) -> bool:
    return user is not None and bool(user.is_active) and is_admin_party(user)


def can_review_approval(user: User, ticket: Ticket) -> bool:
    return (
        is_admin_party(user)
        and ticket.approval_status == APPROVAL_PENDING
        and ticket.approval_admin_id == user.id
    )


def is_ticket_closed(ticket: Ticket) -> bool:
    return ticket.status in CLOSED_STATUSES


# ---------------- courses / resit ----------------
def is_course_director_for(user: User, course: Optional[Course]) -> bool:
    return course is not None and course.course_director_id == user.id


def can_review_resit(user: User, form: ResitForm) -> bool:
    return user.is_superadmin or is_course_director_for(user, form.course)


def can_view_resit(user: User, form: ResitForm) -> bool:
    return form.student_id == user.id or can_review_resit(user, form)
