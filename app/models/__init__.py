# Aggregator: allows "from app.models import Ticket, User, ..."

from app.db.base import Base

from .user import User
from .department import Department, IssueCategory
from .academic import Course, Batch, Module
from .ticket import Ticket, TicketMessage, Counter
from .medical import MedicalSubmission, MedicalDocument
from .resit import ResitForm
from .audit import Log

__all__ = [
    "Base",
    "User",
    "Department",
    "IssueCategory",
    "Course",
    "Batch",
    "Module",
    "Ticket",
    "TicketMessage",
    "Counter",
    "MedicalSubmission",
    "MedicalDocument",
    "ResitForm",
    "Log",
]
