# app/models/ticket.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.utils.datetime import utcnow, iso

# ---- status / priority / approval vocab ----
STATUS_ISSUED = "Issued"
STATUS_SEEN = "Seen"
STATUS_IN_PROGRESS = "In Progress"
STATUS_RESOLVED = "Resolved"
STATUS_DENOUNCED = "Denounced"
TICKET_STATUSES = (STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS, STATUS_RESOLVED, STATUS_DENOUNCED)
OPEN_STATUSES = (STATUS_ISSUED, STATUS_SEEN, STATUS_IN_PROGRESS)
CLOSED_STATUSES = (STATUS_RESOLVED, STATUS_DENOUNCED)

PRIORITIES = ("Low", "Medium", "High", "Critical")

APPROVAL_NONE = "none"
APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"


def _brief(obj):
    return obj.brief() if obj is not None else None


# ================= Ticket =================
class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_number = Column(String(16), unique=True, nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=STATUS_ISSUED, index=True)
    priority = Column(String(20), nullable=False, default="Medium")

    category_id = Column(Integer, ForeignKey("issue_categories.id"), nullable=False, index=True)
    submitted_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)

    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # approval sub-workflow
    approval_status = Column(String(16), nullable=False, default=APPROVAL_NONE, index=True)
    approval_admin_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    approval_requested_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_requested_at = Column(DateTime, nullable=True)
    approval_reviewed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approval_reviewed_at = Column(DateTime, nullable=True)
    approval_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    category = relationship("IssueCategory")
    department = relationship("Department")
    submitted_by = relationship("User", foreign_keys=[submitted_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    approval_admin = relationship("User", foreign_keys=[approval_admin_id])
    approval_requested_by = relationship("User", foreign_keys=[approval_requested_by_id])
    approval_reviewed_by = relationship("User", foreign_keys=[approval_reviewed_by_id])

    messages = relationship(
        "TicketMessage",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketMessage.id",
    )

    def to_dict(self, with_messages: bool = True) -> dict:
        data = {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "category": _brief(self.category),
            "department": _brief(self.department),
            "submitted_by": _brief(self.submitted_by),
            "assigned_to": _brief(self.assigned_to),
            "resolution": self.resolution,
            "resolved_at": iso(self.resolved_at),
            "approval": {
                "status": self.approval_status,
                "admin": _brief(self.approval_admin),
                "requested_by": _brief(self.approval_requested_by),
                "requested_at": iso(self.approval_requested_at),
                "reviewed_by": _brief(self.approval_reviewed_by),
                "reviewed_at": iso(self.approval_reviewed_at),
                "notes": self.approval_notes,
            },
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if with_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data


# ================= TicketMessage =================
class TicketMessage(Base):
    __tablename__ = "ticket_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    ticket = relationship("Ticket", back_populates="messages")
    sender = relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender": _brief(self.sender),
            "message": self.message,
            "created_at": iso(self.created_at),
        }


# ================= Counter =================
class Counter(Base):
    """Named integer sequence, e.g. ``tickets:20250101``."""

    __tablename__ = "counters"

    key = Column(String(64), primary_key=True)
    seq = Column(Integer, nullable=False, default=0)
