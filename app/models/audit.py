# app/models/audit.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, Text, Float

from app.db.base import Base
from app.utils.datetime import utcnow, iso

LOG_LEVELS = ("info", "warn", "error", "debug")
LOG_CATEGORIES = ("auth", "ticket", "medical", "resit", "system", "security", "performance")


class Log(Base):
    """Append-only audit record."""

    __tablename__ = "logs"

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    level = Column(String(8), nullable=False, default="info", index=True)
    category = Column(String(16), nullable=False, default="system", index=True)
    action = Column(String(64), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # actor snapshot
    user_id = Column(Integer, nullable=True, index=True)
    user_role = Column(String(20), nullable=True)
    user_email = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    # request snapshot
    request_method = Column(String(8), nullable=True)
    request_url = Column(String(512), nullable=True)
    request_body = Column(Text, nullable=True)
    response_status = Column(Integer, nullable=True)
    response_time = Column(Float, nullable=True)  # ms
    correlation_id = Column(String(64), nullable=True)

    error_message = Column(Text, nullable=True)
    error_stack = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    signature = Column(String(128), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "timestamp": iso(self.timestamp),
            "level": self.level,
            "category": self.category,
            "action": self.action,
            "description": self.description,
            "user_id": self.user_id,
            "user_role": self.user_role,
            "user_email": self.user_email,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "request_method": self.request_method,
            "request_url": self.request_url,
            "request_body": self.request_body,
            "response_status": self.response_status,
            "response_time": self.response_time,
            "correlation_id": self.correlation_id,
            "error_message": self.error_message,
            "error_stack": self.error_stack,
            "metadata": self.meta,
        }
