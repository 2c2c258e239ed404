"""
Audit Log model for tracking workflow transitions.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.sql import func

from minutesflow.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    action = Column(
        String, nullable=False
    )  # e.g., "add_minutes", "finalize_minutes"
    target_type = Column(String, nullable=True)  # "minutes" or "meeting_series"
    target_id = Column(String, nullable=True)  # ID of the affected resource
    details = Column(String, nullable=True)  # JSON-encoded additional details
    created_at = Column(DateTime(timezone=True), server_default=func.now())
