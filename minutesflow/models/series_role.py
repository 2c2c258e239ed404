"""Per-series role of a user (moderator or invited)."""

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from minutesflow.db.base import Base


class SeriesRole(Base):
    __tablename__ = "meeting_series_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "meeting_series_id", name="uq_series_role_user_series"),
    )

    MODERATOR = "moderator"
    INVITED = "invited"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    meeting_series_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=INVITED)

    user = relationship("User", back_populates="series_roles")
