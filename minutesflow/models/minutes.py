"""Minutes model for a single meeting of a meeting series."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, JSON, String, Uuid
from sqlalchemy.sql import func

from minutesflow.db.base import Base


class MinutesModel(Base):
    """Meeting minutes moving through draft / finalized / reopened."""

    __tablename__ = "minutes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Back-reference only: the series keeps the ordered id list
    meeting_series_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    date = Column(Date, nullable=False)
    topics = Column(JSON, nullable=False, default=list)
    participants = Column(JSON, nullable=False, default=list)  # [{user_id, present}]

    is_finalized = Column(Boolean, nullable=False, default=False)
    is_unfinalized = Column(Boolean, nullable=False, default=False)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    finalized_by = Column(String, nullable=True)  # username

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
