"""Meeting series model: the ordered parent of a chronological list of minutes."""

import uuid

from sqlalchemy import Column, DateTime, JSON, String, Uuid
from sqlalchemy.sql import func

from minutesflow.db.base import Base


class MeetingSeriesModel(Base):
    __tablename__ = "meeting_series"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project = Column(String(255), nullable=False, default="")
    name = Column(String(255), nullable=False)
    # Minutes ids (as strings) in insertion order, which is chronological order
    minutes = Column(JSON, nullable=False, default=list)
    # Aggregated topic state, synchronized on finalize/unfinalize only
    topics = Column(JSON, nullable=False, default=list)
    open_topics = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
