import uuid
from sqlalchemy import Column, String, DateTime, JSON, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from minutesflow.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    # First address is used as the sender of finalize mails
    emails = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    series_roles = relationship(
        "SeriesRole",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def primary_email(self):
        return self.emails[0] if self.emails else None
