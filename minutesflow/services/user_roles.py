"""
User roles per meeting series and the authorization gate.
"""
import logging
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from minutesflow.core.exceptions import NotAuthenticatedError, NotAuthorizedError
from minutesflow.models.series_role import SeriesRole
from minutesflow.models.user import User

logger = logging.getLogger(__name__)


def _to_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class UserRoles:
    """Role lookup for one user."""

    def __init__(self, session_factory: Callable[[], Session], user_id):
        self._session_factory = session_factory
        self.user_id = _to_uuid(user_id)

    def _role_in(self, meeting_series_id) -> Optional[str]:
        series_uuid = _to_uuid(meeting_series_id)
        if self.user_id is None or series_uuid is None:
            return None
        with self._session_factory() as session:
            return session.execute(
                select(SeriesRole.role).where(
                    SeriesRole.user_id == self.user_id,
                    SeriesRole.meeting_series_id == series_uuid,
                )
            ).scalar_one_or_none()

    def is_moderator_of(self, meeting_series_id) -> bool:
        return self._role_in(meeting_series_id) == SeriesRole.MODERATOR

    def is_invited_to(self, meeting_series_id) -> bool:
        return self._role_in(meeting_series_id) is not None


def authorize(
    session_factory: Callable[[], Session],
    user: Optional[User],
    meeting_series_id,
) -> None:
    """
    Ensure a caller is logged in and moderates the meeting series.

    Raises:
        NotAuthenticatedError: No caller identity established
        NotAuthorizedError: Caller is not a moderator of the series
    """
    if user is None:
        raise NotAuthenticatedError()

    if not UserRoles(session_factory, user.id).is_moderator_of(meeting_series_id):
        logger.info(f"User {user.id} is not moderator of series {meeting_series_id}")
        raise NotAuthorizedError()


def set_role(session: Session, user_id, meeting_series_id, role: str) -> SeriesRole:
    """Grant (or change) a user's role in a meeting series."""
    series_uuid = _to_uuid(meeting_series_id)
    existing = session.execute(
        select(SeriesRole).where(
            SeriesRole.user_id == user_id,
            SeriesRole.meeting_series_id == series_uuid,
        )
    ).scalar_one_or_none()
    if existing is None:
        existing = SeriesRole(user_id=user_id, meeting_series_id=series_uuid, role=role)
        session.add(existing)
    else:
        existing.role = role
    session.commit()
    return existing


def remove_roles_for_series(session_factory: Callable[[], Session], meeting_series_id) -> int:
    """Delete every role row of a meeting series. Returns the number removed."""
    with session_factory() as session:
        result = session.execute(
            delete(SeriesRole).where(
                SeriesRole.meeting_series_id == _to_uuid(meeting_series_id)
            )
        )
        session.commit()
        return result.rowcount
