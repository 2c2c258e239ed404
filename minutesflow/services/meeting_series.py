"""
Meeting series administration helpers.

Series are created outside the minutes workflow; this helper seeds a
series together with its moderator.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from minutesflow.models.meeting_series import MeetingSeriesModel
from minutesflow.models.series_role import SeriesRole
from minutesflow.models.user import User
from minutesflow.services.user_roles import set_role

logger = logging.getLogger(__name__)


def create_meeting_series(
    db: Session,
    name: str,
    moderator: User,
    project: str = "",
    invited: Optional[List[User]] = None,
) -> MeetingSeriesModel:
    """
    Create an empty meeting series.

    Args:
        db: Database session
        name: Series name
        moderator: User granted the moderator role
        project: Project the series belongs to
        invited: Users granted the invited role

    Returns:
        Created MeetingSeriesModel
    """
    series = MeetingSeriesModel(
        name=name,
        project=project,
        minutes=[],
        topics=[],
        open_topics=[],
    )
    db.add(series)
    db.commit()
    db.refresh(series)

    set_role(db, moderator.id, series.id, SeriesRole.MODERATOR)
    for user in invited or []:
        set_role(db, user.id, series.id, SeriesRole.INVITED)

    logger.info(f"Meeting series created: {series.name} ({series.id})")
    return series
