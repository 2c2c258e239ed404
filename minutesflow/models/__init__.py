from minutesflow.db.base import Base  # noqa: F401

from .user import User  # noqa: F401
from .series_role import SeriesRole  # noqa: F401
from .meeting_series import MeetingSeriesModel  # noqa: F401
from .minutes import MinutesModel  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
