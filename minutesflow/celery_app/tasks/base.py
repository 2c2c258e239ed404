"""
Base task class for tasks that read the minutes database.
"""

import logging
from typing import Callable, Optional

from celery import Task
from sqlalchemy.orm import Session

from minutesflow.db.session import SessionLocal

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """
    Task holding one database session per run.

    The session is opened on first use of ``self.db`` and closed in
    ``after_return`` whatever the outcome.
    """

    abstract = True
    session_factory: Callable[[], Session] = SessionLocal
    _db_session: Optional[Session] = None

    @property
    def db(self) -> Session:
        if self._db_session is None:
            self._db_session = self.session_factory()
        return self._db_session

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        minutes_id = args[0] if args else kwargs.get("minutes_id")
        logger.error(f"Task {self.name} failed for minutes {minutes_id}: {exc}")

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        if self._db_session is not None:
            self._db_session.close()
            self._db_session = None
