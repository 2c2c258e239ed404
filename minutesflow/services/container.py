"""
Construction of the workflow coordinator and its collaborators.

Collection adapters are built once at application start and injected into
the coordinator; nothing here keeps module-level state.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from minutesflow.core.config import Settings, settings as default_settings
from minutesflow.models.meeting_series import MeetingSeriesModel
from minutesflow.models.minutes import MinutesModel
from minutesflow.services.collection import DocumentCollection, create_executor
from minutesflow.services.notification import FinalizeNotifier
from minutesflow.services.workflow import WorkflowCoordinator

logger = logging.getLogger(__name__)


def build_workflow(
    session_factory: Callable[[], Session],
    settings: Optional[Settings] = None,
    executor=None,
) -> WorkflowCoordinator:
    """
    Build a WorkflowCoordinator for the configured execution mode.

    Args:
        session_factory: Factory for new database sessions
        settings: Application settings (defaults to the global settings)
        executor: Explicit executor, overriding WORKFLOW_EXECUTION_MODE
    """
    settings = settings or default_settings
    if executor is None:
        executor = create_executor(
            settings.WORKFLOW_EXECUTION_MODE, settings.DEFERRED_MAX_WORKERS
        )

    logger.info(f"Building workflow coordinator in {executor.mode} mode")
    return WorkflowCoordinator(
        minutes=DocumentCollection(MinutesModel, session_factory, executor),
        meeting_series=DocumentCollection(MeetingSeriesModel, session_factory, executor),
        session_factory=session_factory,
        notifier=FinalizeNotifier(settings),
    )
