"""
Workflow API endpoints for the minutes lifecycle.

The five transitions (add, remove, finalize, unfinalize, remove series)
are exposed as remote-callable procedures. Each endpoint waits for the
coordinator's future, so write failures surface as structured errors.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from minutesflow.core.deps import get_current_user, get_current_user_optional, get_workflow, parse_uuid
from minutesflow.core.exceptions import NotAuthorizedError
from minutesflow.models.user import User
from minutesflow.schemas.workflow import (
    AffectedOut,
    FinalizeRequest,
    MeetingSeriesOut,
    MinutesCreate,
    MinutesCreated,
    MinutesOut,
)
from minutesflow.services.entities import MeetingSeries, Minutes
from minutesflow.services.user_roles import UserRoles
from minutesflow.services.workflow import WorkflowCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow", tags=["workflow"])


def _minutes_to_out(minutes: Minutes) -> MinutesOut:
    return MinutesOut(
        id=minutes.id,
        meeting_series_id=minutes.meeting_series_id,
        date=minutes.date,
        topics=minutes.topics,
        participants=minutes.participants,
        is_finalized=minutes.is_finalized,
        is_unfinalized=minutes.is_unfinalized,
        status=minutes.status,
        finalized_at=minutes.finalized_at,
        finalized_by=minutes.finalized_by,
    )


def _series_to_out(series: MeetingSeries) -> MeetingSeriesOut:
    return MeetingSeriesOut(
        id=series.id,
        project=series.project,
        name=series.name,
        minutes=series.minutes,
        topics=series.topics,
        open_topics=series.open_topics,
    )


def _check_invited(workflow: WorkflowCoordinator, user: User, meeting_series_id: str) -> None:
    roles = UserRoles(workflow.session_factory, user.id)
    if not roles.is_invited_to(meeting_series_id):
        raise NotAuthorizedError("この会議シリーズへのアクセス権がありません")


@router.post("/minutes", response_model=MinutesCreated, status_code=status.HTTP_201_CREATED)
def add_minutes(
    data: MinutesCreate,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """
    Create a new Draft minutes in a meeting series.

    Fails with not-allowed if the previous minutes is not finalized or if
    the date is not after the last finalized minutes.
    """
    new_id = workflow.add_minutes(current_user, data.to_document()).result()
    return MinutesCreated(id=new_id)


@router.delete("/minutes/{minutes_id}", response_model=AffectedOut)
def remove_minutes(
    minutes_id: str,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """
    Remove a minutes that is not finalized.

    Finalized or unknown minutes are left untouched (affected = 0).
    """
    affected = workflow.remove_minutes(current_user, minutes_id).result()
    return AffectedOut(affected=affected)


@router.post("/minutes/{minutes_id}/finalize", status_code=status.HTTP_204_NO_CONTENT)
def finalize_minutes(
    minutes_id: str,
    data: Optional[FinalizeRequest] = None,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """
    Finalize the last minutes of a meeting series and notify participants.
    """
    data = data or FinalizeRequest()
    workflow.finalize_minutes(
        current_user, minutes_id, data.send_action_items, data.send_info_items
    ).result()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/minutes/{minutes_id}/unfinalize", status_code=status.HTTP_204_NO_CONTENT)
def unfinalize_minutes(
    minutes_id: str,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """
    Reopen the most recently finalized minutes of a meeting series.
    """
    workflow.unfinalize_minutes(current_user, minutes_id).result()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/meeting-series/{meeting_series_id}", response_model=AffectedOut)
def remove_meeting_series(
    meeting_series_id: str,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """
    Remove a meeting series together with all of its minutes.
    """
    affected = workflow.remove_meeting_series(current_user, meeting_series_id).result()
    return AffectedOut(affected=affected)


@router.get("/minutes/{minutes_id}", response_model=MinutesOut)
def get_minutes(
    minutes_id: str,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: User = Depends(get_current_user),
):
    """Get a minutes document."""
    minutes = workflow.store.load_minutes(parse_uuid(minutes_id, "議事録ID"))
    _check_invited(workflow, current_user, minutes.meeting_series_id)
    return _minutes_to_out(minutes)


@router.get("/meeting-series/{meeting_series_id}", response_model=MeetingSeriesOut)
def get_meeting_series(
    meeting_series_id: str,
    workflow: WorkflowCoordinator = Depends(get_workflow),
    current_user: User = Depends(get_current_user),
):
    """Get a meeting series with its ordered minutes ids and topics."""
    series = workflow.store.load_series(parse_uuid(meeting_series_id, "会議シリーズID"))
    _check_invited(workflow, current_user, series.id)
    return _series_to_out(series)
