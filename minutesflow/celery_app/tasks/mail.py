"""
Celery task delivering the mails of a finalized minutes.
"""

import logging
from typing import Dict, Iterable, Optional
from uuid import UUID

from celery import shared_task
from sqlalchemy.orm import Session

from minutesflow.celery_app.config import MAIL_RETRY_POLICY, RETRYABLE_EXCEPTIONS
from minutesflow.celery_app.tasks.base import DatabaseTask

logger = logging.getLogger(__name__)


def _email_lookup(db: Session):
    """Build a lookup mapping user ids to their first email address."""
    from minutesflow.services.auth import get_users_by_ids

    def _lookup(user_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        uuids = []
        for user_id in user_ids:
            try:
                uuids.append(UUID(str(user_id)))
            except ValueError:
                logger.warning(f"Ignoring malformed user id: {user_id}")
        return {str(user.id): user.primary_email for user in get_users_by_ids(db, uuids)}

    return _lookup


def deliver_finalize_mails(
    db: Session,
    minutes_id: str,
    sender_address: str,
    send_action_items: bool,
    send_info_items: bool,
    mailer=None,
) -> dict:
    """Load a finalized minutes and send its mails."""
    from minutesflow.models.meeting_series import MeetingSeriesModel
    from minutesflow.models.minutes import MinutesModel
    from minutesflow.services.collection import document_from_row
    from minutesflow.services.entities import MeetingSeries, Minutes
    from minutesflow.services.finalize_mail import FinalizeMailHandler
    from minutesflow.services.mailer import SmtpMailer

    row = db.get(MinutesModel, UUID(minutes_id))
    if row is None:
        logger.error(f"Minutes not found: {minutes_id}")
        return {"status": "error", "message": "Minutes not found"}

    minutes = Minutes(document_from_row(row))
    series_row = db.get(MeetingSeriesModel, row.meeting_series_id)
    series = MeetingSeries(document_from_row(series_row)) if series_row is not None else None

    handler = FinalizeMailHandler(
        minutes,
        sender_address,
        mailer or SmtpMailer(),
        _email_lookup(db),
        meeting_series=series,
    )
    sent = handler.send_mails(send_action_items, send_info_items)
    return {"status": "completed", "minutes_id": minutes_id, "sent": sent}


@shared_task(
    bind=True,
    base=DatabaseTask,
    name="minutesflow.celery_app.tasks.mail.send_finalize_mails",
    queue="mail",
    autoretry_for=RETRYABLE_EXCEPTIONS,
    **MAIL_RETRY_POLICY,
)
def send_finalize_mails_task(
    self,
    minutes_id: str,
    sender_address: str,
    send_action_items: bool,
    send_info_items: bool,
):
    """
    Send action-item and/or info-item mails of a finalized minutes.

    Args:
        minutes_id: Minutes UUID string
        sender_address: From address
        send_action_items: Send one mail per responsible with their open action items
        send_info_items: Send the full minutes to all participants
    """
    logger.info(f"Sending finalize mails: {minutes_id}")

    try:
        return deliver_finalize_mails(
            self.db, minutes_id, sender_address, send_action_items, send_info_items
        )

    except RETRYABLE_EXCEPTIONS as e:
        logger.warning(
            f"Retryable error for minutes {minutes_id}: {e}, "
            f"attempt {self.request.retries + 1}/{MAIL_RETRY_POLICY['max_retries'] + 1}"
        )
        raise

    except Exception as e:
        logger.error(f"Finalize mail delivery failed: {e}", exc_info=True)
        return {"status": "failed", "message": str(e)}
