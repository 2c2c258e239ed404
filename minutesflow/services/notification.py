"""
Notification trigger for finalized minutes.

Submits mail delivery as a detached Celery task. Nothing raised here may
reach the finalize caller: failures are logged and dropped.
"""
import logging
from typing import List, Optional

from minutesflow.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def resolve_sender_address(emails: Optional[List[str]], settings: Settings) -> str:
    """First email of the finalizing user, else the configured default."""
    if emails:
        return emails[0]
    return settings.get_default_email_sender_address()


class FinalizeNotifier:
    """Best-effort trigger for the finalize mails."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def notify(
        self,
        minutes_id: str,
        user_emails: Optional[List[str]],
        send_action_items: bool,
        send_info_items: bool,
    ) -> Optional[str]:
        """
        Enqueue the finalize mails.

        Returns:
            Celery task id, or None when delivery is disabled or enqueueing failed
        """
        if not self.settings.is_email_delivery_enabled():
            logger.info(
                "Skip sending mails because email delivery is not enabled. "
                "To enable email delivery set ENABLE_MAIL_DELIVERY=true."
            )
            return None

        try:
            sender = resolve_sender_address(user_emails, self.settings)
            from minutesflow.celery_app.tasks.mail import send_finalize_mails_task

            # Publish once; the finalize future resolves only after this returns
            result = send_finalize_mails_task.apply_async(
                args=[str(minutes_id), sender, bool(send_action_items), bool(send_info_items)],
                retry=False,
            )
            logger.info(f"Finalize mails enqueued: {minutes_id}, celery_task_id={result.id}")
            return result.id
        except Exception:
            logger.exception(f"Failed to enqueue finalize mails for minutes {minutes_id}")
            return None
