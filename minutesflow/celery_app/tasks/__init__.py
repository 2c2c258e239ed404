"""
Celery tasks package.

- mail: finalize mail delivery
"""

from minutesflow.celery_app.tasks.mail import send_finalize_mails_task

__all__ = [
    "send_finalize_mails_task",
]
