"""
Celery configuration settings.

This module provides configuration values for Celery workers,
including queue definitions, timeouts, and retry settings.
"""

import smtplib

from minutesflow.core.config import settings


class CeleryConfig:
    """Celery configuration class."""

    # Broker and backend URLs
    broker_url = settings.CELERY_BROKER_URL
    result_backend = settings.CELERY_RESULT_BACKEND

    # Serialization
    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # Timezone
    timezone = "UTC"
    enable_utc = True

    # A finalize mail run is short; a stuck SMTP session is killed
    task_track_started = True
    task_time_limit = 300
    task_soft_time_limit = 240

    # Result settings
    result_expires = 86400  # 24 hours

    # Task routing
    task_routes = {
        "minutesflow.celery_app.tasks.mail.*": {"queue": "mail"},
    }

    # Default queue
    task_default_queue = "default"

    # A mail task lost with its worker is delivered again
    task_acks_late = True
    task_reject_on_worker_lost = True


# Retry policy of the finalize mail task
MAIL_RETRY_POLICY = {
    "max_retries": 3,
    "retry_backoff": True,
    "retry_backoff_max": 600,  # 10 minutes between retries at most
    "retry_jitter": True,
}

# SMTP and broker hiccups worth another attempt
RETRYABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
)
