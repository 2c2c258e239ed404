"""
Celery application initialization.

This module creates and configures the Celery app instance and sets up
task autodiscovery.
"""

import logging
from celery import Celery

from minutesflow.celery_app.config import CeleryConfig

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery("minutesflow")

# Load configuration
celery_app.config_from_object(CeleryConfig)

# Auto-discover tasks in the tasks package
celery_app.autodiscover_tasks(
    [
        "minutesflow.celery_app.tasks",
    ],
    force=True,
)
