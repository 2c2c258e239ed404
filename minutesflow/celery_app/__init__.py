"""
Celery application package for background task processing.

This package provides:
- Celery app configuration
- Task definitions for detached side effects (finalize mails)
"""

from minutesflow.celery_app.celery import celery_app

__all__ = ["celery_app"]
