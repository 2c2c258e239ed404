"""
Audit logging service.

This module records workflow transitions for traceability.
"""
import logging
from typing import Callable, Optional
from uuid import UUID
import json

from sqlalchemy.orm import Session

from minutesflow.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions."""

    # Authentication
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"

    # Workflow
    ADD_MINUTES = "add_minutes"
    REMOVE_MINUTES = "remove_minutes"
    FINALIZE_MINUTES = "finalize_minutes"
    UNFINALIZE_MINUTES = "unfinalize_minutes"
    REMOVE_MEETING_SERIES = "remove_meeting_series"


class TargetType:
    """Constants for audit target types."""

    USER = "user"
    MINUTES = "minutes"
    MEETING_SERIES = "meeting_series"


def log_action(
    db: Session,
    action: str,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """
    Log an audit event.

    Args:
        db: Database session
        action: Action type (use AuditAction constants)
        user_id: User who performed the action
        target_type: Type of resource affected (use TargetType constants)
        target_id: ID of the affected resource
        details: Additional details as a dictionary

    Returns:
        Created AuditLog record
    """
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=json.dumps(details, default=str) if details else None,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def log_action_safely(
    session_factory: Callable[[], Session],
    action: str,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> None:
    """
    Log an audit event in its own session without failing the caller.

    Used after a workflow transition has committed: a failing audit write
    is logged and dropped.
    """
    try:
        with session_factory() as db:
            log_action(
                db=db,
                action=action,
                user_id=user_id,
                target_type=target_type,
                target_id=target_id,
                details=details,
            )
    except Exception as e:
        logger.warning(f"Failed to write audit log for {action}: {e}")
