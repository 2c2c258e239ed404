"""
Health check endpoint.
"""
from fastapi import APIRouter, Request

from minutesflow.core.config import settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check(request: Request):
    """
    Basic health check endpoint.

    Returns:
        Status message including the workflow execution mode
    """
    workflow = getattr(request.app.state, "workflow", None)
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
        "execution_mode": workflow.minutes.execution_mode if workflow else None,
    }
