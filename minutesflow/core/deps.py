"""
Common dependencies for FastAPI endpoints.
"""
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from minutesflow.core.exceptions import InvalidArgumentError, NotAuthenticatedError
from minutesflow.db.session import SessionLocal
from minutesflow.models.user import User
from minutesflow.services.auth import decode_access_token, get_user_by_id
from minutesflow.services.workflow import WorkflowCoordinator


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_workflow(request: Request) -> WorkflowCoordinator:
    """The coordinator built at application start."""
    return request.app.state.workflow


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(
        HTTPBearer(auto_error=False)
    ),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """
    Optionally get the current authenticated user.

    Returns None if no valid token is provided instead of raising an exception.
    Workflow operations decide themselves how to treat an anonymous caller.
    """
    if credentials is None:
        return None

    token_data = decode_access_token(credentials.credentials)
    if token_data is None or token_data.user_id is None:
        return None

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        return None

    return get_user_by_id(db, user_id)


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Get the current authenticated user, raising NotAuthenticatedError if absent."""
    if user is None:
        raise NotAuthenticatedError("認証情報が無効です")
    return user


def parse_uuid(value: str, label: str = "ID") -> UUID:
    """Parse a path parameter as UUID, raising InvalidArgumentError if malformed."""
    try:
        return UUID(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"無効な{label}形式です")
