"""
Caller identity: bcrypt passwords, JWT bearer tokens and user lookups.

The workflow never sees tokens; it receives the resolved ``User`` (or
None for an anonymous caller) and decides itself how to treat it.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from minutesflow.core.config import settings
from minutesflow.models.user import User
from minutesflow.schemas.auth import TokenData

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a bearer token identifying ``user``.

    The subject is the user id; the username travels along for logging.
    """
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user.id),
        "username": user.username,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Return the token's claims, or None if it is invalid, expired or has no subject."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if claims.get("sub") is None:
        return None
    return TokenData(user_id=claims["sub"], username=claims.get("username"))


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)


def get_users_by_ids(db: Session, user_ids: Iterable[UUID]) -> List[User]:
    """All users whose id is in ``user_ids``; unknown ids are skipped."""
    user_ids = list(user_ids)
    if not user_ids:
        return []
    return list(db.execute(select(User).where(User.id.in_(user_ids))).scalars())


def create_user(
    db: Session,
    username: str,
    password: str,
    display_name: str,
    emails: Optional[List[str]] = None,
) -> User:
    """
    Create a user.

    Args:
        db: Database session
        username: Unique login name
        password: Plain text password, stored as bcrypt hash
        display_name: Name shown in mails and the UI
        emails: Addresses; the first one is the sender of finalize mails
    """
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        display_name=display_name,
        emails=list(emails or []),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
