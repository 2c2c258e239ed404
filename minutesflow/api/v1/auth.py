"""
Login and caller identity endpoints.

Workflow endpoints accept anonymous requests and let the coordinator
reject them; these endpoints are how a caller obtains a bearer token.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from minutesflow.core.config import settings
from minutesflow.core.deps import get_current_user, get_db
from minutesflow.core.exceptions import NotAuthenticatedError
from minutesflow.models.user import User
from minutesflow.schemas.auth import Token, UserLogin, UserOut, UserWithToken
from minutesflow.services.audit import AuditAction, TargetType, log_action
from minutesflow.services.auth import authenticate_user, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=str(user.id),
        username=user.username,
        display_name=user.display_name,
        emails=list(user.emails or []),
    )


@router.post("/login", response_model=UserWithToken)
def login(data: UserLogin, db: Session = Depends(get_db)):
    """
    Exchange username and password for a bearer token.

    Both outcomes are audited; a failed attempt records the username only.
    """
    user = authenticate_user(db, data.username, data.password)
    if user is None:
        log_action(
            db=db,
            action=AuditAction.LOGIN_FAILED,
            target_type=TargetType.USER,
            details={"username": data.username},
        )
        raise NotAuthenticatedError("ユーザー名またはパスワードが正しくありません")

    log_action(
        db=db,
        action=AuditAction.LOGIN,
        user_id=user.id,
        target_type=TargetType.USER,
        target_id=str(user.id),
    )
    return UserWithToken(
        user=_user_out(user),
        token=Token(
            access_token=create_access_token(user),
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        ),
    )


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    """The caller identified by the bearer token, with their email addresses."""
    return _user_out(current_user)
