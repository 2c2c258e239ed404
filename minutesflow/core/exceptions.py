"""
Custom exceptions and global exception handlers.

Every workflow failure carries a machine-readable ``kind`` and a
human-readable ``detail``; the handlers render both.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    kind = "error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = None,
    ):
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(self.message)


class NotAuthenticatedError(AppException):
    """No caller identity established."""

    kind = "not-authenticated"

    def __init__(self, message: str = "認証が必要です"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class NotAuthorizedError(AppException):
    """Caller is not a moderator of the meeting series."""

    kind = "not-authorized"

    def __init__(self, message: str = "この会議シリーズのモデレーターではありません"):
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidArgumentError(AppException):
    """Missing or malformed argument."""

    kind = "invalid-argument"

    def __init__(self, message: str = "無効なリクエストです"):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotAllowedError(AppException):
    """Workflow state-machine precondition violated."""

    kind = "not-allowed"

    def __init__(self, message: str = "この操作は許可されていません"):
        super().__init__(message, status.HTTP_409_CONFLICT)


class NotFoundError(AppException):
    """Resource not found."""

    kind = "not-found"

    def __init__(self, message: str = "リソースが見つかりません"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class WorkflowRuntimeError(AppException):
    """Unexpected persistence inconsistency (wrong affected-document count)."""

    kind = "runtime-error"

    def __init__(self, message: str = "予期しないエラーが発生しました"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "detail": exc.detail, "message": exc.message},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation errors with user-friendly messages."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        msg = error["msg"]
        errors.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "kind": "invalid-argument",
            "detail": "入力内容に問題があります",
            "errors": errors,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "kind": "runtime-error",
            "detail": "サーバーエラーが発生しました。しばらく経ってから再試行してください。",
        },
    )
