# app/core/errors.py
"""
Error taxonomy shared by services and routers.

Every service raises a subclass of AppError; the routers never build
HTTPExceptions for domain failures, `register_exception_handlers` turns them
into `{"detail": ..., "code": ...}` responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)


# numeric codes shared with API clients
ERR_INTERNAL = 1000
ERR_NOT_FOUND = 1001
ERR_BAD_REQUEST = 1002
ERR_DB_INSERT = 2002
ERR_DB_UPDATE = 2003
ERR_UNAUTHORIZED = 3000
ERR_TOKEN_EXPIRED = 3002
ERR_INVALID_PASSWORD = 3003
ERR_PASSWORD_HASH_FAILED = 3004
ERR_PASSWORD_MISMATCH = 3005
ERR_PASSWORD_UNCHANGED = 3006
ERR_CONFLICT = 4009
ERR_MFA_ALREADY_ENABLED = 5000
ERR_MFA_NOT_ENABLED = 5001
ERR_MFA_SETUP_NOT_INITIATED = 5002
ERR_MFA_INVALID_CODE = 5003
ERR_MFA_SECRET_GENERATION = 5005
ERR_MFA_QR_CODE_GENERATION = 5006
ERR_MFA_BACKUP_CODE = 5007


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: int = ERR_BAD_REQUEST

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# ---------- kinds ----------
class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ERR_NOT_FOUND


class InvalidCredentialError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = ERR_INVALID_PASSWORD


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = ERR_UNAUTHORIZED


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = ERR_CONFLICT


class PreconditionFailedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ERR_BAD_REQUEST


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = ERR_INTERNAL


# ---------- users / passwords ----------
class UserNotFoundError(NotFoundError):
    pass


class InvalidPasswordError(InvalidCredentialError):
    code = ERR_INVALID_PASSWORD


class PasswordMismatchError(PreconditionFailedError):
    code = ERR_PASSWORD_MISMATCH


class PasswordUnchangedError(PreconditionFailedError):
    code = ERR_PASSWORD_UNCHANGED


class PasswordHashError(InternalError):
    code = ERR_PASSWORD_HASH_FAILED


class TokenExpiredError(PreconditionFailedError):
    """A reset token whose expiry is unset or in the past."""
    code = ERR_TOKEN_EXPIRED


# ---------- signed tokens ----------
class InvalidTokenError(UnauthorizedError):
    """Bad signature or malformed token."""


class ExpiredTokenError(UnauthorizedError):
    code = ERR_TOKEN_EXPIRED


class TokenScopeError(UnauthorizedError):
    pass


class TokenSigningError(InternalError):
    pass


# ---------- refresh tokens ----------
class RefreshTokenNotFoundError(NotFoundError):
    pass


# ---------- MFA ----------
class MfaAlreadyEnabledError(ConflictError):
    code = ERR_MFA_ALREADY_ENABLED


class MfaNotEnabledError(PreconditionFailedError):
    code = ERR_MFA_NOT_ENABLED


class MfaSetupNotInitiatedError(PreconditionFailedError):
    code = ERR_MFA_SETUP_NOT_INITIATED


class MfaInvalidCodeError(InvalidCredentialError):
    code = ERR_MFA_INVALID_CODE


class TotpError(InternalError):
    code = ERR_MFA_SECRET_GENERATION


class BackupCodeError(InternalError):
    code = ERR_MFA_BACKUP_CODE


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(
                "request_failed", method=request.method, path=request.url.path,
                error=exc.message, exc_info=exc,
            )
            # internal details stay in the log
            message = "Internal server error"
        else:
            message = exc.message
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": message, "code": exc.code},
        )
