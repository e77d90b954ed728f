from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.core.errors import UnauthorizedError, UserNotFoundError
from app.models.user import User
from app.repositories.mfa import MfaRepository
from app.repositories.refresh_token import RefreshTokenRepository
from app.repositories.user import UserRepository
from app.services.auth import AuthService
from app.services.mailer import Mailer, SmtpMailer
from app.services.mfa import MfaService
from app.services.refresh_token import RefreshTokenService
from app.services.token_issuer import TokenConfig, TokenIssuer, TokenScope
from app.services.totp import TotpService


bearer = HTTPBearer(auto_error=False)


# ---------- singletons ----------
@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(TokenConfig.from_settings(settings))


@lru_cache
def get_totp_service() -> TotpService:
    return TotpService(issuer=settings.MFA_ISSUER)


@lru_cache
def get_mailer() -> Mailer:
    return SmtpMailer()


# ---------- per-request services ----------
def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_mfa_service(
    db: AsyncSession = Depends(get_db),
    totp: TotpService = Depends(get_totp_service),
) -> MfaService:
    return MfaService(MfaRepository(db), totp)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    users: UserRepository = Depends(get_user_repository),
    issuer: TokenIssuer = Depends(get_token_issuer),
    mfa: MfaService = Depends(get_mfa_service),
    mailer: Mailer = Depends(get_mailer),
) -> AuthService:
    return AuthService(
        users=users,
        issuer=issuer,
        refresh_tokens=RefreshTokenService(RefreshTokenRepository(db)),
        mfa=mfa,
        mailer=mailer,
    )


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


# ---------- bearer tokens ----------
def _bearer_token(creds: HTTPAuthorizationCredentials | None) -> str:
    if creds is None or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise UnauthorizedError("Missing bearer token")
    return creds.credentials


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    issuer: TokenIssuer = Depends(get_token_issuer),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """Resolves the user behind an `access` token; MFA-pending tokens are refused."""
    claims = issuer.validate_with_scope(_bearer_token(creds), TokenScope.access)
    try:
        return await users.get_by_id(claims.user_id)
    except UserNotFoundError as exc:
        raise UnauthorizedError("User not found") from exc


def get_pending_token(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    # scope is checked by AuthService.verify_mfa_login
    return _bearer_token(creds)
