# app/services/auth.py
"""
Login, refresh, MFA challenge/response and the password lifecycle.

Every operation here either produces a token pair, consumes a token, or
invalidates a family of tokens (reset tokens, refresh tokens).
"""
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from app.core.config import settings
from app.core.errors import (
    AppError, InvalidPasswordError, MfaInvalidCodeError, PasswordMismatchError,
    PasswordUnchangedError, RefreshTokenNotFoundError, TokenExpiredError,
    UnauthorizedError, UserNotFoundError,
)
from app.core.logging import get_logger
from app.core.security import hash_password, random_string, verify_password
from app.models.user import User
from app.repositories.user import UserLookup, UserRepository
from app.services.mailer import Mailer
from app.services.mfa import MfaService
from app.services.refresh_token import RefreshTokenService
from app.services.token_issuer import IssuedToken, TokenIssuer, TokenScope

logger = get_logger(__name__)

RESET_TOKEN_LENGTH = 60


@dataclass(frozen=True)
class LoginResult:
    access_token: IssuedToken
    refresh_token: IssuedToken


@dataclass(frozen=True)
class MfaChallenge:
    temporary_token: IssuedToken
    mfa_required: bool = True


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        issuer: TokenIssuer,
        refresh_tokens: RefreshTokenService,
        mfa: MfaService,
        mailer: Mailer,
        reset_ttl: timedelta | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.users = users
        self.issuer = issuer
        self.refresh_tokens = refresh_tokens
        self.mfa = mfa
        self.mailer = mailer
        self.reset_ttl = reset_ttl or timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        self._clock = clock

    # ---------- login ----------
    async def login(self, email: str, password: str, client_ip: str) -> LoginResult | MfaChallenge:
        try:
            user = await self.users.find_by(UserLookup.EMAIL, email)
        except UserNotFoundError:
            logger.info("login_failed", reason="unknown_email")
            raise
        if not verify_password(password, user.hashed_password):
            logger.info("login_failed", reason="wrong_password", user_id=user.id)
            raise InvalidPasswordError("Invalid password")

        if await self.mfa.get_mfa_status(user.id):
            logger.info("login_mfa_challenge", user_id=user.id)
            return MfaChallenge(temporary_token=self.issuer.issue_pending(user.id))

        return await self._issue_pair(user.id, client_ip)

    async def verify_mfa_login(self, temporary_token: str, code: str, client_ip: str) -> LoginResult:
        claims = self.issuer.validate_with_scope(temporary_token, TokenScope.mfa_pending)
        try:
            user = await self.users.get_by_id(claims.user_id)
        except UserNotFoundError as exc:
            raise UnauthorizedError("User no longer exists") from exc

        if not await self.mfa.verify_mfa_code(user.id, code):
            logger.info("mfa_login_failed", user_id=user.id)
            raise MfaInvalidCodeError("Invalid MFA code")
        return await self._issue_pair(user.id, client_ip)

    async def _issue_pair(self, user_id: int, client_ip: str) -> LoginResult:
        access = self.issuer.issue_access(user_id)
        refresh = await self.refresh_tokens.create(user_id, client_ip)
        logger.info("session_issued", user_id=user_id)
        return LoginResult(access_token=access, refresh_token=refresh)

    # ---------- refresh ----------
    async def refresh_token(self, old_refresh: str, old_access: str, client_ip: str) -> LoginResult:
        try:
            rotated = await self.refresh_tokens.rotate(old_refresh, client_ip)
        except RefreshTokenNotFoundError as exc:
            raise UnauthorizedError("Invalid refresh token") from exc

        # the access token may be expired by now, only its signature matters
        try:
            claims = self.issuer.validate_ignoring_expiry(old_access)
        except AppError as exc:
            logger.warning("refresh_rejected", reason="bad_access", user_id=rotated.user_id)
            raise UnauthorizedError("Invalid access token") from exc

        if claims.user_id != rotated.user_id:
            logger.warning(
                "refresh_rejected", reason="subject_mismatch",
                owner_id=rotated.user_id, presented_id=claims.user_id,
            )
            raise UnauthorizedError("Token mismatch")

        access = self.issuer.issue_access(rotated.user_id)
        return LoginResult(access_token=access, refresh_token=rotated.token)

    # ---------- MFA ----------
    async def disable_mfa(self, user_id: int, password: str) -> None:
        user = await self.users.get_by_id(user_id)
        if not verify_password(password, user.hashed_password):
            raise InvalidPasswordError("Invalid password")
        await self.mfa.disable_mfa(user.id)

    # ---------- password lifecycle ----------
    async def forgot_password(self, email: str) -> None:
        user = await self.users.find_by(UserLookup.EMAIL, email)
        user.token = random_string(RESET_TOKEN_LENGTH)
        user.expired_at = int(self._clock()) + int(self.reset_ttl.total_seconds())
        await self.users.update(user)
        await self.mailer.send_password_reset(user)
        logger.info("password_reset_requested", user_id=user.id)

    async def reset_password(self, token: str, new_password: str) -> None:
        if not token:
            raise UserNotFoundError("User not found")
        user = await self.users.find_by(UserLookup.TOKEN, token)

        expired_at = user.expired_at
        # burn the token before anything else can fail
        user.token = None
        user.expired_at = None
        await self.users.update(user)

        if expired_at is None or expired_at < int(self._clock()):
            logger.info("password_reset_expired", user_id=user.id)
            raise TokenExpiredError("Token expired")

        user.hashed_password = hash_password(new_password)
        await self.users.update(user)
        await self.refresh_tokens.revoke_all(user.id)
        logger.info("password_reset_done", user_id=user.id)

    async def change_password(self, user_id: int, old: str, new: str, confirm: str) -> None:
        user = await self.users.get_by_id(user_id)
        if not verify_password(old, user.hashed_password):
            raise InvalidPasswordError("Old password is incorrect")
        if new != confirm:
            raise PasswordMismatchError("New password and confirm password do not match")
        if new == old:
            raise PasswordUnchangedError("New password must be different from old password")

        user.hashed_password = hash_password(new)
        await self.users.update(user)
        await self.refresh_tokens.revoke_all(user.id)
        logger.info("password_changed", user_id=user.id)

    async def register(self, email: str, name: str, password: str) -> User:
        user = User(email=email, name=name, hashed_password=hash_password(password))
        return await self.users.create(user)
