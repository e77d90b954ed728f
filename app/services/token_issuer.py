# app/services/token_issuer.py
"""
Signed, expiring bearer tokens.

Two scopes exist: `access` for the API in general and `mfa_pending`, which
only the MFA verification endpoint accepts. The signing secret lives in an
immutable TokenConfig handed to the issuer at construction.
"""
import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import jwt, JOSEError, JWTError, ExpiredSignatureError

from app.core.config import Settings
from app.core.errors import (
    ExpiredTokenError, InvalidTokenError, TokenScopeError, TokenSigningError,
)


class TokenScope(str, enum.Enum):
    access = "access"
    mfa_pending = "mfa_pending"


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(hours=1)
    pending_ttl: timedelta = timedelta(minutes=10)

    @classmethod
    def from_settings(cls, s: Settings) -> "TokenConfig":
        return cls(
            secret=s.JWT_SECRET,
            algorithm=s.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=s.ACCESS_TOKEN_EXPIRE_MINUTES),
            pending_ttl=timedelta(minutes=s.MFA_PENDING_TOKEN_EXPIRE_MINUTES),
        )


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: int  # unix seconds


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    scope: str
    issued_at: int
    expires_at: int


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class TokenIssuer:
    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        self._config = config
        self._clock = clock

    @property
    def config(self) -> TokenConfig:
        return self._config

    def _issue(self, user_id: int, scope: TokenScope, ttl: timedelta) -> IssuedToken:
        now = self._clock()
        expire = now + ttl
        to_encode = {
            "sub": str(user_id),
            "scope": scope.value,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        try:
            token = jwt.encode(to_encode, self._config.secret, algorithm=self._config.algorithm)
        except JOSEError as exc:
            raise TokenSigningError("Failed to sign token") from exc
        return IssuedToken(token=token, expires_at=int(expire.timestamp()))

    def issue_access(self, user_id: int) -> IssuedToken:
        return self._issue(user_id, TokenScope.access, self._config.access_ttl)

    def issue_pending(self, user_id: int) -> IssuedToken:
        return self._issue(user_id, TokenScope.mfa_pending, self._config.pending_ttl)

    def _decode(self, token: str, verify_exp: bool) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                options={"verify_exp": verify_exp},
            )
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError("Token has expired") from exc
        except JWTError as exc:
            raise InvalidTokenError("Invalid token") from exc

        sub = payload.get("sub")
        scope = payload.get("scope")
        if not isinstance(sub, str) or not sub.isdigit() or not isinstance(scope, str):
            raise InvalidTokenError("Invalid token payload")
        return TokenClaims(
            user_id=int(sub),
            scope=scope,
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload.get("exp", 0)),
        )

    def validate(self, token: str) -> TokenClaims:
        return self._decode(token, verify_exp=True)

    def validate_with_scope(self, token: str, required_scope: TokenScope | str) -> TokenClaims:
        claims = self.validate(token)
        required = required_scope.value if isinstance(required_scope, TokenScope) else required_scope
        if claims.scope != required:
            raise TokenScopeError("Token scope not allowed for this operation")
        return claims

    def validate_ignoring_expiry(self, token: str) -> TokenClaims:
        """Signature-only check; used to recover the subject of an expired access token."""
        return self._decode(token, verify_exp=False)
