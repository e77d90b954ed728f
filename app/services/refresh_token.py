# app/services/refresh_token.py
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from app.core.config import settings
from app.core.errors import RefreshTokenNotFoundError
from app.core.logging import get_logger
from app.core.security import random_string
from app.models.refresh_token import RefreshToken
from app.repositories.refresh_token import RefreshTokenRepository
from app.services.token_issuer import IssuedToken

logger = get_logger(__name__)

REFRESH_TOKEN_LENGTH = 60


@dataclass(frozen=True)
class RotatedToken:
    token: IssuedToken
    user_id: int
    used_count: int


class RefreshTokenService:
    def __init__(
        self,
        repo: RefreshTokenRepository,
        ttl: timedelta | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.repo = repo
        self.ttl = ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    async def create(self, user_id: int, ip_address: str) -> IssuedToken:
        token = random_string(REFRESH_TOKEN_LENGTH)
        expired_at = self._now() + int(self.ttl.total_seconds())
        record = RefreshToken(
            refresh_token=token,
            ip_address=ip_address,
            used_count=0,
            expired_at=expired_at,
            user_id=user_id,
        )
        await self.repo.create(record)
        return IssuedToken(token=token, expires_at=expired_at)

    async def rotate(self, old_token: str, ip_address: str) -> RotatedToken:
        """
        Consumes `old_token` and hands back its replacement. Unknown, expired and
        already-rotated tokens all fail the same way.
        """
        now = self._now()
        record = await self.repo.find_by_token(old_token, now)
        if record is None:
            logger.info("refresh_rejected", reason="no_live_record")
            raise RefreshTokenNotFoundError("Invalid refresh token")

        new_token = random_string(REFRESH_TOKEN_LENGTH)
        expired_at = now + int(self.ttl.total_seconds())
        if not await self.repo.rotate(record, old_token, new_token, expired_at, ip_address, now):
            logger.warning("refresh_rejected", reason="rotated_concurrently", record_id=record.id)
            raise RefreshTokenNotFoundError("Invalid refresh token")

        return RotatedToken(
            token=IssuedToken(token=new_token, expires_at=expired_at),
            user_id=record.user_id,
            used_count=record.used_count,
        )

    async def revoke_all(self, user_id: int) -> int:
        count = await self.repo.expire_all_for_user(user_id, self._now())
        if count:
            logger.info("refresh_records_expired", user_id=user_id, count=count)
        return count
