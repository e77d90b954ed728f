# app/repositories/refresh_token.py
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InternalError, ERR_DB_INSERT, ERR_DB_UPDATE
from app.core.logging import get_logger
from app.models.refresh_token import RefreshToken

logger = get_logger(__name__)


class RefreshTokenRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(self, record: RefreshToken) -> RefreshToken:
        try:
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as exc:
            # includes a unique collision on refresh_token; never retried
            logger.exception("refresh_record_insert_failed", user_id=record.user_id)
            await self.db.rollback()
            raise InternalError("Failed to create refresh token", code=ERR_DB_INSERT) from exc
        return record

    async def update(self, record: RefreshToken) -> RefreshToken:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("refresh_record_update_failed", record_id=record.id)
            await self.db.rollback()
            raise InternalError("Failed to update refresh token", code=ERR_DB_UPDATE) from exc
        return record

    async def find_by_token(self, token: str, now: int) -> RefreshToken | None:
        """Live records only: an expired row resolves like a missing one."""
        q = select(RefreshToken).where(
            RefreshToken.refresh_token == token,
            RefreshToken.expired_at > now,
        )
        return (await self.db.execute(q)).scalar_one_or_none()

    async def find_any(self, token: str) -> RefreshToken | None:
        q = select(RefreshToken).where(RefreshToken.refresh_token == token)
        return (await self.db.execute(q)).scalar_one_or_none()

    async def rotate(
        self,
        record: RefreshToken,
        old_token: str,
        new_token: str,
        expired_at: int,
        ip_address: str,
        now: int,
    ) -> bool:
        """
        Rewrites `record` in place if it still carries `old_token` and is live.
        Returns False when another request rotated it first.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.id == record.id,
                RefreshToken.refresh_token == old_token,
                RefreshToken.expired_at > now,
            )
            .values(
                refresh_token=new_token,
                expired_at=expired_at,
                ip_address=ip_address,
                used_count=RefreshToken.used_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            res = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("refresh_record_rotation_failed", record_id=record.id)
            await self.db.rollback()
            raise InternalError("Failed to rotate refresh token", code=ERR_DB_UPDATE) from exc
        if res.rowcount != 1:
            return False
        await self.db.refresh(record)
        return True

    async def expire_all_for_user(self, user_id: int, now: int) -> int:
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.expired_at > now)
            .values(expired_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            res = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("refresh_records_expire_failed", user_id=user_id)
            await self.db.rollback()
            raise InternalError("Failed to revoke refresh tokens", code=ERR_DB_UPDATE) from exc
        return res.rowcount
