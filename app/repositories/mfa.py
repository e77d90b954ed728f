# app/repositories/mfa.py
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InternalError, ERR_DB_INSERT, ERR_DB_UPDATE
from app.core.logging import get_logger
from app.models.mfa_settings import MfaSettings

logger = get_logger(__name__)


class MfaRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_user_id(self, user_id: int) -> MfaSettings | None:
        res = await self.db.execute(select(MfaSettings).where(MfaSettings.user_id == user_id))
        return res.scalar_one_or_none()

    async def create(self, settings: MfaSettings) -> MfaSettings:
        try:
            self.db.add(settings)
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("mfa_settings_insert_failed", user_id=settings.user_id)
            await self.db.rollback()
            raise InternalError("Failed to create MFA settings", code=ERR_DB_INSERT) from exc
        return settings

    async def update(self, settings: MfaSettings) -> MfaSettings:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("mfa_settings_update_failed", user_id=settings.user_id)
            await self.db.rollback()
            raise InternalError("Failed to update MFA settings", code=ERR_DB_UPDATE) from exc
        return settings

    async def replace_backup_codes(self, settings: MfaSettings, expected: str, codes: str) -> bool:
        """
        Swaps the stored backup code list only if it still equals `expected`.
        False means a concurrent request changed it first.
        """
        stmt = (
            update(MfaSettings)
            .where(MfaSettings.id == settings.id, MfaSettings.backup_codes == expected)
            .values(backup_codes=codes)
            .execution_options(synchronize_session=False)
        )
        try:
            res = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("backup_codes_update_failed", user_id=settings.user_id)
            await self.db.rollback()
            raise InternalError("Failed to update backup codes", code=ERR_DB_UPDATE) from exc
        if res.rowcount != 1:
            return False
        await self.db.refresh(settings)
        return True

    async def delete(self, user_id: int) -> None:
        try:
            await self.db.execute(
                delete(MfaSettings)
                .where(MfaSettings.user_id == user_id)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("mfa_settings_delete_failed", user_id=user_id)
            await self.db.rollback()
            raise InternalError("Failed to delete MFA settings") from exc
