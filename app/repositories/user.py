# app/repositories/user.py
import enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, InternalError, UserNotFoundError, ERR_DB_INSERT, ERR_DB_UPDATE
from app.core.logging import get_logger
from app.models.user import User

logger = get_logger(__name__)


class UserLookup(str, enum.Enum):
    """The only columns a user may be looked up by."""
    EMAIL = "email"
    TOKEN = "token"
    NAME = "name"


_LOOKUP_COLUMNS = {
    UserLookup.EMAIL: User.email,
    UserLookup.TOKEN: User.token,
    UserLookup.NAME: User.name,
}


class UserRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by(self, lookup: UserLookup, value: str) -> User:
        column = _LOOKUP_COLUMNS[lookup]
        if lookup is UserLookup.EMAIL:
            value = value.strip().lower()
        res = await self.db.execute(select(User).where(column == value).limit(1))
        user = res.scalar_one_or_none()
        if not user:
            raise UserNotFoundError("User not found")
        return user

    async def get_by_id(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise UserNotFoundError("User not found")
        return user

    async def create(self, user: User) -> User:
        user.email = user.email.strip().lower()
        try:
            self.db.add(user)
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Email already registered") from exc
        except SQLAlchemyError as exc:
            logger.exception("user_insert_failed")
            await self.db.rollback()
            raise InternalError("Failed to create user", code=ERR_DB_INSERT) from exc
        await self.db.refresh(user)
        return user

    async def update(self, user: User) -> User:
        try:
            await self.db.commit()
        except SQLAlchemyError as exc:
            logger.exception("user_update_failed", user_id=user.id)
            await self.db.rollback()
            raise InternalError("Failed to update user", code=ERR_DB_UPDATE) from exc
        return user
