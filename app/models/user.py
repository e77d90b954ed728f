from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Integer, String, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.refresh_token import RefreshToken
    from app.models.mfa_settings import MfaSettings


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    hashed_password: Mapped[str] = mapped_column(String(255))

    # password reset
    token: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    expired_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    birthday: Mapped[str | None] = mapped_column(String(10), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gender: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)  # 1 male, 2 female, 3 other

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        "RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    mfa_settings: Mapped[Optional["MfaSettings"]] = relationship(
        "MfaSettings", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )
