# app/models/refresh_token.py
from __future__ import annotations
from typing import TYPE_CHECKING
from sqlalchemy import BigInteger, Integer, String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User


class RefreshToken(TimestampMixin, Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # rewritten in place on every rotation
    refresh_token: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False)
    used_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expired_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # unix seconds
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="refresh_tokens")
