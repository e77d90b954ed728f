# app/models/mfa_settings.py
from __future__ import annotations
import json
from typing import TYPE_CHECKING
from sqlalchemy import Boolean, Integer, String, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User


class MfaSettings(TimestampMixin, Base):
    __tablename__ = "mfa_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    mfa_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    totp_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # JSON list of unused backup codes
    backup_codes: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="mfa_settings")

    def backup_code_list(self) -> list[str]:
        """Decoded backup codes; raises ValueError if the stored value is not a list of strings."""
        if not self.backup_codes:
            return []
        codes = json.loads(self.backup_codes)
        if not isinstance(codes, list) or not all(isinstance(c, str) for c in codes):
            raise ValueError("backup_codes is not a list of strings")
        return codes

    @staticmethod
    def encode_backup_codes(codes: list[str]) -> str:
        return json.dumps(codes)
