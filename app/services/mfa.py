# app/services/mfa.py
"""
MFA enrollment and verification.

Per user: no row (NoMfa) -> row with mfa_enabled=False (PendingSetup)
-> mfa_enabled=True (Enabled) -> row deleted (NoMfa again).
"""
import json
from dataclasses import dataclass

from app.core.config import settings
from app.core.errors import (
    BackupCodeError, MfaAlreadyEnabledError, MfaInvalidCodeError,
    MfaNotEnabledError, MfaSetupNotInitiatedError,
)
from app.core.logging import get_logger
from app.models.mfa_settings import MfaSettings
from app.repositories.mfa import MfaRepository
from app.services.totp import TotpService

logger = get_logger(__name__)


@dataclass(frozen=True)
class MfaSetupResult:
    secret: str
    qr_code_png: bytes
    backup_codes: list[str]


class MfaService:
    def __init__(self, repo: MfaRepository, totp: TotpService, backup_code_count: int | None = None) -> None:
        self.repo = repo
        self.totp = totp
        self.backup_code_count = backup_code_count or settings.MFA_BACKUP_CODE_COUNT

    async def setup_mfa(self, user_id: int, email: str) -> MfaSetupResult:
        current = await self.repo.get_by_user_id(user_id)
        if current is not None and current.mfa_enabled:
            raise MfaAlreadyEnabledError("MFA is already enabled for this user")

        secret = self.totp.generate_secret(email)
        backup_codes = self.totp.generate_backup_codes(self.backup_code_count)
        qr_png = self.totp.provisioning_qr_png(secret, email)
        encoded = MfaSettings.encode_backup_codes(backup_codes)

        if current is None:
            await self.repo.create(MfaSettings(
                user_id=user_id,
                mfa_enabled=False,
                totp_secret=secret,
                backup_codes=encoded,
            ))
        else:
            # an unconfirmed earlier attempt is discarded
            current.totp_secret = secret
            current.backup_codes = encoded
            current.mfa_enabled = False
            await self.repo.update(current)

        logger.info("mfa_setup_started", user_id=user_id)
        return MfaSetupResult(secret=secret, qr_code_png=qr_png, backup_codes=backup_codes)

    async def verify_mfa_setup(self, user_id: int, code: str) -> list[str]:
        current = await self.repo.get_by_user_id(user_id)
        if current is None or not current.totp_secret:
            raise MfaSetupNotInitiatedError("MFA setup session expired or not initiated")

        if not self.totp.verify_code(current.totp_secret, code):
            raise MfaInvalidCodeError("Invalid TOTP code")

        backup_codes = self._decode_codes(current)
        current.mfa_enabled = True
        await self.repo.update(current)
        logger.info("mfa_enabled", user_id=user_id)
        return backup_codes

    async def verify_mfa_code(self, user_id: int, code: str) -> bool:
        current = await self.repo.get_by_user_id(user_id)
        if current is None or not current.mfa_enabled:
            raise MfaNotEnabledError("MFA is not enabled for this user")
        if not current.totp_secret:
            raise MfaNotEnabledError("MFA is not properly configured")

        # TOTP first: checking it consumes nothing
        if self.totp.verify_code(current.totp_secret, code):
            return True
        return await self.validate_backup_code(user_id, code)

    async def validate_backup_code(self, user_id: int, code: str) -> bool:
        current = await self.repo.get_by_user_id(user_id)
        if current is None:
            raise MfaNotEnabledError("MFA settings not found")

        stored = current.backup_codes or "[]"
        codes = self._decode_codes(current)
        # codes are issued upper-case
        code = (code or "").strip().upper()
        if code not in codes:
            return False

        codes.remove(code)
        if not await self.repo.replace_backup_codes(current, stored, MfaSettings.encode_backup_codes(codes)):
            # another request consumed a code between our read and write
            logger.warning("backup_code_race_lost", user_id=user_id)
            return False
        logger.info("backup_code_used", user_id=user_id, remaining=len(codes))
        return True

    async def disable_mfa(self, user_id: int) -> None:
        await self.repo.delete(user_id)
        logger.info("mfa_disabled", user_id=user_id)

    async def get_mfa_status(self, user_id: int) -> bool:
        current = await self.repo.get_by_user_id(user_id)
        return bool(current and current.mfa_enabled)

    @staticmethod
    def _decode_codes(current: MfaSettings) -> list[str]:
        try:
            return current.backup_code_list()
        except (json.JSONDecodeError, ValueError) as exc:
            raise BackupCodeError("Invalid backup codes in settings") from exc
