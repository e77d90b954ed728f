# app/services/totp.py
import binascii
import datetime as dt
import string
from io import BytesIO

import pyotp
import qrcode

from app.core.config import settings
from app.core.errors import TotpError, ERR_MFA_QR_CODE_GENERATION
from app.core.security import random_string

TOTP_DIGITS = 6
TOTP_PERIOD = 30
TOTP_SKEW_STEPS = 1
SECRET_LENGTH = 32          # base32 chars -> 160 bits
BACKUP_CODE_LENGTH = 10
BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


class TotpService:
    def __init__(self, issuer: str | None = None) -> None:
        self.issuer = issuer or settings.MFA_ISSUER

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD)

    def generate_secret(self, account_label: str) -> str:
        if not account_label:
            raise TotpError("An account label is required to enroll a TOTP secret")
        return pyotp.random_base32(length=SECRET_LENGTH)

    def provisioning_uri(self, secret: str, account_label: str) -> str:
        try:
            # decode once so a broken secret fails here, not in the authenticator app
            self._totp(secret).byte_secret()
        except (binascii.Error, ValueError, TypeError) as exc:
            raise TotpError("Invalid TOTP secret", code=ERR_MFA_QR_CODE_GENERATION) from exc
        return self._totp(secret).provisioning_uri(name=account_label, issuer_name=self.issuer)

    def provisioning_qr_png(self, secret: str, account_label: str) -> bytes:
        uri = self.provisioning_uri(secret, account_label)
        img = qrcode.make(uri)
        buf = BytesIO()
        img.save(buf, "PNG")
        return buf.getvalue()

    def verify_code(self, secret: str, code: str, at: dt.datetime | float | None = None) -> bool:
        """
        Checks a 6-digit code against `secret`, accepting the previous, current
        and next 30 second window. A code of the wrong shape is just invalid;
        only a secret that cannot be decoded raises.
        """
        totp = self._totp(secret)
        try:
            totp.byte_secret()
        except (binascii.Error, ValueError, TypeError) as exc:
            raise TotpError("Invalid TOTP secret") from exc

        code = (code or "").strip()
        if len(code) != TOTP_DIGITS or not code.isdigit():
            return False
        for_time = at if at is not None else dt.datetime.now(tz=dt.timezone.utc)
        return totp.verify(code, for_time=for_time, valid_window=TOTP_SKEW_STEPS)

    def generate_backup_codes(self, count: int) -> list[str]:
        if count < 1:
            raise TotpError("Backup code count must be positive")
        return [random_string(BACKUP_CODE_LENGTH, BACKUP_CODE_ALPHABET) for _ in range(count)]
