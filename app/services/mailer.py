# app/services/mailer.py
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Protocol
from urllib.parse import quote

from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import InternalError
from app.core.logging import get_logger
from app.models.user import User

logger = get_logger(__name__)

RESET_SUBJECT = "Reset your password"

RESET_TEMPLATE = """\
<html>
  <body>
    <p>Hello {name},</p>
    <p>We received a request to reset your password. Use the link below within the next hour:</p>
    <p><a href="{url}">Reset password</a></p>
    <p>If you did not ask for this, you can ignore this email.</p>
  </body>
</html>
"""


class Mailer(Protocol):
    async def send_password_reset(self, user: User) -> None: ...


def _redact(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpMailer:
    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        from_email: str | None = None,
        use_tls: bool | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self.host = host if host is not None else settings.MAIL_HOST
        self.port = port or settings.MAIL_PORT
        self.username = username if username is not None else settings.MAIL_USERNAME
        self.password = password if password is not None else settings.MAIL_PASSWORD
        self.from_email = from_email or settings.MAIL_FROM or self.username
        self.use_tls = settings.MAIL_USE_TLS if use_tls is None else use_tls
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)

    def reset_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?token={quote(token)}"

    async def send_password_reset(self, user: User) -> None:
        if not user.token:
            raise InternalError("Password reset token missing")
        html = RESET_TEMPLATE.format(name=escape(user.name), url=escape(self.reset_url(user.token)))
        if not self.is_configured:
            # dev mode: nothing to send through
            logger.info("reset_mail_skipped", reason="smtp_not_configured", to=_redact(user.email))
            return
        try:
            await run_in_threadpool(self._send, user.email, RESET_SUBJECT, html)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("reset_mail_failed", to=_redact(user.email), error=str(exc))
            raise InternalError("Failed to send password reset email") from exc
        logger.info("reset_mail_sent", to=_redact(user.email))

    def _send(self, to_email: str, subject: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls(context=context)
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        else:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30) as server:
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
