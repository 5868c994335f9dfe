"""SMTP mail transport — implements MailPort.

smtplib is blocking, so each send runs in a worker thread. Every failure,
including missing credentials, is reported as MailResult(success=False).
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

from opano.ports.mail_port import MailError, MailResult

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10


class SmtpMailer:
    """SMTP implementation of MailPort."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        use_ssl: bool | None = None,
    ) -> None:
        from opano.config import settings

        self._host = host if host is not None else settings.SMTP_HOST
        self._port = port if port is not None else settings.SMTP_PORT
        self._username = username if username is not None else settings.SMTP_USERNAME
        self._password = password if password is not None else settings.SMTP_PASSWORD
        self._from_email = from_email or settings.SMTP_FROM_EMAIL or self._username
        self._from_name = from_name or settings.SMTP_FROM_NAME
        self._use_ssl = settings.SMTP_USE_SSL if use_ssl is None else use_ssl

    def _check_config(self) -> None:
        if not self._host:
            raise MailError("SMTP_HOST is not set. Cannot send email.")
        if not self._username or not self._password:
            raise MailError("SMTP_USERNAME / SMTP_PASSWORD are not set. Cannot send email.")

    def _build(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self._from_name} <{self._from_email}>"
        msg["To"] = to
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def _send_blocking(self, msg: MIMEMultipart) -> None:
        if self._use_ssl:
            server = smtplib.SMTP_SSL(self._host, self._port, timeout=_TIMEOUT_SECONDS)
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=_TIMEOUT_SECONDS)
        try:
            if not self._use_ssl:
                server.starttls()
            server.login(self._username, self._password)
            server.send_message(msg)
        finally:
            server.quit()

    async def send(self, to: str, subject: str, html_body: str) -> MailResult:
        try:
            self._check_config()
            msg = self._build(to, subject, html_body)
            await asyncio.to_thread(self._send_blocking, msg)
        except MailError as exc:
            logger.error("Email to %s not sent: %s", to, exc)
            return MailResult(success=False, error=str(exc))
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to, exc)
            return MailResult(success=False, error=f"Failed to send email: {exc}")

        logger.info("Email sent to %s", to)
        return MailResult(success=True, message_id=msg["Message-ID"])
