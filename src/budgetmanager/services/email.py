"""Outbound email.

Services depend on the EmailNotifier interface and await send(); any
transport failure surfaces as EmailDeliveryError so the caller can roll
back whatever it was about to commit. With no SMTP host configured the
notifier logs the message instead of sending (development mode).
"""

import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

import structlog

logger = structlog.get_logger()


class EmailDeliveryError(Exception):
    """The transport could not hand the message off."""


class EmailNotifier:
    async def send(self, recipient: str, subject: str, body: str) -> None:
        raise NotImplementedError


def _redact(email: str) -> str:
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpEmailNotifier(EmailNotifier):
    def __init__(
        self,
        *,
        smtp_host: str = "",
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        sender_email: str = "",
        sender_name: str = "Budget Manager",
        timeout: float = 30.0,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SmtpEmailNotifier":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username or None,
            smtp_password=settings.smtp_password or None,
            smtp_use_tls=settings.smtp_use_tls,
            sender_email=settings.sender_email,
            sender_name=settings.sender_name,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.sender_email)

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if not self.is_configured:
            logger.info(
                "email.dev_mode",
                to=_redact(recipient),
                subject=subject,
                body=body,
            )
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.sender_name} <{self.sender_email}>"
        msg["To"] = recipient
        msg.set_content(body)

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
            logger.error(
                "email.send_failed",
                to=_redact(recipient),
                host=self.smtp_host,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise EmailDeliveryError(str(e)) from e

        logger.info("email.sent", to=_redact(recipient), subject=subject)

    def _deliver(self, msg: EmailMessage) -> None:
        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls(context=context)
                self._login(server)
                server.send_message(msg)
        else:
            with smtplib.SMTP_SSL(
                self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
            ) as server:
                self._login(server)
                server.send_message(msg)

    def _login(self, server: smtplib.SMTP) -> None:
        if self.smtp_username and self.smtp_password:
            server.login(self.smtp_username, self.smtp_password)
