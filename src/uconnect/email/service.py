"""
Email service with provider abstraction.

The default ``log`` provider only writes the message to the log; ``smtp``
delivers through aiosmtplib. Delivery is best effort: failures are logged and
reported as ``False``, never raised to the caller.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from uconnect.config import get_settings
from uconnect.email.templates import verify_email

logger = structlog.get_logger()


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    @abstractmethod
    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True on success."""
        ...


class LogProvider(BaseEmailProvider):
    """Write outgoing mail to the log instead of delivering it."""

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        logger.info("email_logged", to=to_email, subject=subject, body=text_body, provider="log")
        return True


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SMTP."""
        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except Exception:
            logger.exception("email_send_failed", to=to_email, provider="smtp")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="smtp")
        return True


def _create_provider() -> BaseEmailProvider:
    """Create email provider based on configuration."""
    settings = get_settings()
    provider_name = settings.email_provider.lower()

    if provider_name == "log":
        return LogProvider()
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """High-level email service: renders templates and hands them to a provider."""

    def __init__(self, provider: BaseEmailProvider | None = None) -> None:
        self.provider = provider or _create_provider()

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True if the provider accepted it."""
        try:
            return await self.provider.send(to, subject, html_body, text_body)
        except Exception:
            logger.exception("email_send_failed", to=to, subject=subject)
            return False

    async def send_verification_email(self, to: str, verify_url: str, name: str | None = None) -> bool:
        """Send the email verification link."""
        subject, html_body, text_body = verify_email(verify_url, name)
        return await self.send_email(to, subject, html_body, text_body)


# Module-level singleton
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get or create the email service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service() -> None:
    """Reset the email service singleton (for testing)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
