"""Email service for SMTP connectivity checks and delivery.

SMTP configuration is stored with the rest of the system settings and can be
overridden per call, which is how the admin console tests unsaved settings.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from typing import Any

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.ext.asyncio import AsyncSession

from admin_settings.config import get_settings
from admin_settings.exceptions import BadRequestException, EmailDeliveryException
from admin_settings.schemas.settings import SmtpConfig
from admin_settings.services.setting_service import SettingService, get_setting_service

logger = logging.getLogger(__name__)
settings = get_settings()

IMPLICIT_TLS_PORT = 465


class EmailService:
    """Service for testing SMTP servers and sending emails through them."""

    def __init__(self, setting_service: SettingService | None = None):
        """Initialize the email service."""
        self.setting_service = setting_service or get_setting_service()
        templates_path = Path(__file__).parent.parent / "templates" / "emails"
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(templates_path)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render_template(self, template_name: str, context: dict[str, Any]) -> str:
        """Render an email template with the given context."""
        template = self.jinja_env.get_template(template_name)
        return template.render(**context)

    @staticmethod
    def _client_kwargs(config: SmtpConfig) -> dict[str, Any]:
        # Port 465 = implicit SSL, otherwise STARTTLS when requested
        if config.port == IMPLICIT_TLS_PORT:
            tls_kwargs = {"use_tls": True, "start_tls": False}
        else:
            tls_kwargs = {"use_tls": False, "start_tls": config.use_tls}

        return {
            "hostname": config.host,
            "port": config.port,
            "timeout": settings.smtp_timeout_seconds,
            **tls_kwargs,
        }

    async def get_smtp_config(self, db: AsyncSession) -> SmtpConfig:
        """Load the saved SMTP configuration.

        Raises:
            BadRequestException: If no SMTP host has been saved
        """
        saved = await self.setting_service.get_all_settings(db)
        if not saved.smtp_host:
            raise BadRequestException("Email service is not configured", code="EMAIL_NOT_CONFIGURED")

        return SmtpConfig(
            host=saved.smtp_host,
            port=saved.smtp_port,
            username=saved.smtp_username,
            password=saved.smtp_password,
            from_email=saved.smtp_from_email,
            from_name=saved.smtp_from_name,
            use_tls=saved.smtp_use_tls,
        )

    async def test_connection(self, config: SmtpConfig) -> None:
        """Connect, authenticate if credentials are given, and disconnect.

        Raises:
            EmailDeliveryException: If any step fails
        """
        client = aiosmtplib.SMTP(**self._client_kwargs(config))
        try:
            await client.connect()
            if config.username:
                await client.login(config.username, config.password)
            await client.quit()
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP connection test to {config.host}:{config.port} failed: {e}")
            raise EmailDeliveryException(f"SMTP connection failed: {e}") from e
        finally:
            if client.is_connected:
                client.close()

        logger.info(f"SMTP connection test to {config.host}:{config.port} succeeded")

    async def send(self, config: SmtpConfig, to: str, subject: str, html_body: str) -> None:
        """Send a single HTML email using ``config``.

        Raises:
            EmailDeliveryException: If the message could not be delivered
        """
        from_email = config.from_email or config.username
        if not from_email:
            raise EmailDeliveryException(
                "Failed to send email: no sender address, set a from email or username"
            )
        from_address = formataddr((config.from_name, from_email)) if config.from_name else from_email

        msg = MIMEMultipart("alternative")
        msg["From"] = from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                msg,
                sender=from_email,
                recipients=[to],
                username=config.username or None,
                password=config.password or None,
                **self._client_kwargs(config),
            )
        except (aiosmtplib.SMTPException, OSError, ValueError) as e:
            logger.error(f"Failed to send email via {config.host} to {to}: {e}")
            raise EmailDeliveryException(f"Failed to send email: {e}") from e

        logger.info(f"Email sent via {config.host} to {to}")

    def build_test_email(self, site_name: str) -> tuple[str, str]:
        """Subject and HTML body of the SMTP test message."""
        subject = f"[{site_name}] Test Email"
        body = self._render_template("test_email.html", {"site_name": site_name})
        return subject, body


# Singleton instance
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
