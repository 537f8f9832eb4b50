"""
Service Tests
=============

SettingService against SQLite, TurnstileService against a mocked
siteverify endpoint, and EmailService against a local SMTP server.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio

from admin_settings.exceptions import (
    BadRequestException,
    EmailDeliveryException,
    TurnstileException,
)
from admin_settings.schemas.settings import SmtpConfig, SystemSettingsConfig
from admin_settings.services.email_service import EmailService
from admin_settings.services.setting_service import SettingService
from admin_settings.services.turnstile_service import TurnstileService
from admin_settings.utils.security import hash_api_key, mask_api_key, verify_api_key


# --- SettingService ---


@pytest.mark.asyncio
async def test_initialize_default_settings_only_once(db_session):
    service = SettingService()

    assert await service.initialize_default_settings(db_session) is True
    await service.update_settings(db_session, SystemSettingsConfig(site_name="Custom"))
    assert await service.initialize_default_settings(db_session) is False

    assert (await service.get_all_settings(db_session)).site_name == "Custom"


@pytest.mark.asyncio
async def test_get_site_name_falls_back_to_app_name(db_session):
    service = SettingService()

    assert await service.get_site_name(db_session) == "Test Console"

    await service.update_settings(db_session, SystemSettingsConfig(site_name=""))
    assert await service.get_site_name(db_session) == "Test Console"

    await service.update_settings(db_session, SystemSettingsConfig(site_name="Acme"))
    assert await service.get_site_name(db_session) == "Acme"


@pytest.mark.asyncio
async def test_update_keeps_secrets_when_empty(db_session):
    service = SettingService()
    await service.update_settings(
        db_session,
        SystemSettingsConfig(smtp_password="pw", turnstile_secret_key="ts"),
    )

    await service.update_settings(db_session, SystemSettingsConfig(smtp_host="smtp.example.com"))

    stored = await service.get_all_settings(db_session)
    assert stored.smtp_host == "smtp.example.com"
    assert stored.smtp_password == "pw"
    assert stored.turnstile_secret_key == "ts"
    assert stored.smtp_password_configured is True


@pytest.mark.asyncio
async def test_update_replaces_secrets_when_given(db_session):
    service = SettingService()
    await service.update_settings(db_session, SystemSettingsConfig(smtp_password="old"))
    await service.update_settings(db_session, SystemSettingsConfig(smtp_password="new"))

    assert (await service.get_all_settings(db_session)).smtp_password == "new"


@pytest.mark.asyncio
async def test_admin_api_key_is_stored_hashed(db_session):
    service = SettingService()

    key = await service.generate_admin_api_key(db_session)

    assert await service.verify_admin_api_key(db_session, key) is True
    assert await service.verify_admin_api_key(db_session, key + "x") is False
    assert await service.verify_admin_api_key(db_session, "") is False

    masked, exists = await service.get_admin_api_key_status(db_session)
    assert exists is True
    assert masked == mask_api_key(key)

    await service.delete_admin_api_key(db_session)
    await service.delete_admin_api_key(db_session)
    assert await service.get_admin_api_key_status(db_session) == ("", False)
    assert await service.verify_admin_api_key(db_session, key) is False


def test_api_key_helpers():
    key = "admin-" + "ab" * 32

    assert mask_api_key(key) == "admin-abab...abab"
    assert mask_api_key("short") == "*****"
    assert verify_api_key(key, hash_api_key(key)) is True
    assert verify_api_key("admin-other", hash_api_key(key)) is False


# --- TurnstileService ---


def _turnstile(handler) -> TurnstileService:
    return TurnstileService(
        verify_url="https://turnstile.test/siteverify",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_valid_secret_key_passes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]})

    await _turnstile(handler).validate_secret_key("good-secret")

    assert "secret=good-secret" in seen["body"]
    assert "response=test-validation" in seen["body"]


@pytest.mark.asyncio
async def test_invalid_secret_key_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-secret"]})

    with pytest.raises(TurnstileException) as exc_info:
        await _turnstile(handler).validate_secret_key("bad-secret")

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "TURNSTILE_INVALID_SECRET_KEY"


@pytest.mark.asyncio
async def test_turnstile_http_error_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream down")

    with pytest.raises(TurnstileException) as exc_info:
        await _turnstile(handler).validate_secret_key("secret")

    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_verify_token_passes_remote_ip():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "remoteip=203.0.113.7" in request.content.decode()
        return httpx.Response(200, json={"success": True})

    result = await _turnstile(handler).verify_token("secret", "token", remote_ip="203.0.113.7")

    assert result["success"] is True


# --- EmailService ---


@pytest.mark.asyncio
async def test_get_smtp_config_requires_saved_host(db_session):
    with pytest.raises(BadRequestException):
        await EmailService().get_smtp_config(db_session)


@pytest.mark.asyncio
async def test_get_smtp_config_returns_saved_values(db_session):
    service = EmailService()
    await service.setting_service.update_settings(
        db_session,
        SystemSettingsConfig(
            smtp_host="smtp.example.com",
            smtp_port=2525,
            smtp_username="mailer",
            smtp_password="pw",
            smtp_use_tls=True,
        ),
    )

    config = await service.get_smtp_config(db_session)

    assert config.host == "smtp.example.com"
    assert config.port == 2525
    assert config.password == "pw"
    assert config.use_tls is True


@pytest.mark.asyncio
async def test_connection_refused_raises_delivery_error():
    # Nothing listens on port 1 locally
    config = SmtpConfig(host="127.0.0.1", port=1)

    with pytest.raises(EmailDeliveryException) as exc_info:
        await EmailService().test_connection(config)

    assert exc_info.value.status_code == 502
    assert exc_info.value.message.startswith("SMTP connection failed:")


def test_test_email_template_renders_site_name():
    subject, body = EmailService().build_test_email("Acme")

    assert subject == "[Acme] Test Email"
    assert "<h1>Acme</h1>" in body
    assert "Email Configuration Successful!" in body


class _SmtpCapture:
    """Minimal SMTP server that records one delivered message."""

    def __init__(self):
        self.port = 0
        self.mail_from = ""
        self.recipients: list[str] = []
        self.data = b""

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.write(b"220 localhost ESMTP\r\n")
        await writer.drain()
        while line := await reader.readline():
            text = line.decode().strip()
            command = text.upper()
            if command.startswith(("EHLO", "HELO")):
                writer.write(b"250 localhost\r\n")
            elif command.startswith("MAIL FROM:"):
                self.mail_from = text[len("MAIL FROM:"):]
                writer.write(b"250 OK\r\n")
            elif command.startswith("RCPT TO:"):
                self.recipients.append(text[len("RCPT TO:"):])
                writer.write(b"250 OK\r\n")
            elif command == "DATA":
                writer.write(b"354 End data with <CR><LF>.<CR><LF>\r\n")
                await writer.drain()
                chunks = []
                while (chunk := await reader.readline()) not in (b".\r\n", b""):
                    chunks.append(chunk)
                self.data = b"".join(chunks)
                writer.write(b"250 OK\r\n")
            elif command == "QUIT":
                writer.write(b"221 Bye\r\n")
                await writer.drain()
                break
            else:
                writer.write(b"250 OK\r\n")
            await writer.drain()
        writer.close()


@pytest_asyncio.fixture
async def smtp_server():
    capture = _SmtpCapture()
    server = await asyncio.start_server(capture.handle, "127.0.0.1", 0)
    capture.port = server.sockets[0].getsockname()[1]
    yield capture
    server.close()
    await server.wait_closed()


@pytest.mark.parametrize(
    "port,use_tls,expected",
    [
        (465, False, {"use_tls": True, "start_tls": False}),
        (465, True, {"use_tls": True, "start_tls": False}),
        (587, True, {"use_tls": False, "start_tls": True}),
        (587, False, {"use_tls": False, "start_tls": False}),
    ],
)
def test_client_kwargs_tls_mode(port, use_tls, expected):
    kwargs = EmailService._client_kwargs(SmtpConfig(host="smtp.example.com", port=port, use_tls=use_tls))

    assert kwargs["hostname"] == "smtp.example.com"
    assert kwargs["port"] == port
    assert {k: kwargs[k] for k in ("use_tls", "start_tls")} == expected


@pytest.mark.asyncio
async def test_send_delivers_with_named_sender(smtp_server):
    config = SmtpConfig(
        host="127.0.0.1",
        port=smtp_server.port,
        from_email="noreply@example.com",
        from_name="Example",
    )

    await EmailService().send(config, "admin@example.com", "[Acme] Test Email", "<p>hi</p>")

    assert smtp_server.mail_from == "<noreply@example.com>"
    assert smtp_server.recipients == ["<admin@example.com>"]
    assert b"From: Example <noreply@example.com>" in smtp_server.data
    assert b"Subject: [Acme] Test Email" in smtp_server.data


@pytest.mark.asyncio
async def test_send_without_sender_address_is_delivery_error(smtp_server):
    config = SmtpConfig(host="127.0.0.1", port=smtp_server.port)

    with pytest.raises(EmailDeliveryException) as exc_info:
        await EmailService().send(config, "admin@example.com", "Subject", "<p>hi</p>")

    assert exc_info.value.status_code == 502
    assert exc_info.value.code == "SMTP_ERROR"
    assert smtp_server.mail_from == ""


@pytest.mark.asyncio
async def test_send_connection_refused_is_delivery_error():
    # Nothing listens on port 1 locally
    config = SmtpConfig(host="127.0.0.1", port=1, from_email="noreply@example.com")

    with pytest.raises(EmailDeliveryException) as exc_info:
        await EmailService().send(config, "admin@example.com", "Subject", "<p>hi</p>")

    assert exc_info.value.status_code == 502
    assert exc_info.value.message.startswith("Failed to send email:")
