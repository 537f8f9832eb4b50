"""Pytest configuration.

Settings are read from the environment at import time, so a throwaway SQLite
database and test secrets are configured before the application is imported.
"""

import os
import tempfile

_test_dir = tempfile.mkdtemp(prefix="admin-settings-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/test.db"
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ["APP_ENV"] = "test"
os.environ["APP_NAME"] = "Test Console"

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from admin_settings.database import async_session_factory, drop_db, init_db
from admin_settings.main import app
from admin_settings.schemas.settings import SmtpConfig
from admin_settings.services.email_service import EmailService, get_email_service
from admin_settings.services.turnstile_service import TurnstileService, get_turnstile_service
from admin_settings.utils.security import create_access_token


class FakeEmailService(EmailService):
    """Records SMTP calls instead of talking to a server."""

    def __init__(self):
        super().__init__()
        self.tested: list[SmtpConfig] = []
        self.sent: list[dict] = []
        self.error: Exception | None = None

    async def test_connection(self, config: SmtpConfig) -> None:
        self.tested.append(config)
        if self.error:
            raise self.error

    async def send(self, config: SmtpConfig, to: str, subject: str, html_body: str) -> None:
        self.sent.append({"config": config, "to": to, "subject": subject, "body": html_body})
        if self.error:
            raise self.error


class FakeTurnstileService(TurnstileService):
    """Records secret-key validations; raises ``error`` when set."""

    def __init__(self):
        super().__init__()
        self.validated: list[str] = []
        self.error: Exception | None = None

    async def validate_secret_key(self, secret_key: str) -> None:
        self.validated.append(secret_key)
        if self.error:
            raise self.error


@pytest_asyncio.fixture
async def database():
    """Fresh tables for each test."""
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def turnstile_service():
    return FakeTurnstileService()


@pytest_asyncio.fixture
async def client(database, email_service, turnstile_service):
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_turnstile_service] = lambda: turnstile_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_user_id():
    return uuid.uuid4()


@pytest.fixture
def admin_headers(admin_user_id):
    token = create_access_token(admin_user_id, role="ADMIN", name="Admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    token = create_access_token(uuid.uuid4(), role="USER", name="User")
    return {"Authorization": f"Bearer {token}"}


def _settings_payload(**overrides) -> dict:
    """A complete update body, as the admin console sends it."""
    payload = {
        "registration_enabled": True,
        "email_verify_enabled": False,
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_username": "mailer",
        "smtp_password": "",
        "smtp_from_email": "noreply@example.com",
        "smtp_from_name": "Example",
        "smtp_use_tls": True,
        "turnstile_enabled": False,
        "turnstile_site_key": "",
        "turnstile_secret_key": "",
        "site_name": "A",
        "site_logo": "",
        "site_subtitle": "",
        "api_base_url": "",
        "contact_info": "",
        "doc_url": "",
        "default_concurrency": 5,
        "default_balance": 0,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings_payload():
    """Factory for update bodies: ``settings_payload(site_name="B")``."""
    return _settings_payload
