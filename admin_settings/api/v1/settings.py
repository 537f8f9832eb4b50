"""Admin API routes for system settings, SMTP checks and the admin API key."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from admin_settings.database import get_db
from admin_settings.exceptions import BadRequestException
from admin_settings.schemas.common import APIResponse, MessageResponse
from admin_settings.schemas.settings import (
    DEFAULT_SMTP_PORT,
    AdminApiKeyResponse,
    AdminApiKeyStatusResponse,
    PublicSettingsResponse,
    SendTestEmailRequest,
    SmtpConfig,
    SystemSettingsConfig,
    SystemSettingsResponse,
    TestSmtpRequest,
    UpdateSettingsRequest,
)
from admin_settings.services.audit_service import log_settings_update
from admin_settings.services.email_service import EmailService, get_email_service
from admin_settings.services.setting_service import SettingService, get_setting_service
from admin_settings.services.turnstile_service import TurnstileService, get_turnstile_service
from admin_settings.utils.permissions import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/settings", tags=["Admin Settings"])
public_router = APIRouter(prefix="/settings", tags=["Settings"])


def _normalize(request: UpdateSettingsRequest) -> UpdateSettingsRequest:
    """Clamp numeric fields to their allowed ranges."""
    updates = {}
    if request.default_concurrency < 1:
        updates["default_concurrency"] = 1
    if request.default_balance < 0:
        updates["default_balance"] = 0.0
    if request.smtp_port <= 0:
        updates["smtp_port"] = DEFAULT_SMTP_PORT
    return request.model_copy(update=updates)


async def _saved_smtp_password(db: AsyncSession, email_service: EmailService) -> str:
    """Password from the saved SMTP config, or empty if it cannot be loaded."""
    try:
        saved = await email_service.get_smtp_config(db)
    except Exception as e:
        logger.debug(f"No saved SMTP password to fall back to: {e}")
        return ""
    return saved.password


async def _build_smtp_config(
    request: TestSmtpRequest,
    db: AsyncSession,
    email_service: EmailService,
    from_email: str = "",
    from_name: str = "",
) -> SmtpConfig:
    password = request.smtp_password or await _saved_smtp_password(db, email_service)
    return SmtpConfig(
        host=request.smtp_host,
        port=request.smtp_port if request.smtp_port > 0 else DEFAULT_SMTP_PORT,
        username=request.smtp_username,
        password=password,
        from_email=from_email,
        from_name=from_name,
        use_tls=request.smtp_use_tls,
    )


@router.get("")
@require_admin()
async def get_settings(
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
) -> APIResponse[SystemSettingsResponse]:
    """Get all system settings. Secrets are reported only as configured flags."""
    config = await setting_service.get_all_settings(db)
    return APIResponse(status="success", data=SystemSettingsResponse.from_config(config))


@router.put("")
@require_admin()
async def update_settings(
    request: UpdateSettingsRequest,
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
    turnstile_service: TurnstileService = Depends(get_turnstile_service),
) -> APIResponse[SystemSettingsResponse]:
    """Replace the system settings.

    An empty SMTP password or Turnstile secret key keeps the stored one.
    Enabling Turnstile with new keys validates the secret key first, so a
    bad key can never lock users out of login.
    """
    previous = await setting_service.get_all_settings(db)
    request = _normalize(request)

    if request.turnstile_enabled:
        if not request.turnstile_site_key:
            raise BadRequestException("Turnstile Site Key is required when enabled")
        if not request.turnstile_secret_key:
            raise BadRequestException("Turnstile Secret Key is required when enabled")

        site_key_changed = previous.turnstile_site_key != request.turnstile_site_key
        secret_key_changed = previous.turnstile_secret_key != request.turnstile_secret_key
        if site_key_changed or secret_key_changed:
            await turnstile_service.validate_secret_key(request.turnstile_secret_key)

    config = SystemSettingsConfig.model_validate(request.model_dump())
    await setting_service.update_settings(db, config)

    updated = await setting_service.get_all_settings(db)
    log_settings_update(previous, updated, request)

    return APIResponse(
        status="success",
        data=SystemSettingsResponse.from_config(updated),
        message="Settings updated successfully",
    )


@router.post("/test-smtp")
@require_admin()
async def test_smtp_connection(
    request: TestSmtpRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> APIResponse[MessageResponse]:
    """Check that an SMTP server accepts a connection with the given settings."""
    config = await _build_smtp_config(request, db, email_service)
    await email_service.test_connection(config)

    return APIResponse(status="success", data=MessageResponse(message="SMTP connection successful"))


@router.post("/send-test-email")
@require_admin()
async def send_test_email(
    request: SendTestEmailRequest,
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
    email_service: EmailService = Depends(get_email_service),
) -> APIResponse[MessageResponse]:
    """Send a test email to ``email`` using the given SMTP settings."""
    config = await _build_smtp_config(
        request,
        db,
        email_service,
        from_email=request.smtp_from_email,
        from_name=request.smtp_from_name,
    )

    site_name = await setting_service.get_site_name(db)
    subject, body = email_service.build_test_email(site_name)
    await email_service.send(config, str(request.email), subject, body)

    return APIResponse(status="success", data=MessageResponse(message="Test email sent successfully"))


@router.get("/admin-api-key")
@require_admin()
async def get_admin_api_key(
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
) -> APIResponse[AdminApiKeyStatusResponse]:
    """Get whether an admin API key exists, with its masked form."""
    masked_key, exists = await setting_service.get_admin_api_key_status(db)
    return APIResponse(
        status="success",
        data=AdminApiKeyStatusResponse(exists=exists, masked_key=masked_key),
    )


@router.post("/admin-api-key/regenerate")
@require_admin()
async def regenerate_admin_api_key(
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
) -> APIResponse[AdminApiKeyResponse]:
    """Generate a new admin API key, invalidating the previous one.

    The full key is returned in this response only. It is stored hashed and
    cannot be retrieved again; later reads return the masked form.
    """
    key = await setting_service.generate_admin_api_key(db)
    return APIResponse(
        status="success",
        data=AdminApiKeyResponse(key=key),
        message="Store this key now. It will not be shown again.",
    )


@router.delete("/admin-api-key")
@require_admin()
async def delete_admin_api_key(
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
) -> APIResponse[MessageResponse]:
    """Delete the admin API key."""
    await setting_service.delete_admin_api_key(db)
    return APIResponse(status="success", data=MessageResponse(message="Admin API key deleted"))


@public_router.get("/public")
async def get_public_settings(
    db: AsyncSession = Depends(get_db),
    setting_service: SettingService = Depends(get_setting_service),
) -> APIResponse[PublicSettingsResponse]:
    """Settings needed by login and registration pages. No authentication."""
    config = await setting_service.get_all_settings(db)
    return APIResponse(status="success", data=PublicSettingsResponse.from_config(config))
