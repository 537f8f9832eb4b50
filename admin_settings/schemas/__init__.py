"""Pydantic schemas for request/response validation."""

from admin_settings.schemas.common import APIResponse, MessageResponse
from admin_settings.schemas.settings import (
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

__all__ = [
    # Common
    "APIResponse",
    "MessageResponse",
    # Settings
    "SystemSettingsConfig",
    "SystemSettingsResponse",
    "PublicSettingsResponse",
    "UpdateSettingsRequest",
    "TestSmtpRequest",
    "SendTestEmailRequest",
    "SmtpConfig",
    "AdminApiKeyStatusResponse",
    "AdminApiKeyResponse",
]
