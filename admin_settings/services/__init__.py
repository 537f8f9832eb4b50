"""Service layer for business logic."""

from admin_settings.services.email_service import EmailService, get_email_service
from admin_settings.services.setting_service import SettingService, get_setting_service
from admin_settings.services.turnstile_service import TurnstileService, get_turnstile_service

__all__ = [
    "SettingService",
    "get_setting_service",
    "EmailService",
    "get_email_service",
    "TurnstileService",
    "get_turnstile_service",
]
