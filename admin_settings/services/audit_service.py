"""Audit logging for changes to the system settings."""

import logging
from datetime import datetime, timezone

from admin_settings.exceptions import UserContextError
from admin_settings.schemas.settings import SystemSettingsConfig, UpdateSettingsRequest
from admin_settings.utils.request_context import get_current_user_id, get_current_user_role

audit_logger = logging.getLogger("admin_settings.audit")

# Order in which changed fields are reported
AUDITED_FIELDS = (
    "registration_enabled",
    "email_verify_enabled",
    "smtp_host",
    "smtp_port",
    "smtp_username",
    "smtp_password",
    "smtp_from_email",
    "smtp_from_name",
    "smtp_use_tls",
    "turnstile_enabled",
    "turnstile_site_key",
    "turnstile_secret_key",
    "site_name",
    "site_logo",
    "site_subtitle",
    "api_base_url",
    "contact_info",
    "doc_url",
    "default_concurrency",
    "default_balance",
)

# Stored secrets cannot be compared, so a non-empty submitted value counts as a change
WRITE_ONLY_FIELDS = frozenset({"smtp_password", "turnstile_secret_key"})


def diff_settings(
    before: SystemSettingsConfig,
    after: SystemSettingsConfig,
    request: UpdateSettingsRequest,
) -> list[str]:
    """List the settings fields that an update changed."""
    changed = []
    for field in AUDITED_FIELDS:
        if field in WRITE_ONLY_FIELDS:
            if getattr(request, field):
                changed.append(field)
        elif getattr(before, field) != getattr(after, field):
            changed.append(field)
    return changed


def _resolve_actor() -> tuple[str, str]:
    """Acting user id and role, empty when the request carries no identity."""
    try:
        user_id = str(get_current_user_id())
    except UserContextError:
        user_id = ""
    return user_id, get_current_user_role() or ""


def log_settings_update(
    before: SystemSettingsConfig,
    after: SystemSettingsConfig,
    request: UpdateSettingsRequest,
) -> list[str]:
    """Write one audit line for a settings update. Returns the changed fields."""
    changed = diff_settings(before, after, request)
    if not changed:
        return changed

    user_id, role = _resolve_actor()
    audit_logger.info(
        f"AUDIT: settings updated "
        f"at={datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')} "
        f"user_id={user_id} role={role} changed=[{', '.join(changed)}]"
    )
    return changed
