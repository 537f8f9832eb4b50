"""Setting service for the singleton system configuration and the admin API key.

Both live in the system_settings table: the full configuration record under
``system_config`` and the hashed admin API key under ``admin_api_key``.
"""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from admin_settings.config import get_settings
from admin_settings.exceptions import ServiceUnavailableException
from admin_settings.models.system_settings import SystemSettings
from admin_settings.schemas.settings import SystemSettingsConfig
from admin_settings.utils.security import (
    generate_admin_api_key,
    hash_api_key,
    mask_api_key,
    verify_api_key,
)

logger = logging.getLogger(__name__)
settings = get_settings()

SYSTEM_CONFIG_KEY = "system_config"
ADMIN_API_KEY_KEY = "admin_api_key"

SECRET_FIELDS = ("smtp_password", "turnstile_secret_key")


def default_settings() -> SystemSettingsConfig:
    """The configuration used before an administrator saves anything."""
    return SystemSettingsConfig(
        site_name=settings.app_name,
        default_concurrency=settings.default_user_concurrency,
        default_balance=settings.default_user_balance,
    )


class SettingService:
    """Service for reading and replacing platform-wide settings."""

    async def _get_row(self, db: AsyncSession, key: str) -> SystemSettings | None:
        try:
            result = await db.execute(
                select(SystemSettings).where(SystemSettings.key == key)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load setting {key}: {e}")
            raise ServiceUnavailableException("Failed to load settings") from e

    async def _put_row(self, db: AsyncSession, key: str, value: dict[str, Any]) -> None:
        """Replace the JSON document stored under ``key`` and commit."""
        try:
            row = await self._get_row(db, key)
            if row:
                row.value = value
            else:
                db.add(SystemSettings(key=key, value=value))
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to save setting {key}: {e}")
            raise ServiceUnavailableException("Failed to save settings") from e

    async def get_all_settings(self, db: AsyncSession) -> SystemSettingsConfig:
        """Get the current configuration, secrets included."""
        row = await self._get_row(db, SYSTEM_CONFIG_KEY)
        if not row or not row.value:
            return default_settings()

        merged = default_settings().model_dump()
        merged.update(row.value)
        return SystemSettingsConfig.model_validate(merged)

    async def update_settings(self, db: AsyncSession, config: SystemSettingsConfig) -> None:
        """Replace the stored configuration with ``config``.

        An empty secret keeps the stored one, since clients never see
        secrets and so cannot send them back.
        """
        current = await self.get_all_settings(db)
        value = config.model_dump()
        for field in SECRET_FIELDS:
            if not value[field]:
                value[field] = getattr(current, field)

        await self._put_row(db, SYSTEM_CONFIG_KEY, value)
        logger.info("System settings updated")

    async def get_site_name(self, db: AsyncSession) -> str:
        """Get the configured site name, or the application name."""
        try:
            site_name = (await self.get_all_settings(db)).site_name
        except ServiceUnavailableException:
            return settings.app_name
        return site_name or settings.app_name

    async def initialize_default_settings(self, db: AsyncSession) -> bool:
        """Store the default configuration if none exists yet.

        Returns True when defaults were written.
        """
        if await self._get_row(db, SYSTEM_CONFIG_KEY):
            return False

        await self._put_row(db, SYSTEM_CONFIG_KEY, default_settings().model_dump())
        logger.info("Initialized default system settings")
        return True

    # --- Admin API key ---

    async def get_admin_api_key_status(self, db: AsyncSession) -> tuple[str, bool]:
        """Return ``(masked_key, exists)`` for the admin API key."""
        row = await self._get_row(db, ADMIN_API_KEY_KEY)
        if not row or not row.value.get("key_hash"):
            return "", False
        return row.value.get("masked_key", ""), True

    async def generate_admin_api_key(self, db: AsyncSession) -> str:
        """Generate a new admin API key, replacing any existing one.

        The plaintext is returned here and nowhere else; only its hash and
        masked form are stored.
        """
        key = generate_admin_api_key()
        await self._put_row(
            db,
            ADMIN_API_KEY_KEY,
            {"key_hash": hash_api_key(key), "masked_key": mask_api_key(key)},
        )
        logger.info("Admin API key regenerated")
        return key

    async def delete_admin_api_key(self, db: AsyncSession) -> None:
        """Delete the admin API key. Deleting a missing key is a no-op."""
        try:
            await db.execute(
                delete(SystemSettings).where(SystemSettings.key == ADMIN_API_KEY_KEY)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to delete admin API key: {e}")
            raise ServiceUnavailableException("Failed to delete admin API key") from e
        logger.info("Admin API key deleted")

    async def verify_admin_api_key(self, db: AsyncSession, key: str) -> bool:
        """Check a presented key against the stored hash."""
        if not key:
            return False
        row = await self._get_row(db, ADMIN_API_KEY_KEY)
        if not row or not row.value.get("key_hash"):
            return False
        return verify_api_key(key, row.value["key_hash"])


# Singleton instance
_setting_service: SettingService | None = None


def get_setting_service() -> SettingService:
    """Get the setting service singleton."""
    global _setting_service
    if _setting_service is None:
        _setting_service = SettingService()
    return _setting_service
