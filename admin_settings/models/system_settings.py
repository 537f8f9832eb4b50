"""SystemSettings model for platform-wide configuration."""

from sqlalchemy import JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from admin_settings.models.base import BaseModel


class SystemSettings(BaseModel):
    """Key-value store for platform-wide settings.

    Each key holds one JSON document that is replaced as a whole on write.
    The admin console keeps the full system configuration under
    ``system_config`` and the hashed admin API key under ``admin_api_key``.
    """

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    value: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        return f"<SystemSettings {self.key}>"
