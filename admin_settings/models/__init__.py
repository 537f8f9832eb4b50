"""SQLAlchemy models."""

from admin_settings.models.base import Base, BaseModel
from admin_settings.models.system_settings import SystemSettings

__all__ = ["Base", "BaseModel", "SystemSettings"]
