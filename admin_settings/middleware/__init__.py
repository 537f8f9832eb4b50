"""HTTP middleware."""

from admin_settings.middleware.auth import AuthMiddleware

__all__ = ["AuthMiddleware"]
