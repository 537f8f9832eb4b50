"""Authentication middleware for JWT tokens and the admin API key."""

import logging
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from admin_settings.database import get_db_context
from admin_settings.exceptions import ServiceUnavailableException
from admin_settings.services.setting_service import get_setting_service
from admin_settings.utils.permissions import Role
from admin_settings.utils.request_context import (
    clear_all_context,
    set_current_user_id,
    set_current_user_role,
)
from admin_settings.utils.security import ADMIN_API_KEY_PREFIX, decode_access_token

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the caller's identity into the request context.

    Accepts an ``Authorization: Bearer <jwt>`` header, an ``access_token``
    cookie, or the admin API key in the ``X-API-Key`` header. Requests without
    valid credentials pass through with an empty context; route guards decide
    whether that is acceptable.
    """

    # Paths that don't require authentication
    EXEMPT_PATHS = {
        "/health",
        "/api/docs",
        "/api/redoc",
        "/api/openapi.json",
        "/api/v1/settings/public",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and extract authentication context."""
        # Clear context from previous request
        clear_all_context()

        path = request.url.path
        if path in self.EXEMPT_PATHS:
            return await call_next(request)

        api_key = request.headers.get(API_KEY_HEADER, "").strip()
        if api_key:
            await self._authenticate_api_key(api_key)
        else:
            token = self._extract_token(request)
            if token:
                self._authenticate_token(token)

        response = await call_next(request)

        # Clear context after request
        clear_all_context()

        return response

    def _authenticate_token(self, token: str) -> None:
        payload = decode_access_token(token)
        if not payload:
            return

        try:
            set_current_user_id(uuid.UUID(payload["sub"]))
        except (KeyError, ValueError, TypeError):
            # Invalid UUID format - context will remain unset
            return

        if payload.get("role"):
            set_current_user_role(payload["role"])

    async def _authenticate_api_key(self, api_key: str) -> None:
        if not api_key.startswith(ADMIN_API_KEY_PREFIX):
            return

        try:
            async with get_db_context() as db:
                valid = await get_setting_service().verify_admin_api_key(db, api_key)
        except ServiceUnavailableException:
            logger.warning("Could not verify admin API key: settings store unavailable")
            return

        if not valid:
            logger.warning("Rejected invalid admin API key")
            return

        # API key callers act as admin without a user identity
        set_current_user_role(Role.ADMIN.value)

    def _extract_token(self, request: Request) -> str | None:
        """Extract JWT token from request.

        Priority:
        1. Authorization header (Bearer token)
        2. access_token cookie
        """
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header.removeprefix("Bearer ").strip()

        return request.cookies.get("access_token")
