"""Role-based permission decorators."""

from enum import Enum
from functools import wraps
from typing import Callable

from admin_settings.exceptions import ForbiddenException, UnauthorizedException
from admin_settings.utils.request_context import get_current_user_role


class Role(str, Enum):
    """Account roles carried in access tokens."""

    ADMIN = "ADMIN"  # Platform administrator
    USER = "USER"  # Regular account, no console access


def require_role(*allowed_roles: Role | str) -> Callable:
    """Decorator that enforces role-based access control.

    Usage:
        @router.get("/settings")
        @require_role(Role.ADMIN)
        async def get_settings(...):
            ...
    """
    role_values = {role.value if isinstance(role, Role) else role for role in allowed_roles}

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_role = get_current_user_role()

            if current_role is None:
                raise UnauthorizedException()

            if current_role not in role_values:
                raise ForbiddenException()

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def require_admin() -> Callable:
    """Decorator that requires the ADMIN role."""
    return require_role(Role.ADMIN)
