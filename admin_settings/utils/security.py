"""Security utilities for authentication and the admin API key."""

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from admin_settings.config import settings

ADMIN_API_KEY_PREFIX = "admin-"


def create_access_token(
    user_id: uuid.UUID,
    role: str = "",
    name: str = "",
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        user_id: User's UUID
        role: User's role
        name: User's display name
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": str(user_id),
        "role": role,
        "name": name,
        "exp": expire,
        "iat": now,
        "jti": str(uuid.uuid4()),  # Unique token ID
        "type": "access",
    }

    return jwt.encode(
        payload,
        settings.effective_jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token.

    Returns:
        Token payload dictionary if valid, None if invalid/expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.effective_jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode an access token and verify it's an access token type."""
    payload = decode_token(token)
    if payload and payload.get("type") == "access":
        return payload
    return None


def generate_admin_api_key() -> str:
    """Generate a new plaintext admin API key (``admin-`` + 64 hex chars)."""
    return ADMIN_API_KEY_PREFIX + secrets.token_hex(32)


def hash_api_key(key: str) -> str:
    """Hash an API key for storage. Only the hash is ever persisted."""
    return hashlib.sha256(key.encode()).hexdigest()


def mask_api_key(key: str) -> str:
    """Masked display form: first 10 and last 4 characters."""
    if len(key) <= 14:
        return "*" * len(key)
    return f"{key[:10]}...{key[-4:]}"


def verify_api_key(candidate: str, stored_hash: str) -> bool:
    """Constant-time comparison of a presented key against the stored hash."""
    return hmac.compare_digest(hash_api_key(candidate), stored_hash)
