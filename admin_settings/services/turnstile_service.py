"""Cloudflare Turnstile verification service."""

import logging
from typing import Any

import httpx

from admin_settings.config import get_settings
from admin_settings.exceptions import TurnstileException

logger = logging.getLogger(__name__)
settings = get_settings()

INVALID_SECRET_ERROR_CODE = "invalid-input-secret"
VALIDATION_PROBE_TOKEN = "test-validation"


class TurnstileService:
    """Service for talking to the Turnstile siteverify endpoint."""

    def __init__(
        self,
        verify_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.verify_url = verify_url or settings.turnstile_verify_url
        self.timeout = timeout or settings.turnstile_timeout_seconds
        self.transport = transport

    async def verify_token(
        self,
        secret_key: str,
        token: str,
        remote_ip: str = "",
    ) -> dict[str, Any]:
        """Verify a Turnstile response token.

        Returns the siteverify result (``success``, ``error-codes``, ...).

        Raises:
            TurnstileException: If the endpoint cannot be reached or
                returns something other than a JSON verification result
        """
        form = {"secret": secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.verify_url, data=form)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Turnstile verification request failed: {e}")
            raise TurnstileException(f"Turnstile verification failed: {e}") from e
        except ValueError as e:
            logger.error(f"Turnstile returned a non-JSON response: {e}")
            raise TurnstileException("Turnstile returned an invalid response") from e

    async def validate_secret_key(self, secret_key: str) -> None:
        """Check that ``secret_key`` is accepted by Turnstile.

        A probe token is verified with the key. Turnstile rejects the token
        itself, but only reports ``invalid-input-secret`` when the key is bad.

        Raises:
            TurnstileException: 400 if the key is invalid, 502 if Turnstile
                could not be reached
        """
        result = await self.verify_token(secret_key, VALIDATION_PROBE_TOKEN)
        if INVALID_SECRET_ERROR_CODE in result.get("error-codes", []):
            logger.warning("Turnstile rejected the configured secret key")
            raise TurnstileException(
                "Invalid Turnstile secret key",
                status_code=400,
                code="TURNSTILE_INVALID_SECRET_KEY",
            )


# Singleton instance
_turnstile_service: TurnstileService | None = None


def get_turnstile_service() -> TurnstileService:
    """Get the Turnstile service singleton."""
    global _turnstile_service
    if _turnstile_service is None:
        _turnstile_service = TurnstileService()
    return _turnstile_service
