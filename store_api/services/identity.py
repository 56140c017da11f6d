"""
Thin client for the hosted identity provider (no SDK dependency).

Resolves a bearer token to the stable user id by asking the provider who
the token belongs to. Any failure, including transport errors, is reported
as ``Unauthorized``.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from store_api.config import Settings
from store_api.errors import Unauthorized

logger = logging.getLogger(__name__)


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise Unauthorized()
    return token


class HostedIdentityProvider:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/auth/v1/user"
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "HostedIdentityProvider":
        return cls(
            base_url=settings.identity_provider_url,
            api_key=settings.identity_provider_api_key,
            timeout=settings.identity_provider_timeout_seconds,
        )

    async def resolve(self, token: str) -> str:
        """Return the user id for *token* or raise ``Unauthorized``."""
        headers = {"Authorization": f"Bearer {token}"}
        if self._api_key:
            headers["apikey"] = self._api_key

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.get(self._url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable: %s", exc)
            raise Unauthorized() from exc

        if not resp.is_success:
            logger.warning("Token rejected by identity provider: status=%d", resp.status_code)
            raise Unauthorized()

        try:
            body = resp.json()
        except ValueError:
            body = None
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            logger.warning("Identity provider answered without a user id")
            raise Unauthorized()
        return str(user_id)
