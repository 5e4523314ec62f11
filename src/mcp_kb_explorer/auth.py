"""Password-grant login that yields the bearer token for the Stack API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


async def fetch_access_token(
    *,
    auth_url: str,
    anon_key: str,
    email: str,
    password: str,
    timeout_seconds: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Log in with email/password and return the access token."""
    async with httpx.AsyncClient(
        base_url=auth_url.rstrip("/"),
        timeout=httpx.Timeout(timeout_seconds),
        transport=transport,
    ) as client:
        resp = await client.post(
            "/auth/v1/token",
            params={"grant_type": "password"},
            headers={"Apikey": anon_key},
            json={"email": email, "password": password, "gotrue_meta_security": {}},
        )

    body = _json_object(resp)
    if resp.status_code >= 400:
        raise AuthenticationError(
            body.get("error_description") or body.get("msg") or "Login failed"
        )

    token = body.get("access_token")
    if not token:
        raise AuthenticationError("No access token received")
    logger.info("Obtained Stack access token for %s", email)
    return token


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
