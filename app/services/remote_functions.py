"""Client for the backend's named remote procedures (moderation, bans, account deletion, ...)."""
import logging
from typing import Any

import httpx

from app.config import Settings, settings as default_settings
from app.utils.exceptions import RemoteFunctionError

logger = logging.getLogger(__name__)


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error") or payload.get("message")
        if isinstance(error, dict):
            error = error.get("message")
        if error:
            return str(error)
    return fallback


class RemoteFunctions:
    """Invoke ``{functions_url}/{name}`` with a JSON body and a bearer credential.

    Non-2xx responses, ``success: false`` and an ``error`` field are all
    treated as failure and raised as ``RemoteFunctionError``.
    """

    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or default_settings
        self._transport = transport

    def _headers(self, access_token: str | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = access_token or self.config.functions_anon_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self.config.functions_anon_key:
            headers["apikey"] = self.config.functions_anon_key
        return headers

    async def invoke(self, name: str, body: dict | None = None, access_token: str | None = None) -> dict:
        url = f"{self.config.functions_url.rstrip('/')}/{name}"
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.functions_timeout_seconds,
            ) as client:
                response = await client.post(url, json=body or {}, headers=self._headers(access_token))
        except httpx.HTTPError as e:
            logger.warning("Remote function %s unreachable: %s", name, e)
            raise RemoteFunctionError(name, str(e) or type(e).__name__, transport=True) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = _error_message(payload, f"HTTP {response.status_code}")
            logger.warning("Remote function %s failed with %d: %s", name, response.status_code, message)
            raise RemoteFunctionError(name, message, status_code=response.status_code)

        if not isinstance(payload, dict):
            raise RemoteFunctionError(name, "Invalid response body", status_code=response.status_code)

        if payload.get("success") is False or payload.get("error"):
            message = _error_message(payload, "Request failed")
            logger.warning("Remote function %s returned an error: %s", name, message)
            raise RemoteFunctionError(name, message, status_code=response.status_code)

        return payload
