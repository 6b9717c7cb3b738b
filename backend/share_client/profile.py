"""Owner-side profile client (GET/PUT /profile).

Every call is authenticated with the bearer token held by the ``AuthSession``
it is given. Rejections come back as ``PolicyUpdateRejectedError`` carrying
the server message, transport failures as ``ShareNetworkError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from share_access_core.errors import PolicyUpdateRejectedError, ShareAccessError, ShareNetworkError

from .credentials import AuthSession
from .observability import log_event

logger = logging.getLogger("profile_client")


def _message_from(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str):
            return message
    return None


class ProfileClient:
    def __init__(self, http: httpx.AsyncClient, session: AuthSession) -> None:
        self._http = http
        self._session = session

    async def _send(self, method: str, path: str, *, json: Any = None) -> httpx.Response:
        if not self._session.is_authenticated:
            raise PolicyUpdateRejectedError("Not signed in")
        try:
            return await self._http.request(method, path, json=json, headers=self._session.auth_headers())
        except httpx.TimeoutException as exc:
            raise ShareNetworkError("The request timed out. Please try again.") from exc
        except httpx.TransportError as exc:
            raise ShareNetworkError() from exc

    async def get_profile(self) -> Dict[str, Any]:
        resp = await self._send("GET", "/profile")
        if resp.status_code >= 300:
            logger.error("Profile fetch failed: %s %s", resp.status_code, resp.text[:500])
            raise ShareAccessError(_message_from(resp) or "Failed to load profile")
        try:
            body = resp.json()
        except ValueError as exc:
            logger.error("Profile fetch returned a non-JSON body: %s", resp.text[:500])
            raise ShareAccessError("Failed to load profile") from exc
        data = body.get("data") if isinstance(body, dict) and "data" in body else body
        return data if isinstance(data, dict) else {}

    async def update_profile(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._send("PUT", "/profile", json=partial)
        body: Any
        try:
            body = resp.json()
        except ValueError:
            body = None
        rejected = resp.status_code >= 300 or (isinstance(body, dict) and body.get("success") is False)
        if rejected:
            log_event(
                logger,
                "profile_update_rejected",
                level="warning",
                status_code=resp.status_code,
                keys=sorted(partial.keys()),
            )
            raise PolicyUpdateRejectedError(_message_from(resp))
        log_event(logger, "profile_updated", keys=sorted(partial.keys()))
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return {}
