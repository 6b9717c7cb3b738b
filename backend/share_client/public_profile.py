"""Client for the unauthenticated profile-sharing endpoints.

Endpoints (relative to ``{API_BASE_URL}{API_VERSION}/public``)
- GET  /profile/{handle}?token=<opaque>
- POST /profile/{handle}/verify-password   {password}
- POST /profile/{handle}/request-otp       {email?}
- POST /profile/{handle}/verify-otp        {otp}
- GET  /emergency/{handle}?token=<opaque>

The client only moves envelopes over the wire. It raises for transport
failures and hands every HTTP reply back as a ``PublicApiResponse``; deciding
what a reply means is left to the gate and the challenge resolver.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from share_access_core.errors import ShareNetworkError

from .observability import log_event

logger = logging.getLogger("public_profile_client")


class PublicApiResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    success: bool = False
    data: Any = None
    requires_auth: bool = Field(default=False, alias="requiresAuth")
    access_type: Optional[str] = Field(default=None, alias="accessType")
    message: Optional[str] = None
    token: Optional[str] = None
    otp: Optional[str] = None
    expired: bool = False
    code: Optional[str] = None
    status_code: int = 200

    @field_validator("success", "requires_auth", "expired", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_http(cls, resp: httpx.Response) -> "PublicApiResponse":
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}
        try:
            parsed = cls.model_validate(body)
        except ValidationError as exc:
            # Drop only the fields that failed; success, token and data must survive a bad side field.
            rejected = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            log_event(logger, "public_api_fields_dropped", level="warning", fields=sorted(map(str, rejected)))
            try:
                parsed = cls.model_validate({k: v for k, v in body.items() if k not in rejected})
            except ValidationError:
                parsed = cls()
        parsed.status_code = resp.status_code
        if resp.status_code >= 300:
            parsed.success = False
        return parsed


def _segment(handle: str) -> str:
    return quote(str(handle or "").strip(), safe="")


class PublicProfileClient:
    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> PublicApiResponse:
        try:
            resp = await self._http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            log_event(logger, "public_api_timeout", level="warning", method=method, path=path)
            raise ShareNetworkError("The request timed out. Please try again.") from exc
        except httpx.TransportError as exc:
            log_event(
                logger,
                "public_api_transport_error",
                level="warning",
                method=method,
                path=path,
                error=type(exc).__name__,
            )
            raise ShareNetworkError() from exc

        if resp.status_code >= 500:
            logger.error("Public API %s %s failed: %s %s", method, path, resp.status_code, resp.text[:500])
        return PublicApiResponse.from_http(resp)

    async def get_public_profile(self, handle: str, token: Optional[str] = None) -> PublicApiResponse:
        params = {"token": token} if token else None
        return await self._request("GET", f"/profile/{_segment(handle)}", params=params)

    async def verify_password(self, handle: str, password: str) -> PublicApiResponse:
        return await self._request(
            "POST",
            f"/profile/{_segment(handle)}/verify-password",
            json={"password": password},
        )

    async def request_otp(self, handle: str, email: Optional[str] = None) -> PublicApiResponse:
        return await self._request(
            "POST",
            f"/profile/{_segment(handle)}/request-otp",
            json={"email": email or None},
        )

    async def verify_otp(self, handle: str, otp: str) -> PublicApiResponse:
        return await self._request(
            "POST",
            f"/profile/{_segment(handle)}/verify-otp",
            json={"otp": otp},
        )

    async def get_emergency_profile(self, handle: str, token: str) -> PublicApiResponse:
        return await self._request("GET", f"/emergency/{_segment(handle)}", params={"token": token})
