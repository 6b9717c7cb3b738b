"""Shared HTTP clients for the public and the owner-side API.

One pooled ``httpx.AsyncClient`` per audience: the public client carries no
credentials at all, the private client is the only place a bearer token is
attached. Tests inject their own transport.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from .config import ShareClientSettings


def build_limits(settings: ShareClientSettings) -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )


def build_public_client(
    settings: ShareClientSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.public_root,
        timeout=httpx.Timeout(settings.public_timeout_seconds),
        limits=build_limits(settings),
        transport=transport,
    )


def build_private_client(
    settings: ShareClientSettings,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.api_root,
        headers={"Content-Type": "application/json"},
        timeout=httpx.Timeout(settings.private_timeout_seconds),
        limits=build_limits(settings),
        transport=transport,
    )


class ClientHolder:
    """Lazily builds one public client and keeps it for the process lifetime."""

    def __init__(
        self,
        settings: ShareClientSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()

    async def get(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        async with self._lock:
            if self._client is None:
                self._client = build_public_client(self.settings, transport=self._transport)
            return self._client

    async def aclose(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        finally:
            self._client = None
