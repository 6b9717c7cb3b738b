from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from share_client.observability import log_event

from .errors import MissingCredentialError, ProfileUnavailableError
from .models import CHALLENGE_KINDS, ChallengeRequired, ProfileView, ResolveOutcome

if TYPE_CHECKING:
    from share_client.public_profile import PublicProfileClient

logger = logging.getLogger("access_gate")


class AccessGate:
    """Decides whether a visitor sees a profile or has to pass a challenge.

    Only GET requests are issued, so ``resolve`` can be repeated freely.
    """

    def __init__(self, api: "PublicProfileClient") -> None:
        self._api = api

    async def resolve(self, handle: str, token: str | None = None) -> ResolveOutcome:
        cleaned = (handle or "").strip()
        if not cleaned:
            raise ProfileUnavailableError("Profile not found")

        reply = await self._api.get_public_profile(cleaned, token or None)
        if reply.success:
            log_event(logger, "share_profile_resolved", handle=cleaned, with_token=bool(token))
            return ProfileView.from_payload(reply.data)

        if reply.requires_auth and reply.status_code in (200, 401):
            kind = (reply.access_type or "").strip().lower()
            if kind in CHALLENGE_KINDS:
                log_event(logger, "share_challenge_required", handle=cleaned, challenge=kind, with_token=bool(token))
                return ChallengeRequired(access_type=kind)
            logger.warning("Auth required for %s without a usable access type: %r", cleaned, reply.access_type)

        log_event(logger, "share_profile_unavailable", level="warning", handle=cleaned, status_code=reply.status_code)
        raise ProfileUnavailableError(reply.message)

    async def resolve_emergency(self, handle: str, token: str) -> ProfileView:
        cleaned = (handle or "").strip()
        if not cleaned:
            raise ProfileUnavailableError("Profile not found")
        if not (token or "").strip():
            raise MissingCredentialError("Emergency access token is required")

        reply = await self._api.get_emergency_profile(cleaned, token.strip())
        if not reply.success:
            log_event(logger, "emergency_profile_unavailable", level="warning", handle=cleaned, status_code=reply.status_code)
            raise ProfileUnavailableError(reply.message)
        log_event(logger, "emergency_profile_resolved", handle=cleaned)
        return ProfileView.from_payload(reply.data, emergency=True)
