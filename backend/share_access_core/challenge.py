from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from share_client.observability import log_event

from .errors import ChallengeStateError, CredentialRejectedError, MissingCredentialError, ProfileUnavailableError
from .models import AccessGrant

if TYPE_CHECKING:
    from share_client.public_profile import PublicApiResponse, PublicProfileClient

logger = logging.getLogger("challenge_resolver")

_EXPIRED_CODES = {"otp_expired", "expired", "code_expired"}


@dataclass(frozen=True)
class OtpRequestResult:
    message: str
    dev_code: str | None = None


class ChallengeResolver:
    def __init__(self, api: "PublicProfileClient") -> None:
        self._api = api

    async def verify_password(self, handle: str, password: str) -> AccessGrant:
        if not password:
            raise MissingCredentialError("Please enter a password")
        reply = await self._api.verify_password(handle, password)
        return self._grant_from(handle, reply, step="password", fallback="Incorrect password")

    async def request_otp(self, handle: str, email: str | None = None) -> OtpRequestResult:
        reply = await self._api.request_otp(handle, (email or "").strip() or None)
        if reply.status_code == 404:
            raise ProfileUnavailableError(reply.message or "Profile not found")
        if not reply.success:
            log_event(logger, "otp_request_rejected", level="warning", handle=handle, status_code=reply.status_code)
            raise CredentialRejectedError(reply.message or "Failed to request OTP")
        if reply.otp:
            logger.debug("Backend echoed a development OTP for %s", handle)
        log_event(logger, "otp_requested", handle=handle, with_email=bool(email))
        return OtpRequestResult(message=reply.message or "Check your email for the OTP", dev_code=reply.otp)

    async def verify_otp(self, handle: str, code: str) -> AccessGrant:
        if not (code or "").strip():
            raise MissingCredentialError("Please enter the OTP")
        reply = await self._api.verify_otp(handle, code.strip())
        return self._grant_from(handle, reply, step="otp", fallback="Invalid OTP")

    def _grant_from(self, handle: str, reply: "PublicApiResponse", *, step: str, fallback: str) -> AccessGrant:
        if reply.status_code == 404:
            raise ProfileUnavailableError(reply.message or "Profile not found")
        if reply.success and reply.token:
            log_event(logger, "challenge_passed", handle=handle, step=step)
            return AccessGrant(profile_handle=handle, token=reply.token)
        expired = reply.expired or (reply.code or "").strip().lower() in _EXPIRED_CODES
        log_event(
            logger,
            "challenge_rejected",
            level="warning",
            handle=handle,
            step=step,
            status_code=reply.status_code,
            expired=expired,
        )
        raise CredentialRejectedError(reply.message or fallback, expired=expired)


class OtpChallenge:
    """One OTP exchange for one handle: idle -> requested -> verified.

    A rejected code keeps the challenge in ``requested``; a code the server
    declares expired moves it to ``expired`` until the visitor resends.
    """

    _TRANSITIONS = {
        "idle": {"requested"},
        "requested": {"requested", "expired", "verified"},
        "expired": {"requested"},
        "verified": set(),
    }

    def __init__(self, handle: str, resolver: ChallengeResolver) -> None:
        self.handle = handle
        self._resolver = resolver
        self.state = "idle"
        self.email: str | None = None
        self.code = ""
        self.busy = False
        self.message: str | None = None
        self.dev_code: str | None = None

    def _move(self, next_state: str) -> None:
        if next_state not in self._TRANSITIONS[self.state]:
            raise ChallengeStateError(f"Invalid OTP transition: {self.state} -> {next_state}")
        self.state = next_state

    def _begin(self) -> None:
        if self.busy:
            raise ChallengeStateError("An OTP request is already in progress.")
        self.busy = True

    async def request(self, email: str | None = None) -> OtpRequestResult:
        if self.state != "idle":
            raise ChallengeStateError("OTP already requested. Use resend to get a new code.")
        return await self._send(email)

    async def resend(self) -> OtpRequestResult:
        if self.state not in {"requested", "expired"}:
            raise ChallengeStateError("Request an OTP before resending.")
        return await self._send(self.email)

    async def _send(self, email: str | None) -> OtpRequestResult:
        self._begin()
        try:
            result = await self._resolver.request_otp(self.handle, email)
        finally:
            self.busy = False
        self.email = (email or "").strip() or None
        self.message = result.message
        self.dev_code = result.dev_code
        self._move("requested")
        return result

    def enter_code(self, code: str) -> None:
        if self.state == "verified":
            raise ChallengeStateError("OTP already verified.")
        self.code = str(code or "")

    async def verify(self) -> AccessGrant:
        if self.state == "expired":
            raise ChallengeStateError("The code has expired. Resend to get a new one.")
        if self.state != "requested":
            raise ChallengeStateError("Request an OTP first.")
        if not self.code.strip():
            raise MissingCredentialError("Please enter the OTP")
        self._begin()
        try:
            grant = await self._resolver.verify_otp(self.handle, self.code)
        except CredentialRejectedError as exc:
            self.message = exc.message
            if exc.expired:
                self._move("expired")
            raise
        finally:
            self.busy = False
        self._move("verified")
        self.code = ""
        self.message = None
        return grant
