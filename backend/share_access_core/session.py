from __future__ import annotations

import logging
from typing import Any

from share_client.observability import log_event

from .challenge import ChallengeResolver, OtpChallenge, OtpRequestResult
from .errors import (
    ChallengeLoopError,
    ChallengeStateError,
    CredentialRejectedError,
    ProfileUnavailableError,
    ShareAccessError,
    ShareNetworkError,
)
from .gate import AccessGate
from .models import AccessGrant, Challenging, ChallengeRequired, Failed, Loading, ScreenState, Viewing
from .projector import ProfileProjector

logger = logging.getLogger("shared_profile_session")

_CHALLENGE_COPY = {
    "password": ("Password Required", "This profile is protected. Please enter the password to continue."),
    "otp": ("OTP Verification Required", "This profile is protected. Please enter your email and OTP to continue."),
}


def _error_kind(exc: ShareAccessError) -> str:
    if isinstance(exc, ShareNetworkError):
        return "network"
    if isinstance(exc, ChallengeLoopError):
        return "inconsistent"
    if isinstance(exc, ProfileUnavailableError):
        return "unavailable"
    return "load_error"


class SharedProfileSession:
    """State of one visitor's share screen for one handle.

    The access grant lives only on this object. ``close`` drops it and marks
    every request still in flight as stale, so late responses cannot change
    what the screen shows.
    """

    def __init__(
        self,
        handle: str,
        *,
        gate: AccessGate,
        resolver: ChallengeResolver,
        projector: ProfileProjector | None = None,
    ) -> None:
        self.handle = (handle or "").strip()
        self._gate = gate
        self._resolver = resolver
        self._projector = projector or ProfileProjector()
        self.state: ScreenState = Loading()
        self.last_error: str | None = None
        self.password_busy = False
        self.otp: OtpChallenge | None = None
        self._grant: AccessGrant | None = None
        self._passed_challenge: str | None = None
        self._generation = 0
        self._closed = False
        self._loaded_once = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_grant(self) -> bool:
        return self._grant is not None

    @property
    def loaded(self) -> bool:
        return self._loaded_once

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation

    def _fail(self, exc: ShareAccessError) -> ScreenState:
        self._grant = None
        self._passed_challenge = None
        self.otp = None
        self.state = Failed(error=_error_kind(exc), message=exc.message, retryable=exc.retryable)
        log_event(logger, "share_screen_failed", level="warning", handle=self.handle, error=self.state.error)
        return self.state

    def _require_challenge(self, kind: str) -> None:
        if self._closed:
            raise ChallengeStateError("The share screen is closed.")
        if not isinstance(self.state, Challenging) or self.state.challenge != kind:
            raise ChallengeStateError(f"No {kind} challenge is active.")

    async def load(self) -> ScreenState:
        if self._closed:
            return self.state
        generation = self._generation
        passed = self._passed_challenge
        token = self._grant.token if self._grant else None
        self.state = Loading()
        self._loaded_once = True

        try:
            outcome = await self._gate.resolve(self.handle, token)
        except ShareAccessError as exc:
            if self._is_stale(generation):
                return self.state
            return self._fail(exc)

        if self._is_stale(generation):
            return self.state

        self._passed_challenge = None
        if isinstance(outcome, ChallengeRequired):
            if passed is not None:
                return self._fail(ChallengeLoopError())
            self._grant = None
            if outcome.access_type == "otp" and (self.otp is None or self.otp.state == "verified"):
                self.otp = OtpChallenge(self.handle, self._resolver)
            self.state = Challenging(challenge=outcome.access_type)
            return self.state

        self.last_error = None
        self.state = Viewing(view=outcome)
        return self.state

    async def _accept(self, grant: AccessGrant, kind: str) -> ScreenState:
        self._grant = grant
        self._passed_challenge = kind
        self.last_error = None
        return await self.load()

    async def submit_password(self, password: str) -> ScreenState:
        self._require_challenge("password")
        if self.password_busy:
            raise ChallengeStateError("Password verification is already in progress.")
        generation = self._generation
        self.password_busy = True
        try:
            grant = await self._resolver.verify_password(self.handle, password)
        except CredentialRejectedError as exc:
            if not self._is_stale(generation):
                self.last_error = exc.message
            return self.state
        except ShareAccessError as exc:
            if self._is_stale(generation):
                return self.state
            return self._fail(exc)
        finally:
            self.password_busy = False

        if self._is_stale(generation):
            return self.state
        return await self._accept(grant, "password")

    async def request_otp(self, email: str | None = None) -> OtpRequestResult | None:
        self._require_challenge("otp")
        return await self._run_otp_request(self.otp.request, email)

    async def resend_otp(self) -> OtpRequestResult | None:
        self._require_challenge("otp")
        return await self._run_otp_request(self.otp.resend)

    async def _run_otp_request(self, action, *args: Any) -> OtpRequestResult | None:
        generation = self._generation
        try:
            result = await action(*args)
        except CredentialRejectedError as exc:
            if not self._is_stale(generation):
                self.last_error = exc.message
            return None
        except ShareAccessError as exc:
            if not self._is_stale(generation):
                self._fail(exc)
            return None
        if not self._is_stale(generation):
            self.last_error = None
        return result

    def enter_otp(self, code: str) -> None:
        self._require_challenge("otp")
        self.otp.enter_code(code)

    async def submit_otp(self, code: str | None = None) -> ScreenState:
        self._require_challenge("otp")
        if code is not None:
            self.otp.enter_code(code)
        generation = self._generation
        try:
            grant = await self.otp.verify()
        except CredentialRejectedError as exc:
            if not self._is_stale(generation):
                self.last_error = exc.message
            return self.state
        except ShareAccessError as exc:
            if self._is_stale(generation):
                return self.state
            return self._fail(exc)

        if self._is_stale(generation):
            return self.state
        return await self._accept(grant, "otp")

    async def retry(self) -> ScreenState:
        if self._closed:
            raise ChallengeStateError("The share screen is closed.")
        self._generation += 1
        self._grant = None
        self._passed_challenge = None
        self.otp = None
        self.last_error = None
        return await self.load()

    def close(self) -> None:
        self._closed = True
        self._generation += 1
        self._grant = None
        self._passed_challenge = None
        self.otp = None

    def render(self) -> dict[str, Any]:
        state = self.state
        if isinstance(state, Loading):
            return {"screen": "loading", "message": "Loading profile..."}
        if isinstance(state, Viewing):
            return {"screen": "profile", "profile": self._projector.project(state.view).as_dict()}
        if isinstance(state, Challenging):
            title, subtitle = _CHALLENGE_COPY[state.challenge]
            body: dict[str, Any] = {
                "screen": "challenge",
                "challenge": state.challenge,
                "title": title,
                "subtitle": subtitle,
                "error": self.last_error,
                "busy": self.password_busy,
            }
            if state.challenge == "otp" and self.otp is not None:
                body["busy"] = self.otp.busy
                body["otp"] = {
                    "step": self.otp.state,
                    "email": self.otp.email,
                    "code": self.otp.code,
                    "message": self.otp.message,
                    "can_resend": self.otp.state in {"requested", "expired"},
                }
            return body
        if isinstance(state, Failed):
            return {
                "screen": "error",
                "title": "Error Loading Profile",
                "error": state.error,
                "message": state.message,
                "retryable": state.retryable,
            }
        raise TypeError(f"Unhandled screen state: {state!r}")
