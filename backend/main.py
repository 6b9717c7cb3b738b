from __future__ import annotations

import logging
import os
import re
import uuid
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Cookie, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from share_access_core import (
    AccessGate,
    ChallengeResolver,
    ChallengeStateError,
    MissingCredentialError,
    ProfileProjector,
    ProfileUnavailableError,
    ShareNetworkError,
    SharedProfileSession,
)
from share_client import ClientHolder, PublicProfileClient, ShareClientSettings, bootstrap_local_env, log_event

bootstrap_local_env()

logger = logging.getLogger("share_viewer")

VIEWER_COOKIE = "share_viewer"
_VIEWER_ID_RE = re.compile(r"^[a-f0-9]{32}$")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class PasswordSubmission(BaseModel):
    password: str = ""


class OtpRequestBody(BaseModel):
    email: str | None = None


class OtpSubmission(BaseModel):
    otp: str = ""


class ShareViewerApp:
    """Holds the visitor share screens of this process, in memory only."""

    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = ShareClientSettings.from_env()
        self.clients = ClientHolder(self.settings, transport=transport)
        self.projector = ProfileProjector()
        self.max_sessions = max(1, int(os.getenv("HEALTHSHARE_MAX_VIEWER_SESSIONS", "1000") or "1000"))
        self.expose_dev_otp = _env_flag("HEALTHSHARE_EXPOSE_DEV_OTP")
        self._sessions: dict[tuple[str, str], SharedProfileSession] = {}

    async def api(self) -> PublicProfileClient:
        return PublicProfileClient(await self.clients.get())

    async def gate(self) -> AccessGate:
        return AccessGate(await self.api())

    async def session_for(self, viewer_id: str, handle: str) -> SharedProfileSession:
        key = (viewer_id, handle.strip())
        session = self._sessions.pop(key, None)
        if session is not None and not session.closed:
            # Re-insert so eviction order follows last use.
            self._sessions[key] = session
            return session
        api = await self.api()
        session = SharedProfileSession(
            handle,
            gate=AccessGate(api),
            resolver=ChallengeResolver(api),
            projector=self.projector,
        )
        self._sessions[key] = session
        while len(self._sessions) > self.max_sessions:
            oldest = next(iter(self._sessions))
            self._sessions.pop(oldest).close()
        return session

    def close(self, viewer_id: str, handle: str) -> bool:
        session = self._sessions.pop((viewer_id, handle.strip()), None)
        if session is None:
            return False
        session.close()
        return True

    async def shutdown(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        await self.clients.aclose()


container = ShareViewerApp()


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    await container.shutdown()


app = FastAPI(title="Health Profile Share Viewer", lifespan=_lifespan)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:8081").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _viewer_id(share_viewer: str | None, response: Response) -> str:
    candidate = (share_viewer or "").strip().lower()
    if _VIEWER_ID_RE.fullmatch(candidate):
        return candidate
    viewer_id = uuid.uuid4().hex
    response.set_cookie(VIEWER_COOKIE, viewer_id, httponly=True, samesite="lax")
    return viewer_id


def _validated_handle(handle: str) -> str:
    cleaned = handle.strip()
    if not cleaned or len(cleaned) > 64:
        raise HTTPException(status_code=400, detail="Invalid profile handle")
    return cleaned


async def _active_session(share_viewer: str | None, response: Response, handle: str) -> SharedProfileSession:
    viewer_id = _viewer_id(share_viewer, response)
    session = await container.session_for(viewer_id, _validated_handle(handle))
    if not session.loaded:
        await session.load()
    return session


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "api_root": container.settings.api_root}


@app.get("/share/{handle}")
async def get_share_screen(handle: str, response: Response, share_viewer: str | None = Cookie(default=None)):
    session = await _active_session(share_viewer, response, handle)
    return session.render()


@app.post("/share/{handle}/password")
async def submit_password(
    handle: str,
    payload: PasswordSubmission,
    response: Response,
    share_viewer: str | None = Cookie(default=None),
):
    session = await _active_session(share_viewer, response, handle)
    try:
        await session.submit_password(payload.password)
    except MissingCredentialError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ChallengeStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return session.render()


@app.post("/share/{handle}/otp/request")
async def request_otp(
    handle: str,
    payload: OtpRequestBody,
    response: Response,
    share_viewer: str | None = Cookie(default=None),
):
    session = await _active_session(share_viewer, response, handle)
    try:
        result = await session.request_otp(payload.email)
    except ChallengeStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    body = session.render()
    if result is not None:
        body["notice"] = result.message
        if container.expose_dev_otp and result.dev_code:
            body["dev_code"] = result.dev_code
    return body


@app.post("/share/{handle}/otp/resend")
async def resend_otp(handle: str, response: Response, share_viewer: str | None = Cookie(default=None)):
    session = await _active_session(share_viewer, response, handle)
    try:
        result = await session.resend_otp()
    except ChallengeStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    body = session.render()
    if result is not None:
        body["notice"] = result.message
        if container.expose_dev_otp and result.dev_code:
            body["dev_code"] = result.dev_code
    return body


@app.post("/share/{handle}/otp/verify")
async def verify_otp(
    handle: str,
    payload: OtpSubmission,
    response: Response,
    share_viewer: str | None = Cookie(default=None),
):
    session = await _active_session(share_viewer, response, handle)
    try:
        await session.submit_otp(payload.otp)
    except MissingCredentialError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ChallengeStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return session.render()


@app.post("/share/{handle}/retry")
async def retry_share_screen(handle: str, response: Response, share_viewer: str | None = Cookie(default=None)):
    viewer_id = _viewer_id(share_viewer, response)
    session = await container.session_for(viewer_id, _validated_handle(handle))
    await session.retry()
    return session.render()


@app.delete("/share/{handle}")
def close_share_screen(handle: str, response: Response, share_viewer: str | None = Cookie(default=None)):
    viewer_id = _viewer_id(share_viewer, response)
    closed = container.close(viewer_id, _validated_handle(handle))
    log_event(logger, "share_screen_closed", handle=handle.strip(), existed=closed)
    return {"closed": closed}


@app.get("/emergency/{handle}")
async def get_emergency_profile(handle: str, token: str = Query(default="")):
    gate = await container.gate()
    try:
        view = await gate.resolve_emergency(_validated_handle(handle), token)
    except MissingCredentialError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProfileUnavailableError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except ShareNetworkError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return {"screen": "profile", "profile": container.projector.project(view).as_dict()}
