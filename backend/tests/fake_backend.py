from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from share_access_core.time_utils import parse_iso, to_iso, utc_now


@dataclass
class FakeProfile:
    username: str
    name: str
    email: str | None = None
    is_public: bool = True
    access_type: str = "public"
    password: str | None = None
    expires_at: datetime | None = None
    public_fields: list[str] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)
    emergency_mode: dict[str, Any] = field(
        default_factory=lambda: {
            "enabled": False,
            "showCriticalOnly": True,
            "criticalFields": ["bloodType", "allergies", "emergencyContact", "chronicConditions"],
        }
    )

    def effectively_public(self) -> bool:
        if not self.is_public:
            return False
        return self.expires_at is None or self.expires_at > utc_now()

    def owner_payload(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "isPublicProfile": self.is_public,
            "shareLinkSettings": {
                "accessType": self.access_type,
                "expiresAt": to_iso(self.expires_at) if self.expires_at else None,
                "hasPassword": bool(self.password),
            },
            "publicFields": list(self.public_fields),
            "emergencyMode": dict(self.emergency_mode),
            **self.fields,
        }


class FakeSharingBackend:
    """In-process stand-in for the remote profile-sharing API."""

    def __init__(self, *, otp_code: str = "482913", echo_otp: bool = False) -> None:
        self.profiles: dict[str, FakeProfile] = {}
        self.visitor_tokens: dict[str, str] = {}
        self.emergency_tokens: dict[str, str] = {}
        self.owner_tokens: dict[str, str] = {}
        self.pending_otps: dict[str, str] = {}
        self.otp_code = otp_code
        self.echo_otp = echo_otp
        self.expire_otps = False
        self.always_require_auth = False
        self.reject_update_keys: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.updates: list[dict[str, Any]] = []
        self.app = self._build_app()

    def add_profile(self, profile: FakeProfile, *, owner_token: str | None = None) -> FakeProfile:
        self.profiles[profile.username] = profile
        if owner_token:
            self.owner_tokens[owner_token] = profile.username
        return profile

    def _issue_token(self, username: str) -> str:
        token = f"vt_{uuid.uuid4().hex}"
        self.visitor_tokens[token] = username
        return token

    def _shareable(self, username: str) -> FakeProfile | None:
        profile = self.profiles.get(username)
        if profile is None or not profile.effectively_public():
            return None
        return profile

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        not_found = {"success": False, "message": "Profile not found or not public"}

        @app.middleware("http")
        async def record_calls(request: Request, call_next):
            self.calls.append((request.method, request.url.path))
            return await call_next(request)

        @app.get("/api/public/profile/{username}")
        def public_profile(username: str, token: str | None = None):
            profile = self._shareable(username)
            if profile is None:
                return JSONResponse(status_code=404, content=not_found)
            gated = profile.access_type in {"password", "otp"}
            token_ok = bool(token) and self.visitor_tokens.get(token) == username
            if gated and (self.always_require_auth or not token_ok):
                return JSONResponse(
                    status_code=401,
                    content={
                        "success": False,
                        "requiresAuth": True,
                        "accessType": profile.access_type,
                        "message": "Authentication required",
                    },
                )
            data = {"name": profile.name, "username": profile.username}
            for name in profile.public_fields:
                if name in profile.fields:
                    data[name] = profile.fields[name]
            return {"success": True, "data": data}

        @app.post("/api/public/profile/{username}/verify-password")
        async def verify_password(username: str, request: Request):
            profile = self._shareable(username)
            if profile is None:
                return JSONResponse(status_code=404, content=not_found)
            body = await request.json()
            if not profile.password or body.get("password") != profile.password:
                return JSONResponse(status_code=401, content={"success": False, "message": "Incorrect password"})
            return {"success": True, "token": self._issue_token(username)}

        @app.post("/api/public/profile/{username}/request-otp")
        async def request_otp(username: str, request: Request):
            profile = self._shareable(username)
            if profile is None:
                return JSONResponse(status_code=404, content=not_found)
            if profile.access_type != "otp":
                return JSONResponse(
                    status_code=400,
                    content={"success": False, "message": "OTP access is not enabled for this profile"},
                )
            self.pending_otps[username] = self.otp_code
            reply: dict[str, Any] = {"success": True, "message": "OTP sent to the profile owner's email"}
            if self.echo_otp:
                reply["otp"] = self.otp_code
            return reply

        @app.post("/api/public/profile/{username}/verify-otp")
        async def verify_otp(username: str, request: Request):
            profile = self._shareable(username)
            if profile is None:
                return JSONResponse(status_code=404, content=not_found)
            body = await request.json()
            pending = self.pending_otps.get(username)
            if pending is None or self.expire_otps:
                return JSONResponse(
                    status_code=400,
                    content={"success": False, "message": "OTP has expired", "expired": True},
                )
            if body.get("otp") != pending:
                return JSONResponse(status_code=401, content={"success": False, "message": "Invalid OTP"})
            self.pending_otps.pop(username, None)
            return {"success": True, "token": self._issue_token(username)}

        @app.get("/api/public/emergency/{username}")
        def emergency_profile(username: str, token: str = ""):
            profile = self.profiles.get(username)
            if profile is None or self.emergency_tokens.get(token) != username:
                return JSONResponse(status_code=404, content={"success": False, "message": "Emergency profile not found"})
            data = {"name": profile.name, "emergencyMode": True}
            for name in profile.emergency_mode.get("criticalFields", []):
                if name in profile.fields:
                    data[name] = profile.fields[name]
            return {"success": True, "data": data}

        def _owner(authorization: str | None) -> FakeProfile | None:
            token = (authorization or "").replace("Bearer", "", 1).strip()
            username = self.owner_tokens.get(token)
            return self.profiles.get(username) if username else None

        @app.get("/api/profile")
        def get_profile(authorization: str | None = Header(default=None)):
            owner = _owner(authorization)
            if owner is None:
                return JSONResponse(status_code=401, content={"success": False, "message": "Unauthorized"})
            return {"success": True, "data": owner.owner_payload()}

        @app.put("/api/profile")
        async def update_profile(request: Request, authorization: str | None = Header(default=None)):
            owner = _owner(authorization)
            if owner is None:
                return JSONResponse(status_code=401, content={"success": False, "message": "Unauthorized"})
            body = await request.json()
            self.updates.append(body)
            if self.reject_update_keys & set(body.keys()):
                return JSONResponse(status_code=400, content={"success": False, "message": "Update rejected"})
            if "isPublicProfile" in body:
                owner.is_public = bool(body["isPublicProfile"])
            if "publicFields" in body:
                owner.public_fields = list(body["publicFields"])
            if "emergencyMode" in body:
                owner.emergency_mode = dict(body["emergencyMode"])
            settings = body.get("shareLinkSettings")
            if isinstance(settings, dict):
                if settings.get("accessType"):
                    owner.access_type = settings["accessType"]
                if "expiresAt" in settings:
                    owner.expires_at = parse_iso(settings.get("expiresAt"))
                if settings.get("password"):
                    owner.password = settings["password"]
            return {"success": True, "data": owner.owner_payload()}

        return app
