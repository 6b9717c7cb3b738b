from __future__ import annotations

from typing import Any
from urllib.parse import quote


def share_username(profile: dict[str, Any] | None) -> str | None:
    profile = profile or {}
    data = profile.get("data") if isinstance(profile.get("data"), dict) else profile
    username = str(data.get("username") or "").strip()
    return username or None


def build_share_url(frontend_base_url: str, username: str | None) -> str:
    handle = (username or "").strip()
    if not handle:
        raise ValueError("Username Not Set: set a username in your profile settings to generate a share link.")
    return f"{frontend_base_url.rstrip('/')}/share/{quote(handle, safe='')}"
