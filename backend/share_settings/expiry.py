from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from share_access_core.time_utils import utc_now

EXPIRY_PRESETS = {"never": None, "7days": 7, "30days": 30, "90days": 90}


def resolve_expiry(value: str | datetime | None, now: datetime | None = None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    preset = str(value).strip().lower()
    if preset not in EXPIRY_PRESETS:
        raise ValueError(f"Unsupported expiry preset: {value!r}")
    days = EXPIRY_PRESETS[preset]
    if days is None:
        return None
    return (now or utc_now()) + timedelta(days=days)


def expiry_preset_for(expires_at: datetime | None, now: datetime | None = None) -> str:
    """Bucket a stored expiry into the closest preset the settings screen offers."""
    if expires_at is None:
        return "never"
    remaining = (expires_at - (now or utc_now())).total_seconds()
    days = math.ceil(remaining / 86400)
    if days <= 7:
        return "7days"
    if days <= 30:
        return "30days"
    if days <= 90:
        return "90days"
    return "never"
