from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable

from share_access_core.errors import MissingCredentialError
from share_access_core.models import (
    EmergencyPolicy,
    SharePolicy,
    normalize_access_type,
    normalize_field_name,
)
from share_access_core.time_utils import utc_now

from .expiry import expiry_preset_for, resolve_expiry
from .optimistic import OptimisticUpdater, UpdateResult

ProfileUpdater = Callable[[dict[str, Any]], Awaitable[Any]]

_LINK_SETTINGS = "shareLinkSettings"
_EMERGENCY_MODE = "emergencyMode"


def _set_membership(fields: list[str], name: str, member: bool) -> None:
    if member and name not in fields:
        fields.append(name)
    elif not member and name in fields:
        fields.remove(name)


class ProfileConfigurator:
    """Owner-side editor for the share policy.

    Each setter sends one partial profile update. Switching the profile off
    leaves access type and public fields untouched so switching it back on
    restores them.
    """

    def __init__(
        self,
        update_profile: ProfileUpdater,
        profile: dict[str, Any] | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.policy = SharePolicy.from_profile(profile)
        self.owner_email = str((profile or {}).get("email") or "").strip() or None
        self._clock = clock
        self._updater = OptimisticUpdater(update_profile)

    @property
    def last_error(self) -> str | None:
        return self._updater.last_error

    def in_flight(self, key: str) -> bool:
        return self._updater.in_flight(key)

    @property
    def expiry_preset(self) -> str:
        return expiry_preset_for(self.policy.expires_at, self._clock())

    def _link_settings(self, **overrides: Any) -> dict[str, Any]:
        return {"shareLinkSettings": {**self.policy.link_settings_payload(), **overrides}}

    async def set_public(self, value: bool) -> UpdateResult:
        def write(v: bool) -> None:
            self.policy.is_public = v

        return await self._updater.apply(
            "isPublicProfile",
            read=lambda: self.policy.is_public,
            write=write,
            compute=lambda _prev: bool(value),
            payload=lambda: {"isPublicProfile": self.policy.is_public},
        )

    async def set_access_type(self, access_type: str) -> UpdateResult:
        target = normalize_access_type(access_type)

        def write(v: str) -> None:
            self.policy.access_type = v

        return await self._updater.apply(
            "accessType",
            group=_LINK_SETTINGS,
            read=lambda: self.policy.access_type,
            write=write,
            compute=lambda _prev: target,
            payload=self._link_settings,
        )

    async def set_password(self, password: str, confirm: str) -> UpdateResult:
        if not password:
            raise MissingCredentialError("Please enter a password")
        if password != confirm:
            raise ValueError("Passwords do not match")

        def write(v: bool) -> None:
            self.policy.has_password = v

        return await self._updater.apply(
            "password",
            group=_LINK_SETTINGS,
            read=lambda: self.policy.has_password,
            write=write,
            compute=lambda _prev: True,
            payload=lambda: self._link_settings(password=password),
        )

    async def set_expiry(self, expiry: str | datetime | None) -> UpdateResult:
        target = resolve_expiry(expiry, self._clock())

        def write(v: datetime | None) -> None:
            self.policy.expires_at = v

        return await self._updater.apply(
            "expiresAt",
            group=_LINK_SETTINGS,
            read=lambda: self.policy.expires_at,
            write=write,
            compute=lambda _prev: target,
            payload=self._link_settings,
        )

    async def toggle_public_field(self, field_name: str) -> UpdateResult:
        name = normalize_field_name(field_name)

        def write(member: bool) -> None:
            _set_membership(self.policy.public_fields, name, member)

        return await self._updater.apply(
            f"publicFields:{name}",
            group="publicFields",
            read=lambda: name in self.policy.public_fields,
            write=write,
            compute=lambda member: not member,
            payload=lambda: {"publicFields": list(self.policy.public_fields)},
        )

    def warnings(self) -> list[str]:
        found: list[str] = []
        if self.policy.access_type == "password" and not self.policy.has_password:
            found.append("password_not_set")
        if self.policy.access_type == "otp" and not self.owner_email:
            found.append("missing_contact_email")
        if self.policy.is_public and self.policy.is_expired(self._clock()):
            found.append("link_expired")
        return found


class EmergencyConfigurator:
    def __init__(self, update_profile: ProfileUpdater, profile: dict[str, Any] | None = None) -> None:
        self.policy = EmergencyPolicy.from_profile(profile)
        self._updater = OptimisticUpdater(update_profile)

    @property
    def last_error(self) -> str | None:
        return self._updater.last_error

    def in_flight(self, key: str) -> bool:
        return self._updater.in_flight(key)

    def _payload(self) -> dict[str, Any]:
        return {"emergencyMode": self.policy.to_payload()}

    async def set_enabled(self, value: bool) -> UpdateResult:
        def write(v: bool) -> None:
            self.policy.enabled = v

        return await self._updater.apply(
            "emergencyMode.enabled",
            group=_EMERGENCY_MODE,
            read=lambda: self.policy.enabled,
            write=write,
            compute=lambda _prev: bool(value),
            payload=self._payload,
        )

    async def set_show_critical_only(self, value: bool) -> UpdateResult:
        def write(v: bool) -> None:
            self.policy.show_critical_only = v

        return await self._updater.apply(
            "emergencyMode.showCriticalOnly",
            group=_EMERGENCY_MODE,
            read=lambda: self.policy.show_critical_only,
            write=write,
            compute=lambda _prev: bool(value),
            payload=self._payload,
        )

    async def toggle_critical_field(self, field_name: str) -> UpdateResult:
        name = normalize_field_name(field_name)

        def write(member: bool) -> None:
            _set_membership(self.policy.critical_fields, name, member)

        return await self._updater.apply(
            f"emergencyMode.criticalFields:{name}",
            group=_EMERGENCY_MODE,
            read=lambda: name in self.policy.critical_fields,
            write=write,
            compute=lambda member: not member,
            payload=self._payload,
        )
