from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Union

from .time_utils import parse_iso, to_iso, utc_now


ACCESS_TYPES = ("public", "password", "otp")
CHALLENGE_KINDS = ("password", "otp")

FIELD_NAMES = (
    "bloodType",
    "allergies",
    "emergencyContact",
    "chronicConditions",
    "medications",
    "healthMetrics",
)
PUBLIC_FIELD_OPTIONS = ("bloodType", "allergies", "emergencyContact")
DEFAULT_CRITICAL_FIELDS = ("bloodType", "allergies", "emergencyContact", "chronicConditions")

# Keys the share screen knows how to show; anything else the server sends is kept but never rendered.
PROFILE_VIEW_KEYS = (
    "name",
    "username",
    "profilePicture",
    "dateOfBirth",
    "gender",
    "bloodType",
    "allergies",
    "chronicConditions",
    "emergencyContact",
    "medications",
    "healthMetrics",
    "emergencyMode",
)


def normalize_access_type(value: Any) -> str:
    candidate = str(value or "").strip().lower()
    if candidate not in ACCESS_TYPES:
        raise ValueError(f"Unsupported access type: {value!r}")
    return candidate


def normalize_field_name(value: Any) -> str:
    candidate = str(value or "").strip()
    if candidate not in FIELD_NAMES:
        raise ValueError(f"Unsupported profile field: {value!r}")
    return candidate


def _ordered_fields(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return []
    ordered: list[str] = []
    for value in values:
        name = str(value or "").strip()
        if name in FIELD_NAMES and name not in ordered:
            ordered.append(name)
    return ordered


@dataclass
class SharePolicy:
    is_public: bool = False
    access_type: str = "public"
    has_password: bool = False
    expires_at: datetime | None = None
    public_fields: list[str] = field(default_factory=list)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utc_now())

    def is_effectively_public(self, now: datetime | None = None) -> bool:
        return self.is_public and not self.is_expired(now)

    def challenge_kind(self) -> str | None:
        return self.access_type if self.access_type in CHALLENGE_KINDS else None

    def link_settings_payload(self) -> dict[str, Any]:
        return {
            "accessType": self.access_type,
            "expiresAt": to_iso(self.expires_at) if self.expires_at else None,
        }

    @classmethod
    def from_profile(cls, profile: dict[str, Any] | None) -> "SharePolicy":
        profile = profile or {}
        settings = profile.get("shareLinkSettings") or {}
        try:
            access_type = normalize_access_type(settings.get("accessType") or "public")
        except ValueError:
            access_type = "public"
        return cls(
            is_public=bool(profile.get("isPublicProfile")),
            access_type=access_type,
            has_password=bool(settings.get("hasPassword") or settings.get("passwordSet")),
            expires_at=parse_iso(settings.get("expiresAt")),
            public_fields=_ordered_fields(profile.get("publicFields")),
        )


@dataclass
class EmergencyPolicy:
    enabled: bool = False
    show_critical_only: bool = True
    critical_fields: list[str] = field(default_factory=lambda: list(DEFAULT_CRITICAL_FIELDS))

    def to_payload(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "showCriticalOnly": self.show_critical_only,
            "criticalFields": list(self.critical_fields),
        }

    @classmethod
    def from_profile(cls, profile: dict[str, Any] | None) -> "EmergencyPolicy":
        raw = (profile or {}).get("emergencyMode")
        if not isinstance(raw, dict):
            return cls()
        critical = raw.get("criticalFields")
        return cls(
            enabled=bool(raw.get("enabled")),
            show_critical_only=bool(raw.get("showCriticalOnly", True)),
            critical_fields=_ordered_fields(critical) if critical is not None else list(DEFAULT_CRITICAL_FIELDS),
        )


@dataclass(frozen=True)
class AccessGrant:
    profile_handle: str
    token: str = field(repr=False)


@dataclass(frozen=True)
class EmergencyContact:
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    relationship: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "EmergencyContact | None":
        if not isinstance(payload, dict):
            return None
        contact = cls(
            name=payload.get("name") or None,
            phone=payload.get("phone") or None,
            email=payload.get("email") or None,
            relationship=payload.get("relationship") or None,
        )
        if not any((contact.name, contact.phone, contact.email, contact.relationship)):
            return None
        return contact


@dataclass(frozen=True)
class ProfileView:
    name: str | None = None
    username: str | None = None
    profile_picture: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    blood_type: str | None = None
    allergies: Any = None
    chronic_conditions: Any = None
    emergency_contact: EmergencyContact | None = None
    medications: Any = None
    health_metrics: Any = None
    emergency_restricted: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any, *, emergency: bool = False) -> "ProfileView":
        data = payload if isinstance(payload, dict) else {}
        emergency_mode = data.get("emergencyMode")
        if isinstance(emergency_mode, dict):
            emergency_mode = emergency_mode.get("enabled")
        return cls(
            name=data.get("name") or None,
            username=data.get("username") or None,
            profile_picture=data.get("profilePicture") or None,
            date_of_birth=data.get("dateOfBirth") or None,
            gender=data.get("gender") or None,
            blood_type=data.get("bloodType") or None,
            allergies=data.get("allergies") or None,
            chronic_conditions=data.get("chronicConditions") or None,
            emergency_contact=EmergencyContact.from_payload(data.get("emergencyContact")),
            medications=data.get("medications") or None,
            health_metrics=data.get("healthMetrics") or None,
            emergency_restricted=emergency or bool(emergency_mode),
            extra={k: v for k, v in data.items() if k not in PROFILE_VIEW_KEYS},
        )


@dataclass(frozen=True)
class ChallengeRequired:
    access_type: str


ResolveOutcome = Union[ProfileView, ChallengeRequired]


@dataclass(frozen=True)
class Loading:
    kind: ClassVar[str] = "loading"


@dataclass(frozen=True)
class Viewing:
    view: ProfileView
    kind: ClassVar[str] = "viewing"


@dataclass(frozen=True)
class Challenging:
    challenge: str
    kind: ClassVar[str] = "challenging"


@dataclass(frozen=True)
class Failed:
    error: str
    message: str
    retryable: bool = False
    kind: ClassVar[str] = "failed"


ScreenState = Union[Loading, Viewing, Challenging, Failed]
