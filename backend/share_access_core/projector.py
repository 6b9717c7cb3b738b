from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from .models import ProfileView
from .time_utils import parse_iso

EMERGENCY_BANNER = "Emergency Mode - Critical Information Only"
EMPTY_MESSAGE = "No additional information available"


@dataclass(frozen=True)
class InfoItem:
    key: str
    label: str
    value: str
    details: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProjectedProfile:
    name: str
    initial: str
    avatar_url: str | None
    date_of_birth: str | None
    gender: str | None
    items: list[InfoItem]
    banner: str | None
    empty_message: str | None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _format_date(value: str | None) -> str | None:
    if not value:
        return None
    parsed = parse_iso(value)
    if parsed is None:
        return str(value)
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def _format_list(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        parts = []
        for entry in value:
            if isinstance(entry, dict):
                entry = entry.get("name") or entry.get("type")
            if entry:
                parts.append(str(entry))
        return ", ".join(parts)
    return str(value)


def _format_metric(metric: Any) -> str | None:
    if not isinstance(metric, dict):
        return str(metric) if metric else None
    label = metric.get("type") or metric.get("name")
    value = metric.get("value")
    if label is None or value is None:
        return None
    unit = metric.get("unit")
    return f"{label}: {value} {unit}".strip() if unit else f"{label}: {value}"


class ProfileProjector:
    """Turns a server-filtered profile into display rows.

    Applies no visibility policy of its own: every row comes from a field the
    server sent, and a missing field simply produces no row.
    """

    def project(self, view: ProfileView) -> ProjectedProfile:
        name = view.name or "User"
        items: list[InfoItem] = []

        if view.blood_type:
            items.append(InfoItem("bloodType", "Blood Type", str(view.blood_type)))
        if view.allergies:
            items.append(InfoItem("allergies", "Allergies", _format_list(view.allergies)))
        if view.chronic_conditions:
            items.append(InfoItem("chronicConditions", "Chronic Conditions", _format_list(view.chronic_conditions)))
        if view.emergency_contact:
            contact = view.emergency_contact
            details = [part for part in (contact.phone, contact.relationship) if part]
            items.append(
                InfoItem("emergencyContact", "Emergency Contact", contact.name or contact.email or "", details)
            )
        if view.medications:
            items.append(InfoItem("medications", "Medications", _format_list(view.medications)))
        if view.health_metrics:
            metrics = view.health_metrics if isinstance(view.health_metrics, list) else [view.health_metrics]
            rendered = [line for line in (_format_metric(m) for m in metrics) if line]
            if rendered:
                items.append(InfoItem("healthMetrics", "Health Metrics", rendered[0], rendered[1:]))

        return ProjectedProfile(
            name=name,
            initial=name[:1].upper() or "U",
            avatar_url=view.profile_picture,
            date_of_birth=_format_date(view.date_of_birth),
            gender=view.gender,
            items=items,
            banner=EMERGENCY_BANNER if view.emergency_restricted else None,
            empty_message=None if items else EMPTY_MESSAGE,
        )
