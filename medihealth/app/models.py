"""Domain records for the MediHealth booking site."""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$")


class AppointmentStatus(str, Enum):
    """Lifecycle tag of an appointment; the client always sets the next value."""

    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"


class Service(str, Enum):
    """Services offered by the clinic, in slug form."""

    GENERAL_CHECKUP = "general-checkup"
    SPECIALIST_CONSULTATION = "specialist-consultation"
    VACCINATION = "vaccination"
    DENTAL_CARE = "dental-care"
    PEDIATRICS = "pediatrics"
    MENTAL_HEALTH = "mental-health"
    PHYSIOTHERAPY = "physiotherapy"
    LAB_TESTS = "lab-tests"


class TipCategory(str, Enum):
    """Closed set of health tip categories."""

    NUTRITION = "nutrition"
    FITNESS = "fitness"
    SLEEP = "sleep"
    MENTAL_HEALTH = "mental-health"
    HYDRATION = "hydration"
    PREVENTION = "prevention"


ALL_CATEGORIES = "all"


def format_service(slug: str) -> str:
    """Turn a service slug such as ``general-checkup`` into ``General Checkup``."""

    words = slug.replace("-", " ")
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), words)


def normalize_date(value: str, *, not_before: date | None = None) -> str:
    """Return ``value`` as a zero-padded ISO calendar date or raise ``ValueError``."""

    text = (value or "").strip()
    if not _DATE_PATTERN.match(text):
        raise ValueError("Appointment date must use the YYYY-MM-DD format.")
    try:
        parsed = date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"{text} is not a valid calendar date.") from exc
    if not_before is not None and parsed < not_before:
        raise ValueError("Appointment date cannot be in the past.")
    return parsed.isoformat()


def normalize_time(value: str) -> str:
    """Return ``value`` as a 24-hour ``HH:MM`` string or raise ``ValueError``."""

    text = (value or "").strip()
    match = _TIME_PATTERN.match(text)
    if not match:
        raise ValueError("Appointment time must use the 24-hour HH:MM format.")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"{text} is not a valid time of day.")
    return f"{hours:02d}:{minutes:02d}"


@dataclass(slots=True)
class Appointment:
    """A scheduled clinic visit as stored by the remote data service."""

    first_name: str
    last_name: str
    email: str
    service: str
    appointment_date: str
    appointment_time: str
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    phone: str | None = None
    notes: str | None = None
    user_id: str | None = None
    id: str | None = None

    @property
    def service_name(self) -> str:
        return format_service(self.service)

    def to_record(self) -> dict[str, Any]:
        """Return the persisted field set, without the store-assigned id."""

        record = asdict(self)
        record.pop("id")
        record["status"] = self.status.value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Appointment":
        """Build an appointment from a row returned by the data service."""

        raw_time = str(record.get("appointment_time") or "")
        try:
            time_value = normalize_time(raw_time)
        except ValueError:
            time_value = raw_time
        identifier = record.get("id")
        return cls(
            id=str(identifier) if identifier is not None else None,
            first_name=record.get("first_name") or "",
            last_name=record.get("last_name") or "",
            email=record.get("email") or "",
            phone=record.get("phone"),
            service=record.get("service") or "",
            appointment_date=str(record.get("appointment_date") or ""),
            appointment_time=time_value,
            notes=record.get("notes"),
            user_id=record.get("user_id"),
            status=AppointmentStatus(record.get("status") or AppointmentStatus.CONFIRMED.value),
        )


@dataclass(slots=True)
class AuthSession:
    """The authenticated identity for the current visitor."""

    user_id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict)
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def display_name(self) -> str:
        parts = [self.metadata.get("first_name"), self.metadata.get("last_name")]
        return " ".join(part for part in parts if part) or "User"

    @property
    def initial(self) -> str:
        return self.display_name[:1].upper()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "AuthSession":
        return cls(
            user_id=payload["user_id"],
            email=payload["email"],
            metadata=dict(payload.get("metadata") or {}),
            access_token=payload.get("access_token"),
            refresh_token=payload.get("refresh_token"),
        )

    @classmethod
    def from_auth_payload(cls, user: dict[str, Any], session: dict[str, Any] | None = None) -> "AuthSession":
        """Build a session from the identity provider's ``user``/``session`` objects."""

        session = session or {}
        return cls(
            user_id=str(user["id"]),
            email=user.get("email") or "",
            metadata=dict(user.get("user_metadata") or {}),
            access_token=session.get("access_token"),
            refresh_token=session.get("refresh_token"),
        )


@dataclass(frozen=True, slots=True)
class HealthTip:
    """Static health tip bundled with the site."""

    id: int
    category: TipCategory
    emoji: str
    title: str
    body: str

    @property
    def category_label(self) -> str:
        return self.category.value.replace("-", " ")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "emoji": self.emoji,
            "title": self.title,
            "body": self.body,
        }


def today() -> date:
    """Current local calendar date; patched in tests."""

    return datetime.now().date()
