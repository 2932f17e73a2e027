"""
Domain models for host assignment.

Hosts are the bookable video-conferencing accounts tracked by the registry;
session windows are the read-only slice of the external session log that the
conflict checker and reconciler need.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum


class SessionStatus(StrEnum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that hold a host slot / calendar window
COMMITTED_STATUSES: tuple[str, ...] = (SessionStatus.SCHEDULED.value, SessionStatus.LIVE.value)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(slots=True)
class HostUsage:
    """Usage stats stamped on every successful assignment."""

    last_used_at: datetime | None = None
    total_meetings_hosted: int = 0
    notes: str | None = None


@dataclass(slots=True)
class Host:
    """Represents a meeting_hosts row."""

    email: str
    display_name: str
    max_concurrent_meetings: int = 1
    priority: int = 50
    is_primary: bool = False
    is_active: bool = True
    current_meetings: int = 0
    account_id: str | None = None
    usage: HostUsage = field(default_factory=HostUsage)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def can_accept_meeting(self) -> bool:
        return self.is_active and self.current_meetings < self.max_concurrent_meetings

    @property
    def available_slots(self) -> int:
        return max(0, self.max_concurrent_meetings - self.current_meetings)

    @property
    def is_overcommitted(self) -> bool:
        return self.current_meetings > self.max_concurrent_meetings

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "display_name": self.display_name,
            "account_id": self.account_id,
            "is_active": self.is_active,
            "is_primary": self.is_primary,
            "priority": self.priority,
            "current_meetings": self.current_meetings,
            "max_concurrent_meetings": self.max_concurrent_meetings,
            "available_slots": self.available_slots,
            "can_accept_meeting": self.can_accept_meeting(),
            "last_used_at": self.usage.last_used_at,
            "total_meetings_hosted": self.usage.total_meetings_hosted,
            "notes": self.usage.notes,
        }


@dataclass(slots=True)
class HostProvisioning:
    """Administrative definition of a host account; the live counter is not part of it."""

    email: str
    display_name: str
    max_concurrent_meetings: int = 1
    priority: int = 50
    is_primary: bool = False
    is_active: bool = True
    account_id: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
        self.display_name = self.display_name.strip()
        if "@" not in self.email or self.email.startswith("@") or self.email.endswith("@"):
            raise ValueError(f"Invalid host email: {self.email!r}")
        if not self.display_name:
            raise ValueError("Host display name is required")
        if self.max_concurrent_meetings < 1:
            raise ValueError("max_concurrent_meetings must allow at least 1 meeting")
        if not 0 <= self.priority <= 100:
            raise ValueError("priority must be between 0 and 100")


@dataclass(slots=True)
class SessionWindow:
    """A session as seen through the session log."""

    session_id: str
    host_email: str | None
    scheduled_at: datetime
    duration_minutes: int
    status: str

    @property
    def start_time(self) -> datetime:
        return ensure_utc(self.scheduled_at)

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)

    @property
    def is_committed(self) -> bool:
        return self.status in COMMITTED_STATUSES

    def occupies(self, instant: datetime) -> bool:
        """Half-open [start, end) containment."""
        instant = ensure_utc(instant)
        return self.start_time <= instant < self.end_time


@dataclass(slots=True)
class AvailabilityResult:
    """Outcome of a calendar conflict check for one host."""

    available: bool
    conflicting_sessions: list[SessionWindow] = field(default_factory=list)
    next_available_time: datetime | None = None


@dataclass(slots=True)
class HostCorrection:
    host_email: str
    before: int
    after: int
    applied: bool


@dataclass(slots=True)
class ReconcileReport:
    """Summary of one reconciliation pass."""

    started_at: datetime
    hosts_checked: int = 0
    corrections: list[HostCorrection] = field(default_factory=list)
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def corrections_applied(self) -> int:
        return sum(1 for correction in self.corrections if correction.applied)

    def to_dict(self) -> dict:
        return {
            "job_run": "host_reconcile",
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "hosts_checked": self.hosts_checked,
            "corrections_applied": self.corrections_applied,
            "corrections": [
                {
                    "host_email": c.host_email,
                    "before": c.before,
                    "after": c.after,
                    "applied": c.applied,
                }
                for c in self.corrections
            ],
            "corrections_skipped": self.skipped,
            "errors_count": len(self.errors),
        }
