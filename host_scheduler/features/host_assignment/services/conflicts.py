"""
Calendar conflict detection for a single host.

This check is advisory: a host can be under capacity by count and still be
booked for the requested window. Callers decide which gate to apply.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from host_scheduler.features.host_assignment.domain import (
    AvailabilityResult,
    SessionWindow,
    ensure_utc,
)


def overlaps(session: SessionWindow, start: datetime, end: datetime) -> bool:
    """True if the session collides with the half-open candidate window [start, end)."""
    session_start = session.start_time
    session_end = session.end_time

    starts_inside = start <= session_start < end
    ends_inside = start < session_end <= end
    contains_window = session_start <= start and session_end >= end

    return starts_inside or ends_inside or contains_window


def find_conflicts(
    sessions: Iterable[SessionWindow], start: datetime, duration_minutes: int
) -> AvailabilityResult:
    """
    Compare a candidate window against a host's sessions.

    Only scheduled or live sessions count. On conflict the result carries
    the conflicting sessions (earliest first) and the time the host frees
    up, which is the latest end among them.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    start = ensure_utc(start)
    end = start + timedelta(minutes=duration_minutes)

    conflicting = sorted(
        (s for s in sessions if s.is_committed and overlaps(s, start, end)),
        key=lambda s: s.start_time,
    )

    if not conflicting:
        return AvailabilityResult(available=True)

    return AvailabilityResult(
        available=False,
        conflicting_sessions=conflicting,
        next_available_time=max(s.end_time for s in conflicting),
    )
