"""
Domain subpackage for host assignment.
"""

from .models import (
    COMMITTED_STATUSES,
    AvailabilityResult,
    Host,
    HostCorrection,
    HostProvisioning,
    HostUsage,
    ReconcileReport,
    SessionStatus,
    SessionWindow,
    ensure_utc,
    normalize_email,
)

__all__ = [
    "COMMITTED_STATUSES",
    "AvailabilityResult",
    "Host",
    "HostCorrection",
    "HostProvisioning",
    "HostUsage",
    "ReconcileReport",
    "SessionStatus",
    "SessionWindow",
    "ensure_utc",
    "normalize_email",
]
