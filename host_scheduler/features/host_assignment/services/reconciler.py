"""
Host load reconciliation.

Recomputes each host's true concurrent load from the session log and
corrects drift in the registry's counters. Assign/release are not
transactionally tied to session lifecycle changes, so this pass is what
brings counters back in line after crashes or missed releases.
"""

import time
from datetime import UTC, datetime

from host_scheduler.db.helpers import DatabaseError
from host_scheduler.features.host_assignment.domain import (
    HostCorrection,
    ReconcileReport,
    ensure_utc,
)
from host_scheduler.features.host_assignment.repository import (
    HostRegistry,
    SessionLogRepository,
    host_registry,
    session_log,
)
from host_scheduler.infrastructure.observability.logging import get_logger, log_host_event

logger = get_logger(__name__)


class HostReconciler:
    """Overwrites stored host counters with the count derived from the session log."""

    def __init__(
        self,
        registry: HostRegistry | None = None,
        sessions: SessionLogRepository | None = None,
    ):
        self.registry = registry or host_registry
        self.sessions = sessions or session_log

    async def reconcile(self, now: datetime | None = None) -> ReconcileReport:
        """
        Run one reconciliation pass.

        A host's true load is the number of its scheduled or live sessions
        whose [start, end) window contains ``now``. Corrections are
        compare-and-set against the value read at the start of the pass, so
        an assignment that lands mid-pass is kept rather than overwritten.
        Failures on one host are recorded and the pass moves on.
        """
        now = ensure_utc(now or datetime.now(UTC))
        started = time.monotonic()
        report = ReconcileReport(started_at=now)

        logger.info("Starting host reconciliation", now=now.isoformat())

        hosts = await self.registry.list_hosts()
        actual_counts = await self.sessions.count_occupying_sessions(now)

        for host in hosts:
            report.hosts_checked += 1
            actual = actual_counts.get(host.email, 0)

            if host.is_overcommitted:
                logger.warning(
                    "Host counter above capacity",
                    host_email=host.email,
                    current_meetings=host.current_meetings,
                    max_concurrent_meetings=host.max_concurrent_meetings,
                    occupying_sessions=actual,
                )

            if host.current_meetings == actual:
                continue

            try:
                updated = await self.registry.set_current_meetings(
                    host.email, actual, expected=host.current_meetings
                )
            except DatabaseError as e:
                logger.error("Failed to correct host counter", host_email=host.email, error=str(e))
                report.errors.append(
                    {
                        "host_email": host.email,
                        "error": str(e),
                        "timestamp": datetime.now(UTC).isoformat(),
                    }
                )
                continue

            applied = updated is not None
            report.corrections.append(
                HostCorrection(
                    host_email=host.email,
                    before=host.current_meetings,
                    after=actual,
                    applied=applied,
                )
            )

            if applied:
                logger.info(
                    "Corrected host meeting count",
                    host_email=host.email,
                    before=host.current_meetings,
                    after=actual,
                )
                log_host_event(
                    "reconcile",
                    updated.email,
                    updated.current_meetings,
                    updated.max_concurrent_meetings,
                    before=host.current_meetings,
                )
            else:
                report.skipped += 1
                logger.warning(
                    "Host counter changed during reconciliation, keeping newer value",
                    host_email=host.email,
                    read_value=host.current_meetings,
                    computed=actual,
                )

        report.duration_seconds = time.monotonic() - started
        logger.info("Host reconciliation completed", **report.to_dict())
        return report


host_reconciler = HostReconciler()
