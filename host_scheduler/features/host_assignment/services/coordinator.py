"""
Host assignment coordinator.

Entry points used by session-scheduling code: assign a host to a session,
release it when the session ends, check a host's calendar, list host status
and trigger reconciliation. The caller persists the returned host email on
its own session record.
"""

from datetime import datetime

from host_scheduler.config import settings
from host_scheduler.features.host_assignment.domain import (
    AvailabilityResult,
    Host,
    ReconcileReport,
    normalize_email,
)
from host_scheduler.features.host_assignment.repository import (
    HostRegistry,
    SessionLogRepository,
    host_registry,
    session_log,
)
from host_scheduler.features.host_assignment.services.conflicts import find_conflicts
from host_scheduler.features.host_assignment.services.reconciler import HostReconciler
from host_scheduler.features.host_assignment.services.selector import (
    explain_unavailability,
    select_available_host,
)
from host_scheduler.infrastructure.observability.logging import get_logger, log_host_event

logger = get_logger(__name__)


class CapacityExhaustedError(Exception):
    """No active host has a free slot. Expected business state, not a bug."""

    USER_MESSAGE = "All hosting accounts are busy right now. Please try another time."

    def __init__(self, session_id: str | None = None, reasons: dict[str, str] | None = None):
        super().__init__(self.USER_MESSAGE)
        self.session_id = session_id
        self.reasons = reasons or {}


class HostAssignmentService:
    """Coordinates selection and the guarded counter increment."""

    def __init__(
        self,
        registry: HostRegistry | None = None,
        sessions: SessionLogRepository | None = None,
        max_attempts: int | None = None,
    ):
        self.registry = registry or host_registry
        self.sessions = sessions or session_log
        self.max_attempts = max_attempts or settings.HOST_ASSIGN_MAX_ATTEMPTS
        self.reconciler = HostReconciler(self.registry, self.sessions)

    async def assign_host(self, session_id: str, preferred_host_email: str | None = None) -> Host:
        """
        Claim a host slot for the session.

        A preferred host is used when it is active and has room; otherwise
        the call falls back to automatic selection. Raises
        CapacityExhaustedError when no host can take the meeting.
        """
        logger.info(
            "Assigning meeting host",
            session_id=session_id,
            preferred_host_email=preferred_host_email,
        )

        host = None
        if preferred_host_email:
            host = await self._claim_preferred(session_id, normalize_email(preferred_host_email))

        if host is None:
            host = await self._claim_best_available(session_id)

        log_host_event(
            "assign",
            host.email,
            host.current_meetings,
            host.max_concurrent_meetings,
            session_id=session_id,
        )
        return host

    async def _claim_preferred(self, session_id: str, email: str) -> Host | None:
        host = await self.registry.get_active_host(email)

        if host is None:
            logger.warning(
                "Preferred host not found or inactive, falling back to automatic selection",
                session_id=session_id,
                preferred_host_email=email,
            )
            return None

        if not host.can_accept_meeting():
            logger.warning(
                "Preferred host at capacity, falling back to automatic selection",
                session_id=session_id,
                preferred_host_email=email,
                current_meetings=host.current_meetings,
                max_concurrent_meetings=host.max_concurrent_meetings,
            )
            return None

        claimed = await self.registry.try_increment(email)
        if claimed is None:
            logger.warning(
                "Preferred host filled concurrently, falling back to automatic selection",
                session_id=session_id,
                preferred_host_email=email,
            )
        return claimed

    async def _claim_best_available(self, session_id: str) -> Host:
        hosts: list[Host] = []

        for attempt in range(1, self.max_attempts + 1):
            hosts = await self.registry.list_hosts()
            candidate = select_available_host(hosts)

            if candidate is None:
                break

            claimed = await self.registry.try_increment(candidate.email)
            if claimed is not None:
                return claimed

            # Another request took the last slot between our read and the update
            logger.info(
                "Host claim lost to concurrent assignment, reselecting",
                session_id=session_id,
                host_email=candidate.email,
                attempt=attempt,
                max_attempts=self.max_attempts,
            )

        reasons = explain_unavailability(hosts)
        logger.error(
            "No meeting host available",
            session_id=session_id,
            hosts_total=len(hosts),
            reasons=reasons,
        )
        raise CapacityExhaustedError(session_id=session_id, reasons=reasons)

    async def release_host(self, host_email: str) -> Host | None:
        """
        Give back one slot on the host.

        Safe to call speculatively: an unknown host is logged and ignored,
        and the counter never drops below zero.
        """
        host = await self.registry.decrement(host_email)

        if host is None:
            logger.warning("Release requested for unknown host", host_email=host_email)
            return None

        log_host_event("release", host.email, host.current_meetings, host.max_concurrent_meetings)
        return host

    async def check_availability(
        self, host_email: str, start_time: datetime, duration_minutes: int
    ) -> AvailabilityResult:
        """Calendar check for one host; unknown or inactive hosts are reported unavailable."""
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")

        host = await self.registry.get_active_host(host_email)
        if host is None:
            logger.info("Availability check for unknown or inactive host", host_email=host_email)
            return AvailabilityResult(available=False)

        sessions = await self.sessions.list_committed_sessions(host.email)
        result = find_conflicts(sessions, start_time, duration_minutes)

        if not result.available:
            logger.info(
                "Host has conflicting sessions",
                host_email=host.email,
                conflicts=len(result.conflicting_sessions),
                next_available_time=result.next_available_time.isoformat(),
            )
        return result

    async def list_hosts_status(self) -> list[Host]:
        return await self.registry.list_hosts_by_priority()

    async def reconcile(self, now: datetime | None = None) -> ReconcileReport:
        return await self.reconciler.reconcile(now)


host_assignment_service = HostAssignmentService()
