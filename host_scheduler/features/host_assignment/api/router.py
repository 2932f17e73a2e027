"""
Host assignment ops routes.

Read-mostly visibility into host load plus an on-demand reconcile trigger.
Assignment and release stay in-process with the scheduling code.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from host_scheduler.db.helpers import DatabaseError
from host_scheduler.features.host_assignment.jobs import HostReconcileJob, host_reconcile_job
from host_scheduler.features.host_assignment.services import (
    HostAssignmentService,
    host_assignment_service,
)
from host_scheduler.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/hosts", tags=["hosts"])


class HostStatusResponse(BaseModel):
    """Current load and usage for one host."""

    email: str = Field(..., description="Host account email")
    display_name: str = Field(..., description="Friendly name")
    is_active: bool = Field(..., description="Whether the host can be selected")
    is_primary: bool = Field(..., description="Preferred default host")
    priority: int = Field(..., description="Selection priority, higher first")
    current_meetings: int = Field(..., description="Meetings currently assigned")
    max_concurrent_meetings: int = Field(..., description="Concurrent meeting limit")
    available_slots: int = Field(..., description="Free slots right now")
    can_accept_meeting: bool = Field(..., description="Active and under capacity")
    last_used_at: datetime | None = Field(None, description="Last successful assignment")
    total_meetings_hosted: int = Field(default=0, description="Lifetime assignments")


class HostsStatusResponse(BaseModel):
    hosts: list[HostStatusResponse] = Field(..., description="Hosts by priority")
    total_count: int = Field(..., description="Number of hosts")
    available_slots: int = Field(..., description="Free slots across active hosts")


class ConflictingSessionResponse(BaseModel):
    session_id: str
    start_time: datetime
    end_time: datetime
    status: str


class AvailabilityResponse(BaseModel):
    host_email: str = Field(..., description="Host that was checked")
    available: bool = Field(..., description="No committed session overlaps the window")
    conflicting_sessions: list[ConflictingSessionResponse] = Field(default_factory=list)
    next_available_time: datetime | None = Field(
        None, description="When the latest conflicting session ends"
    )


def get_host_assignment_service() -> HostAssignmentService:
    return host_assignment_service


def get_host_reconcile_job() -> HostReconcileJob:
    return host_reconcile_job


@router.get("/status", response_model=HostsStatusResponse)
async def list_hosts_status(
    service: HostAssignmentService = Depends(get_host_assignment_service),
):
    """All hosts ranked by priority with their live load."""
    try:
        hosts = await service.list_hosts_status()
    except DatabaseError as e:
        logger.error("Error listing host status", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Host registry unavailable",
        )

    return HostsStatusResponse(
        hosts=[HostStatusResponse(**host.to_dict()) for host in hosts],
        total_count=len(hosts),
        available_slots=sum(host.available_slots for host in hosts if host.is_active),
    )


@router.get("/{host_email}/availability", response_model=AvailabilityResponse)
async def check_host_availability(
    host_email: str,
    start: datetime = Query(..., description="Candidate start time (ISO 8601)"),
    duration_minutes: int = Query(..., gt=0, le=24 * 60, description="Meeting length"),
    service: HostAssignmentService = Depends(get_host_assignment_service),
):
    """Calendar conflict check for a host and candidate window."""
    try:
        result = await service.check_availability(host_email, start, duration_minutes)
    except DatabaseError as e:
        logger.error("Error checking host availability", host_email=host_email, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session log unavailable",
        )

    return AvailabilityResponse(
        host_email=host_email.strip().lower(),
        available=result.available,
        conflicting_sessions=[
            ConflictingSessionResponse(
                session_id=s.session_id,
                start_time=s.start_time,
                end_time=s.end_time,
                status=s.status,
            )
            for s in result.conflicting_sessions
        ],
        next_available_time=result.next_available_time,
    )


@router.post("/reconcile")
async def reconcile_hosts(job: HostReconcileJob = Depends(get_host_reconcile_job)) -> dict:
    """
    Recompute host load from the session log and correct drift.

    Shares the worker's single-flight guard, so a request made while another
    pass is running gets 409 instead of a second, overlapping pass. 503 when
    storage or the Redis lock is unreachable.
    """
    try:
        result = await job.run_once()
    except DatabaseError as e:
        logger.error("Host reconcile request failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reconciliation failed, storage unavailable",
        )

    if result.get("skipped"):
        unavailable = result["reason"] == "lock_unavailable"
        raise HTTPException(
            status_code=(
                status.HTTP_503_SERVICE_UNAVAILABLE if unavailable else status.HTTP_409_CONFLICT
            ),
            detail=f"Reconciliation skipped: {result['reason']}",
        )

    return result
