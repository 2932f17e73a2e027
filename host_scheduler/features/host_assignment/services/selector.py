"""
Availability selection over a snapshot of the host registry.

Pure functions: no I/O, no mutation. The coordinator feeds them a fresh
read and then claims the chosen host with a guarded increment.
"""

from collections.abc import Iterable

from host_scheduler.features.host_assignment.domain import Host, ensure_utc


def _last_used_key(host: Host) -> tuple[int, float]:
    # Never-used hosts sort before any timestamp
    last_used = host.usage.last_used_at
    if last_used is None:
        return (0, 0.0)
    return (1, ensure_utc(last_used).timestamp())


def selection_key(host: Host) -> tuple:
    """Priority desc, then least loaded, then least recently used."""
    return (-host.priority, host.current_meetings, _last_used_key(host), host.email)


def rank_hosts(hosts: Iterable[Host]) -> list[Host]:
    """Hosts able to accept one more meeting, best candidate first."""
    return sorted((host for host in hosts if host.can_accept_meeting()), key=selection_key)


def select_available_host(hosts: Iterable[Host]) -> Host | None:
    """
    Pick the best host for a new meeting.

    Returns None when the registry is empty or no active host has a free slot.
    """
    ranked = rank_hosts(hosts)
    return ranked[0] if ranked else None


def explain_unavailability(hosts: Iterable[Host]) -> dict[str, str]:
    """Reason each host cannot take a meeting, for exhaustion diagnostics."""
    reasons = {}
    for host in hosts:
        if not host.is_active:
            reasons[host.email] = "inactive"
        elif host.current_meetings >= host.max_concurrent_meetings:
            reasons[host.email] = (
                f"at capacity ({host.current_meetings}/{host.max_concurrent_meetings})"
            )
    return reasons
