import asyncio
from collections import Counter
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from host_scheduler.features.host_assignment.domain import (
    Host,
    HostUsage,
    SessionWindow,
    normalize_email,
)
from host_scheduler.features.host_assignment.services import HostAssignmentService
from host_scheduler.services.redis_client import LockUnavailableError


def _copy(host: Host | None) -> Host | None:
    if host is None:
        return None
    return replace(host, usage=replace(host.usage))


def make_host(email: str, **overrides) -> Host:
    usage = overrides.pop("usage", None) or HostUsage()
    return Host(
        email=email,
        display_name=overrides.pop("display_name", email.split("@")[0]),
        usage=usage,
        **overrides,
    )


def make_session(
    session_id: str,
    host_email: str | None,
    start: datetime,
    duration_minutes: int = 60,
    status: str = "scheduled",
) -> SessionWindow:
    return SessionWindow(
        session_id=session_id,
        host_email=host_email,
        scheduled_at=start,
        duration_minutes=duration_minutes,
        status=status,
    )


class FakeHostRegistry:
    """
    In-memory registry with the same contract as HostRegistry.

    Reads yield to the event loop so concurrent callers interleave, while
    each conditional mutation runs without an await, like a single UPDATE.
    """

    def __init__(self, hosts=()):
        self.hosts: dict[str, Host] = {host.email: host for host in hosts}
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    async def get_host(self, email: str) -> Host | None:
        await asyncio.sleep(0)
        return _copy(self.hosts.get(normalize_email(email)))

    async def get_active_host(self, email: str) -> Host | None:
        host = await self.get_host(email)
        return host if host and host.is_active else None

    async def list_hosts(self) -> list[Host]:
        await asyncio.sleep(0)
        return [_copy(host) for host in self.hosts.values()]

    async def list_hosts_by_priority(self) -> list[Host]:
        hosts = await self.list_hosts()
        return sorted(hosts, key=lambda h: (-h.priority, h.email))

    async def try_increment(self, email: str) -> Host | None:
        host = self.hosts.get(normalize_email(email))
        if host is None or not host.can_accept_meeting():
            return None
        host.current_meetings += 1
        host.usage.last_used_at = self._now()
        host.usage.total_meetings_hosted += 1
        return _copy(host)

    async def decrement(self, email: str) -> Host | None:
        host = self.hosts.get(normalize_email(email))
        if host is None:
            return None
        host.current_meetings = max(0, host.current_meetings - 1)
        return _copy(host)

    async def set_current_meetings(self, email: str, value: int, *, expected: int | None = None):
        host = self.hosts.get(normalize_email(email))
        if host is None:
            return None
        if expected is not None and host.current_meetings != expected:
            return None
        host.current_meetings = max(0, value)
        return _copy(host)


class FakeSessionLog:
    def __init__(self, sessions=()):
        self.sessions: list[SessionWindow] = list(sessions)

    async def list_committed_sessions(self, host_email: str) -> list[SessionWindow]:
        email = normalize_email(host_email)
        return sorted(
            (s for s in self.sessions if s.host_email == email and s.is_committed),
            key=lambda s: s.start_time,
        )

    async def count_occupying_sessions(self, now: datetime) -> dict[str, int]:
        return dict(
            Counter(
                s.host_email
                for s in self.sessions
                if s.host_email and s.is_committed and s.occupies(now)
            )
        )


class FakeRedis:
    """Stand-in for FastRedisClient's lock API."""

    def __init__(self, configured: bool = True, reachable: bool = True):
        self.configured = configured
        self.reachable = reachable
        self.store: dict[str, str] = {}

    async def acquire_lock(self, key: str, token: str, ttl_s: int) -> bool:
        if not self.reachable:
            raise LockUnavailableError(f"Cannot acquire {key}: connection refused")
        if key in self.store:
            return False
        self.store[key] = token
        return True

    async def release_lock(self, key: str, token: str) -> bool:
        if self.store.get(key) != token:
            return False
        del self.store[key]
        return True


@pytest.fixture
def host_factory():
    return make_host


@pytest.fixture
def session_factory():
    return make_session


@pytest.fixture
def registry_factory():
    return FakeHostRegistry


@pytest.fixture
def session_log_factory():
    return FakeSessionLog


@pytest.fixture
def two_hosts():
    return [
        make_host("primary@x.com", priority=100, is_primary=True, max_concurrent_meetings=1),
        make_host("secondary@y.com", priority=90, max_concurrent_meetings=1),
    ]


@pytest.fixture
def fake_registry(two_hosts):
    return FakeHostRegistry(two_hosts)


@pytest.fixture
def fake_session_log():
    return FakeSessionLog()


@pytest.fixture
def service(fake_registry, fake_session_log):
    return HostAssignmentService(fake_registry, fake_session_log, max_attempts=3)


@pytest.fixture
def fake_redis():
    return FakeRedis()
