from datetime import UTC, datetime

import pytest

from host_scheduler.features.host_assignment.domain import HostProvisioning


def test_can_accept_meeting_requires_active_and_free_slot(host_factory):
    assert host_factory("a@x.com").can_accept_meeting() is True
    assert host_factory("a@x.com", is_active=False).can_accept_meeting() is False
    assert host_factory("a@x.com", current_meetings=1).can_accept_meeting() is False


def test_overcommit_and_available_slots(host_factory):
    host = host_factory("a@x.com", current_meetings=3, max_concurrent_meetings=2)

    assert host.is_overcommitted is True
    assert host.available_slots == 0


def test_session_occupies_half_open_window(session_factory):
    session = session_factory("s1", "a@x.com", datetime(2026, 5, 4, 10, 0, tzinfo=UTC), 60)

    assert session.occupies(datetime(2026, 5, 4, 10, 0, tzinfo=UTC)) is True
    assert session.occupies(datetime(2026, 5, 4, 10, 59, tzinfo=UTC)) is True
    assert session.occupies(datetime(2026, 5, 4, 11, 0, tzinfo=UTC)) is False


def test_provisioning_normalises_email():
    definition = HostProvisioning(email="  Host@Example.COM ", display_name=" Main ")

    assert definition.email == "host@example.com"
    assert definition.display_name == "Main"


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"display_name": "   "},
        {"max_concurrent_meetings": 0},
        {"priority": 101},
        {"priority": -1},
    ],
)
def test_provisioning_rejects_invalid_definitions(overrides):
    fields = {"email": "host@example.com", "display_name": "Main", **overrides}

    with pytest.raises(ValueError):
        HostProvisioning(**fields)
