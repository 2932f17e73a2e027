from datetime import UTC, datetime

import pytest

from host_scheduler.features.host_assignment.services.conflicts import find_conflicts

TEN_AM = datetime(2026, 5, 4, 10, 0, tzinfo=UTC)


def _at(hour: int, minute: int = 0) -> datetime:
    return TEN_AM.replace(hour=hour, minute=minute)


def test_partial_overlap_reports_next_available_time(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60)]

    result = find_conflicts(sessions, _at(10, 30), 60)

    assert result.available is False
    assert [s.session_id for s in result.conflicting_sessions] == ["s1"]
    assert result.next_available_time == _at(11)


def test_touching_windows_do_not_conflict(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60)]

    result = find_conflicts(sessions, _at(11), 60)

    assert result.available is True
    assert result.conflicting_sessions == []
    assert result.next_available_time is None


def test_window_ending_when_session_starts_is_free(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60)]

    assert find_conflicts(sessions, _at(9), 60).available is True


def test_session_starting_inside_window_conflicts(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10, 15), 30)]

    result = find_conflicts(sessions, _at(10), 60)

    assert result.available is False
    assert result.next_available_time == _at(10, 45)


def test_session_containing_window_conflicts(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(9), 180)]

    result = find_conflicts(sessions, _at(10), 30)

    assert result.available is False
    assert result.next_available_time == _at(12)


def test_next_available_time_is_latest_conflicting_end(session_factory):
    sessions = [
        session_factory("late", "h@x.com", _at(10, 30), 90),
        session_factory("early", "h@x.com", _at(9, 30), 45),
    ]

    result = find_conflicts(sessions, _at(10), 60)

    assert [s.session_id for s in result.conflicting_sessions] == ["early", "late"]
    assert result.next_available_time == _at(12)


@pytest.mark.parametrize("status", ["completed", "cancelled"])
def test_finished_sessions_are_ignored(session_factory, status):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60, status=status)]

    assert find_conflicts(sessions, _at(10), 60).available is True


def test_live_sessions_count(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60, status="live")]

    assert find_conflicts(sessions, _at(10, 30), 15).available is False


def test_naive_candidate_start_is_treated_as_utc(session_factory):
    sessions = [session_factory("s1", "h@x.com", _at(10), 60)]

    result = find_conflicts(sessions, datetime(2026, 5, 4, 10, 30), 60)

    assert result.available is False


def test_non_positive_duration_rejected():
    with pytest.raises(ValueError):
        find_conflicts([], TEN_AM, 0)
