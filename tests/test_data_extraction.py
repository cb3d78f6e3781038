import pytest

from club_attendance.data_extraction import extract_event_attendance, extract_window_data
from club_attendance.errors import DataFetchError
from club_attendance.models import DateWindow


MARCH = DateWindow.for_month(2024, 3)


def test_extract_window_data(fake_client):
    data = extract_window_data(fake_client, "club-1", MARCH, max_workers=3)

    assert data.subgroups == {"sg-kids": "Kids", "sg-adults": "Adults"}
    assert [s["id"] for s in data.sessions] == ["s1", "s2"]
    assert [e["id"] for e in data.single_events] == ["e-single"]
    assert [e["id"] for e in data.recurring_events] == ["e-weekly"]
    assert [m["id"] for m in data.members] == ["p-anna", "p-ben"]
    assert [c["id"] for c in data.coaches] == ["c-lee", "c-kim"]
    assert len(data.session_attendance) == 2
    assert len(data.event_attendance) == 3


def test_event_attendance_is_fetched_last_with_event_ids(fake_client):
    extract_window_data(fake_client, "club-1", MARCH)

    assert fake_client.executed[-1].table == "event_attendance"
    (query,) = fake_client.queries_for("event_attendance")
    assert ("in_", ("event_id", ["e-single", "e-weekly"])) in query.calls


def test_subgroup_filter_applies_to_sessions_and_attendance(fake_client):
    data = extract_window_data(fake_client, "club-1", MARCH, subgroup_filter="sg-kids")

    assert [s["id"] for s in data.sessions] == ["s1"]
    assert [a["session_id"] for a in data.session_attendance] == ["s1"]
    # Events are not filtered by subgroup
    assert len(data.events) == 2


def test_no_event_ids_skips_event_attendance_query(make_client):
    client = make_client({})
    assert extract_event_attendance(client, []) == []
    assert client.executed == []


def test_failed_read_raises_data_fetch_error(make_client, club_tables):
    client = make_client(club_tables, failures={"profiles": ConnectionError("timeout")})

    with pytest.raises(DataFetchError) as excinfo:
        extract_window_data(client, "club-1", MARCH)

    assert excinfo.value.table == "profiles"
