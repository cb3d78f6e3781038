from datetime import date

import pytest

from club_attendance.errors import InvalidTemplateError, MalformedTimeError
from club_attendance.models import DateWindow, EventTemplate, RecurrenceRule
from club_attendance.recurrence import expand, expand_all, parse_wall_clock, session_duration_hours


def make_template(start, template_id="e1", cancelled=False, category="event"):
    return EventTemplate(
        id=template_id,
        title="Training",
        start_date=start,
        start_time="18:00",
        end_time="20:00",
        is_cancelled=cancelled,
        category=category,
    )


MARCH = DateWindow(date(2024, 3, 1), date(2024, 3, 31))


def test_daily_expansion_one_per_day():
    template = make_template(date(2024, 3, 1))
    rule = RecurrenceRule(kind="daily")
    window = DateWindow(date(2024, 3, 1), date(2024, 3, 5))

    occurrences = expand(template, rule, window)

    assert [occ.date for occ in occurrences] == [date(2024, 3, d) for d in range(1, 6)]
    assert all(occ.is_recurring for occ in occurrences)


def test_weekly_with_excluded_date():
    # 2024-03-04 is a Monday
    template = make_template(date(2024, 3, 4))
    rule = RecurrenceRule(kind="weekly", excluded_dates=frozenset([date(2024, 3, 11)]))

    occurrences = expand(template, rule, MARCH)

    assert [occ.date for occ in occurrences] == [
        date(2024, 3, 4),
        date(2024, 3, 18),
        date(2024, 3, 25),
    ]


def test_weekly_started_before_window():
    template = make_template(date(2024, 1, 3))  # Wednesday
    occurrences = expand(template, RecurrenceRule(kind="weekly"), MARCH)
    assert [occ.date.day for occ in occurrences] == [6, 13, 20, 27]
    assert all(occ.date.weekday() == 2 for occ in occurrences)


def test_repeat_end_date_is_inclusive():
    template = make_template(date(2024, 3, 1))
    rule = RecurrenceRule(kind="daily", repeat_end_date=date(2024, 3, 3))
    occurrences = expand(template, rule, MARCH)
    assert [occ.date.day for occ in occurrences] == [1, 2, 3]


def test_monthly_anchor_on_31st_never_clamps():
    template = make_template(date(2024, 1, 31))
    rule = RecurrenceRule(kind="monthly")

    april = DateWindow.for_month(2024, 4)
    assert expand(template, rule, april) == []

    march_dates = [occ.date for occ in expand(template, rule, MARCH)]
    assert march_dates == [date(2024, 3, 31)]


def test_monthly_across_leap_february():
    template = make_template(date(2024, 1, 29))
    rule = RecurrenceRule(kind="monthly")
    window = DateWindow(date(2024, 1, 1), date(2024, 4, 30))
    assert [occ.date for occ in expand(template, rule, window)] == [
        date(2024, 1, 29), date(2024, 2, 29), date(2024, 3, 29), date(2024, 4, 29),
    ]


def test_single_event_inside_and_outside_window():
    inside = make_template(date(2024, 3, 16))
    outside = make_template(date(2024, 4, 1))

    occurrences = expand(inside, None, MARCH)
    assert len(occurrences) == 1
    assert occurrences[0].date == date(2024, 3, 16)
    assert not occurrences[0].is_recurring

    assert expand(outside, None, MARCH) == []


def test_cancelled_template_yields_nothing():
    template = make_template(date(2024, 3, 1), cancelled=True)
    assert expand(template, RecurrenceRule(kind="daily"), MARCH) == []
    assert expand(template, None, MARCH) == []


def test_malformed_start_date_raises():
    template = make_template("not-a-date")
    with pytest.raises(InvalidTemplateError):
        expand(template, RecurrenceRule(kind="daily"), MARCH)


def test_template_starting_after_window_is_empty():
    template = make_template(date(2024, 5, 1))
    assert expand(template, RecurrenceRule(kind="daily"), MARCH) == []


@pytest.mark.parametrize("kind", ["daily", "weekly", "monthly"])
@pytest.mark.parametrize("window", [
    DateWindow(date(2024, 2, 25), date(2024, 3, 3)),
    DateWindow(date(2024, 3, 31), date(2024, 3, 31)),
    DateWindow(date(2023, 12, 20), date(2024, 1, 10)),
    DateWindow(date(2024, 10, 20), date(2024, 11, 5)),
])
def test_occurrences_respect_window_exclusions_and_end(kind, window):
    template = make_template(date(2023, 12, 31))
    excluded = frozenset([date(2024, 3, 2), date(2024, 1, 7), date(2024, 10, 31)])
    rule = RecurrenceRule(kind=kind, repeat_end_date=date(2024, 11, 1), excluded_dates=excluded)

    first = expand(template, rule, window)
    second = expand(template, rule, window)

    assert first == second
    dates = [occ.date for occ in first]
    assert dates == sorted(set(dates))
    for d in dates:
        assert window.start <= d <= window.end
        assert d not in excluded
        assert d <= rule.repeat_end_date
        assert d >= template.start_date


def test_expand_all_sorts_by_date_then_template_order():
    session = make_template(date(2024, 3, 4), template_id="s1", category="session")
    weekly = make_template(date(2024, 2, 5), template_id="e-weekly")
    single = make_template(date(2024, 3, 2), template_id="e-single")
    rules = {"e-weekly": RecurrenceRule(kind="weekly")}

    occurrences = expand_all([session, weekly, single], rules, DateWindow(date(2024, 3, 1), date(2024, 3, 11)))

    assert [(occ.date.day, occ.event_id) for occ in occurrences] == [
        (2, "e-single"),
        (4, "s1"),
        (4, "e-weekly"),
        (11, "e-weekly"),
    ]


def test_expand_all_skips_invalid_template():
    broken = make_template("2024-13-45", template_id="broken")
    good = make_template(date(2024, 3, 1), template_id="good")
    rules = {"broken": RecurrenceRule(kind="daily"), "good": RecurrenceRule(kind="daily")}

    occurrences = expand_all([broken, good], rules, DateWindow(date(2024, 3, 1), date(2024, 3, 2)))

    assert [occ.event_id for occ in occurrences] == ["good", "good"]


def test_session_duration_hours():
    assert session_duration_hours("18:00", "20:00") == 2.0
    assert session_duration_hours("17:00", "18:30") == 1.5
    assert session_duration_hours("09:15", "10:45") == 1.5
    assert session_duration_hours("18:00:00", "19:00:00") == 1.0


@pytest.mark.parametrize("start,end", [
    ("bad", "18:00"),
    ("18:00", ""),
    (None, "20:00"),
    ("18", "20:00"),
    ("25:00", "26:00"),
])
def test_session_duration_fallback(start, end):
    assert session_duration_hours(start, end) == 2.0


def test_parse_wall_clock_rejects_garbage():
    assert parse_wall_clock("07:05") == (7, 5)
    with pytest.raises(MalformedTimeError):
        parse_wall_clock("7h")
