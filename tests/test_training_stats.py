from datetime import date

from club_attendance.training_stats import calculate_training_statistics, training_dates_for_member


def test_trend_up_against_previous_month():
    dates = [date(2024, 2, 5), date(2024, 2, 12), date(2024, 3, 4), date(2024, 3, 11), date(2024, 3, 18)]
    stats = calculate_training_statistics(dates, today=date(2024, 3, 20))

    assert stats["current_month_count"] == 3
    assert stats["last_month_count"] == 2
    assert stats["trend"] == "up"
    assert stats["trend_percentage"] == 50
    assert stats["total_days"] == 5


def test_trend_down():
    dates = [date(2024, 2, 5), date(2024, 2, 12), date(2024, 2, 19), date(2024, 2, 26), date(2024, 3, 4)]
    stats = calculate_training_statistics(dates, today=date(2024, 3, 10))
    assert stats["trend"] == "down"
    assert stats["trend_percentage"] == -75


def test_empty_previous_month_counts_as_full_increase():
    stats = calculate_training_statistics([date(2024, 1, 3)], today=date(2024, 1, 10))
    # December 2023 is the previous month
    assert stats["last_month_count"] == 0
    assert stats["trend"] == "up"
    assert stats["trend_percentage"] == 100


def test_no_trainings():
    stats = calculate_training_statistics([], today=date(2024, 3, 10))
    assert stats["trend"] == "neutral"
    assert stats["trend_percentage"] == 0
    assert stats["weekly_average"] == 0.0


def test_weekly_average_over_last_28_days():
    dates = [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 8), date(2024, 3, 15), date(2024, 3, 22), date(2024, 3, 27),
             date(2024, 2, 1)]
    stats = calculate_training_statistics(dates, today=date(2024, 3, 28))
    # 2024-02-29 is the cut-off: six trainings in four weeks
    assert stats["weekly_average"] == 1.5


def test_training_dates_for_member():
    rows = [
        {"date": "2024-03-11", "present_player_ids": ["p1", "p2"]},
        {"date": "2024-03-04", "present_player_ids": ["p1"]},
        {"date": "2024-03-06", "present_player_ids": ["p2"]},
        {"date": "broken", "present_player_ids": ["p1"]},
        {"date": "2024-03-07", "present_player_ids": None},
    ]
    assert training_dates_for_member(rows, "p1") == [date(2024, 3, 4), date(2024, 3, 11)]
