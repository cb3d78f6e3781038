"""
Training statistics for a single member's dashboard.

Month-over-month training counts, trend and recent weekly average.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List

from club_attendance.models import parse_calendar_date

logger = logging.getLogger(__name__)


def training_dates_for_member(rows: Iterable[Dict[str, Any]], member_id: str) -> List[date]:
    """
    Sorted dates of session attendance rows where `member_id` was present.

    Rows with a malformed date are skipped.
    """
    dates = []
    for row in rows:
        if member_id not in (row.get("present_player_ids") or []):
            continue
        try:
            dates.append(parse_calendar_date(row.get("date")))
        except ValueError:
            logger.warning(f"Skipping attendance row with invalid date {row.get('date')!r}")
    return sorted(dates)


def _previous_month(year: int, month: int):
    if month == 1:
        return year - 1, 12
    return year, month - 1


def calculate_training_statistics(training_dates: Iterable[date], today: date) -> Dict[str, Any]:
    """
    Calculate dashboard statistics from a member's training dates.

    Trend compares the current month with the previous one. When the
    previous month has no trainings, any training this month counts as
    +100%.

    Args:
        training_dates: Dates the member trained
        today: Reference date (current month and 28-day window end)

    Returns:
        Dictionary containing:
        - current_month_count
        - last_month_count
        - trend: 'up', 'down' or 'neutral'
        - trend_percentage: integer percent change
        - weekly_average: trainings per week over the last 28 days
        - total_days
    """
    dates = list(training_dates)
    last_year, last_month = _previous_month(today.year, today.month)

    current_count = sum(1 for d in dates if d.year == today.year and d.month == today.month)
    last_count = sum(1 for d in dates if d.year == last_year and d.month == last_month)

    trend = "neutral"
    trend_percentage = 0
    if last_count > 0:
        change = current_count - last_count
        trend_percentage = round(change / last_count * 100)
        if change > 0:
            trend = "up"
        elif change < 0:
            trend = "down"
    elif current_count > 0:
        trend = "up"
        trend_percentage = 100

    four_weeks_ago = today - timedelta(days=28)
    recent = sum(1 for d in dates if d >= four_weeks_ago)

    return {
        "current_month_count": current_count,
        "last_month_count": last_count,
        "trend": trend,
        "trend_percentage": trend_percentage,
        "weekly_average": round(recent / 4, 1),
        "total_days": len(dates),
    }
