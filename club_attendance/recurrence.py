"""
Occurrence expansion for single and recurring templates.

Turns event templates and their recurrence rules into concrete dated
occurrences inside a report window.
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from club_attendance.config import Config
from club_attendance.errors import InvalidTemplateError, MalformedTimeError
from club_attendance.models import (
    REPEAT_DAILY,
    REPEAT_MONTHLY,
    REPEAT_WEEKLY,
    DateWindow,
    EventTemplate,
    Occurrence,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)


def parse_wall_clock(value: str) -> Tuple[int, int]:
    """
    Parse an "HH:MM" (or "HH:MM:SS") string into hours and minutes.

    Raises:
        MalformedTimeError: If the value is not a valid wall-clock time
    """
    try:
        parts = str(value).split(":")
        hours, minutes = int(parts[0]), int(parts[1])
    except (AttributeError, IndexError, TypeError, ValueError) as e:
        raise MalformedTimeError(f"Cannot parse time {value!r}") from e

    if not (0 <= hours <= 24 and 0 <= minutes < 60):
        raise MalformedTimeError(f"Time out of range: {value!r}")
    return hours, minutes


def session_duration_hours(start_time: str, end_time: str) -> float:
    """
    Duration between two wall-clock times in hours, rounded to one decimal.

    Falls back to Config.DEFAULT_SESSION_HOURS (2.0) when either time
    cannot be parsed.

    Args:
        start_time: Start time "HH:MM"
        end_time: End time "HH:MM"

    Returns:
        Duration in hours (e.g. 1.5)
    """
    try:
        start_hour, start_minute = parse_wall_clock(start_time)
        end_hour, end_minute = parse_wall_clock(end_time)
    except MalformedTimeError as e:
        logger.debug(f"{e}, using default duration {Config.DEFAULT_SESSION_HOURS}h")
        return Config.DEFAULT_SESSION_HOURS

    duration_minutes = (end_hour * 60 + end_minute) - (start_hour * 60 + start_minute)
    return round(duration_minutes / 60, 1)


def _matches(rule: RecurrenceRule, anchor: date, day: date) -> bool:
    if rule.kind == REPEAT_DAILY:
        return True
    if rule.kind == REPEAT_WEEKLY:
        return day.weekday() == anchor.weekday()
    if rule.kind == REPEAT_MONTHLY:
        # No clamping: an anchor on the 31st never matches a 30-day month
        return day.day == anchor.day
    return False


def _occurrence(template: EventTemplate, day: date, is_recurring: bool) -> Occurrence:
    return Occurrence(
        event_id=template.id,
        date=day,
        start_time=template.start_time,
        end_time=template.end_time,
        title=template.title,
        subgroup_ids=template.subgroup_ids,
        category=template.category,
        is_recurring=is_recurring,
    )


def expand(
    template: EventTemplate,
    rule: Optional[RecurrenceRule],
    window: DateWindow
) -> List[Occurrence]:
    """
    Expand one template into its occurrences inside `window`, earliest first.

    Single templates (rule is None) yield their start date if it lies in
    the window. Recurring templates are checked day by day from the later
    of window start and template start up to window end, skipping days
    after repeat_end_date and excluded dates.

    Args:
        template: Event or session template
        rule: Recurrence rule, None for single templates
        window: Inclusive report window

    Returns:
        List of occurrences (empty if cancelled or nothing matches)

    Raises:
        InvalidTemplateError: If template.start_date is not a date
    """
    if template.is_cancelled:
        return []

    if not isinstance(template.start_date, date):
        raise InvalidTemplateError(
            f"Template {template.id} has invalid start_date {template.start_date!r}",
            template.id,
        )

    if rule is None:
        if window.contains(template.start_date):
            return [_occurrence(template, template.start_date, is_recurring=False)]
        return []

    occurrences = []
    current = max(window.start, template.start_date)
    while current <= window.end:
        day = current
        current += timedelta(days=1)

        if rule.repeat_end_date is not None and day > rule.repeat_end_date:
            continue
        if day in rule.excluded_dates:
            continue
        if day < template.start_date:
            continue
        if _matches(rule, template.start_date, day):
            occurrences.append(_occurrence(template, day, is_recurring=True))

    return occurrences


def expand_all(
    templates: Sequence[EventTemplate],
    rules: Dict[str, RecurrenceRule],
    window: DateWindow
) -> List[Occurrence]:
    """
    Expand many templates into one chronologically sorted occurrence list.

    Occurrences on the same date keep the order of their templates in
    `templates`. A template raising InvalidTemplateError is logged and
    skipped; the others are still expanded.

    Args:
        templates: Templates in tie-break order
        rules: Recurrence rules keyed by template id
        window: Inclusive report window

    Returns:
        Sorted list of occurrences
    """
    occurrences = []
    for template in templates:
        try:
            occurrences.extend(expand(template, rules.get(template.id), window))
        except InvalidTemplateError as e:
            logger.warning(f"Skipping template during expansion: {e}")

    # sorted() is stable, so same-day occurrences keep template order
    occurrences = sorted(occurrences, key=lambda occ: occ.date)
    logger.info(
        f"Expanded {len(templates)} templates to {len(occurrences)} occurrences "
        f"between {window.start} and {window.end}"
    )
    return occurrences
