"""
Value types for templates, recurrence rules, occurrences and rosters.

Also maps the raw Supabase row shapes onto these types.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterator, List, Optional

from club_attendance.config import Config
from club_attendance.errors import InvalidTemplateError

logger = logging.getLogger(__name__)


CATEGORY_EVENT = "event"
CATEGORY_SESSION = "session"

REPEAT_DAILY = "daily"
REPEAT_WEEKLY = "weekly"
REPEAT_MONTHLY = "monthly"
REPEAT_KINDS = (REPEAT_DAILY, REPEAT_WEEKLY, REPEAT_MONTHLY)


def parse_calendar_date(value: Any) -> date:
    """
    Parse a calendar date from a date object or an ISO string.

    Timestamps such as "2024-03-04T00:00:00+00:00" are truncated to their
    date part.

    Args:
        value: date instance or "YYYY-MM-DD..." string

    Returns:
        Parsed date

    Raises:
        ValueError: If value cannot be parsed
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        raise ValueError(f"Not a calendar date: {value!r}")
    return date.fromisoformat(value[:10])


def _id_set(values: Any) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(str(v) for v in values if v)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] date range a report covers."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @classmethod
    def for_month(cls, year: int, month: int) -> "DateWindow":
        last_day = calendar.monthrange(year, month)[1]
        return cls(date(year, month, 1), date(year, month, last_day))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True)
class RecurrenceRule:
    """How a recurring event template repeats."""

    kind: str
    repeat_end_date: Optional[date] = None
    excluded_dates: FrozenSet[date] = frozenset()

    @classmethod
    def from_event_row(cls, row: Dict[str, Any]) -> Optional["RecurrenceRule"]:
        """
        Build the recurrence rule of an `events` row.

        Returns None for single events (event_type 'single' or missing).

        Raises:
            InvalidTemplateError: If a recurring row has an unknown repeat_type
                or an unparseable repeat_end_date
        """
        if row.get("event_type") != "recurring":
            return None

        event_id = row.get("id")
        kind = row.get("repeat_type")
        if kind not in REPEAT_KINDS:
            raise InvalidTemplateError(
                f"Event {event_id} has unsupported repeat_type {kind!r}", event_id
            )

        try:
            repeat_end = (
                parse_calendar_date(row["repeat_end_date"])
                if row.get("repeat_end_date") else None
            )
        except ValueError as e:
            raise InvalidTemplateError(
                f"Event {event_id} has invalid repeat_end_date: {e}", event_id
            ) from e

        excluded = set()
        for raw in row.get("excluded_dates") or []:
            try:
                excluded.add(parse_calendar_date(raw))
            except ValueError:
                logger.warning(f"Ignoring malformed excluded date {raw!r} on event {event_id}")

        return cls(kind=kind, repeat_end_date=repeat_end, excluded_dates=frozenset(excluded))


@dataclass(frozen=True)
class EventTemplate:
    """Stored definition of an event or a legacy training session."""

    id: str
    title: str
    start_date: date
    start_time: str = Config.DEFAULT_EVENT_START_TIME
    end_time: str = Config.DEFAULT_EVENT_END_TIME
    subgroup_ids: FrozenSet[str] = frozenset()
    is_cancelled: bool = False
    category: str = CATEGORY_EVENT

    @classmethod
    def from_event_row(cls, row: Dict[str, Any]) -> "EventTemplate":
        """
        Build a template from an `events` row.

        Raises:
            InvalidTemplateError: If id or start_date is missing or malformed
        """
        event_id = row.get("id")
        if not event_id:
            raise InvalidTemplateError("Event row without id")
        try:
            start = parse_calendar_date(row.get("start_date"))
        except ValueError as e:
            raise InvalidTemplateError(f"Event {event_id} has invalid start_date: {e}", event_id) from e

        return cls(
            id=str(event_id),
            title=row.get("title") or "",
            start_date=start,
            start_time=row.get("start_time") or Config.DEFAULT_EVENT_START_TIME,
            end_time=row.get("end_time") or Config.DEFAULT_EVENT_END_TIME,
            subgroup_ids=_id_set(row.get("target_subgroup_ids")),
            is_cancelled=bool(row.get("cancelled")),
            category=CATEGORY_EVENT,
        )

    @classmethod
    def from_session_row(cls, row: Dict[str, Any]) -> "EventTemplate":
        """
        Build a single-occurrence template from a `training_sessions` row.

        Raises:
            InvalidTemplateError: If id or date is missing or malformed
        """
        session_id = row.get("id")
        if not session_id:
            raise InvalidTemplateError("Session row without id")
        try:
            start = parse_calendar_date(row.get("date"))
        except ValueError as e:
            raise InvalidTemplateError(f"Session {session_id} has invalid date: {e}", session_id) from e

        return cls(
            id=str(session_id),
            title="",
            start_date=start,
            start_time=row.get("start_time") or "",
            end_time=row.get("end_time") or "",
            subgroup_ids=_id_set(row.get("subgroup_id")),
            is_cancelled=bool(row.get("cancelled")),
            category=CATEGORY_SESSION,
        )

    @property
    def is_event(self) -> bool:
        return self.category == CATEGORY_EVENT


@dataclass(frozen=True)
class Occurrence:
    """One concrete dated instance of a template. Never persisted."""

    event_id: str
    date: date
    start_time: str
    end_time: str
    title: str
    subgroup_ids: FrozenSet[str] = frozenset()
    category: str = CATEGORY_EVENT
    is_recurring: bool = False

    @property
    def is_event(self) -> bool:
        return self.category == CATEGORY_EVENT


@dataclass(frozen=True)
class Member:
    id: str
    first_name: str = ""
    last_name: str = ""
    subgroup_ids: FrozenSet[str] = frozenset()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Member":
        return cls(
            id=str(row["id"]),
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
            subgroup_ids=_id_set(row.get("subgroup_ids")),
        )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Coach:
    id: str
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Coach":
        return cls(
            id=str(row["id"]),
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
        )


@dataclass
class ParsedTemplates:
    """Templates and recurrence rules parsed from one batch of rows."""

    templates: List[EventTemplate] = field(default_factory=list)
    rules: Dict[str, RecurrenceRule] = field(default_factory=dict)
    skipped: int = 0


def parse_templates(session_rows: List[Dict], event_rows: List[Dict]) -> ParsedTemplates:
    """
    Parse session and event rows into templates, skipping malformed rows.

    Sessions come first, then events, each in row order. That order is the
    tie-break for occurrences on the same date.

    Args:
        session_rows: Rows from training_sessions
        event_rows: Rows from events (single and recurring)

    Returns:
        ParsedTemplates with templates, rules keyed by template id, and
        the number of skipped rows
    """
    parsed = ParsedTemplates()

    for row in session_rows:
        try:
            parsed.templates.append(EventTemplate.from_session_row(row))
        except InvalidTemplateError as e:
            logger.warning(f"Skipping session template: {e}")
            parsed.skipped += 1

    for row in event_rows:
        try:
            template = EventTemplate.from_event_row(row)
            rule = RecurrenceRule.from_event_row(row)
        except InvalidTemplateError as e:
            logger.warning(f"Skipping event template: {e}")
            parsed.skipped += 1
            continue
        parsed.templates.append(template)
        if rule is not None:
            parsed.rules[template.id] = rule

    logger.info(
        f"Parsed {len(parsed.templates)} templates "
        f"({len(parsed.rules)} recurring, {parsed.skipped} skipped)"
    )
    return parsed


def parse_roster(rows: List[Dict], factory) -> List:
    """Parse member or coach rows with `factory`, skipping rows without an id."""
    roster = []
    for row in rows:
        if not row.get("id"):
            logger.warning("Skipping roster row without id")
            continue
        roster.append(factory(row))
    return roster
