"""
Attendance ledger: one normalized lookup over all stored attendance rows.

Event attendance (current system) and session attendance (legacy training
sessions, with three historical coach-hours encodings) are indexed by a
single string key and exposed through presence and coach-hours queries.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from club_attendance.models import EventTemplate, Occurrence, parse_calendar_date
from club_attendance.recurrence import session_duration_hours

logger = logging.getLogger(__name__)


# Coach-hours sources, one per stored encoding
@dataclass(frozen=True)
class ExplicitHours:
    """Current shape: hours recorded per coach."""

    hours: Mapping[str, float]

    def resolve(self, duration: float) -> Dict[str, float]:
        return dict(self.hours)


@dataclass(frozen=True)
class LegacyIdList:
    """Older shape: list of coach ids, each credited with the session duration."""

    coach_ids: Tuple[str, ...]

    def resolve(self, duration: float) -> Dict[str, float]:
        return {coach_id: duration for coach_id in self.coach_ids}


@dataclass(frozen=True)
class LegacySingleId:
    """Oldest shape: one coach id credited with the session duration."""

    coach_id: str

    def resolve(self, duration: float) -> Dict[str, float]:
        return {self.coach_id: duration}


CoachHoursSource = Union[ExplicitHours, LegacyIdList, LegacySingleId]


def _to_hours(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _explicit_hours(entries: Iterable[Any]) -> Dict[str, float]:
    hours = {}
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("id"):
            logger.warning(f"Ignoring malformed coach entry {entry!r}")
            continue
        value = _to_hours(entry.get("hours"))
        hours[str(entry["id"])] = value if value is not None else 0.0
    return hours


def coach_hours_sources(row: Dict[str, Any]) -> List[CoachHoursSource]:
    """
    Classify the coach-hours encodings present on a stored row.

    Sources are returned highest priority first: `coaches` / `coach_hours`
    (explicit), then `coach_ids`, then singular `coach_id`.

    Args:
        row: Event or session attendance row

    Returns:
        List of CoachHoursSource values (empty if no coach data)
    """
    sources: List[CoachHoursSource] = []

    coach_hours = row.get("coach_hours")
    if isinstance(coach_hours, dict) and coach_hours:
        normalized = {}
        for coach_id, value in coach_hours.items():
            hours = _to_hours(value)
            if hours is None:
                logger.warning(f"Ignoring non-numeric hours {value!r} for coach {coach_id}")
                continue
            normalized[str(coach_id)] = hours
        sources.append(ExplicitHours(MappingProxyType(normalized)))

    coaches = row.get("coaches")
    if isinstance(coaches, list) and coaches:
        sources.append(ExplicitHours(MappingProxyType(_explicit_hours(coaches))))

    coach_ids = row.get("coach_ids")
    if isinstance(coach_ids, list) and coach_ids:
        sources.append(LegacyIdList(tuple(str(c) for c in coach_ids if c)))

    if row.get("coach_id"):
        sources.append(LegacySingleId(str(row["coach_id"])))

    return sources


def resolve_coach_hours(sources: Iterable[CoachHoursSource], duration: float) -> Dict[str, float]:
    """Merge sources into one {coach_id: hours} map; the first source naming a coach wins."""
    resolved: Dict[str, float] = {}
    for source in sources:
        for coach_id, hours in source.resolve(duration).items():
            resolved.setdefault(coach_id, hours)
    return resolved


@dataclass(frozen=True)
class AttendanceEntry:
    present_ids: FrozenSet[str] = frozenset()
    coach_hours: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))


EMPTY_ENTRY = AttendanceEntry()


def _present_ids(values: Any) -> FrozenSet[str]:
    if not values:
        return frozenset()
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise ValueError(f"present ids must be a list, got {type(values).__name__}")
    return frozenset(str(v) for v in values if v)


def _iso(value: Any) -> str:
    return parse_calendar_date(value).isoformat()


class AttendanceLedger:
    """
    Immutable index of attendance facts for one report.

    Keys:
    - event rows: "{event_id}_{occurrence_date}" or bare "{event_id}"
    - session rows: "{date}_{session_id}" (subgroup_id for rows without one)
    """

    def __init__(
        self,
        event_entries: Mapping[str, AttendanceEntry],
        session_entries: Mapping[str, AttendanceEntry]
    ):
        self._events = MappingProxyType(dict(event_entries))
        self._sessions = MappingProxyType(dict(session_entries))

    @staticmethod
    def event_key(event_id: str, occurrence_date: Any = None) -> str:
        if occurrence_date:
            return f"{event_id}_{_iso(occurrence_date)}"
        return str(event_id)

    @staticmethod
    def session_key(day: Any, session_id: str) -> str:
        return f"{_iso(day)}_{session_id}"

    @classmethod
    def build(
        cls,
        event_rows: Iterable[Dict[str, Any]],
        session_rows: Iterable[Dict[str, Any]],
        session_templates: Iterable[EventTemplate] = ()
    ) -> "AttendanceLedger":
        """
        Normalize raw attendance rows into a ledger.

        Legacy coach encodings (coach_ids / coach_id) credit each coach with
        the session duration, taken from the matching session template
        (by session id, or by date and subgroup for rows without one),
        else from the row's own start/end time, else the 2.0h default.
        Malformed rows are skipped with a warning.

        Args:
            event_rows: Rows from event_attendance
            session_rows: Rows from attendance
            session_templates: Session templates used for duration lookup

        Returns:
            AttendanceLedger
        """
        session_templates = list(session_templates)
        session_times = {
            t.id: (t.start_time, t.end_time) for t in session_templates
        }
        subgroup_times = {
            (t.start_date.isoformat(), subgroup_id): (t.start_time, t.end_time)
            for t in session_templates
            if isinstance(t.start_date, date)
            for subgroup_id in t.subgroup_ids
        }

        event_entries: Dict[str, AttendanceEntry] = {}
        skipped = 0
        for row in event_rows:
            try:
                if not row.get("event_id"):
                    raise ValueError("missing event_id")
                key = cls.event_key(row["event_id"], row.get("occurrence_date"))
                present = _present_ids(row.get("present_user_ids"))
            except ValueError as e:
                logger.warning(f"Skipping event attendance row: {e}")
                skipped += 1
                continue
            hours = resolve_coach_hours(coach_hours_sources(row), 0.0)
            event_entries[key] = AttendanceEntry(present, MappingProxyType(hours))

        session_entries: Dict[str, AttendanceEntry] = {}
        for row in session_rows:
            session_ref = row.get("session_id") or row.get("subgroup_id")
            try:
                if not session_ref:
                    raise ValueError("missing session_id and subgroup_id")
                key = cls.session_key(row.get("date"), session_ref)
                present = _present_ids(row.get("present_player_ids"))
            except ValueError as e:
                logger.warning(f"Skipping session attendance row: {e}")
                skipped += 1
                continue

            row_times = (row.get("start_time"), row.get("end_time"))
            if row.get("session_id"):
                start_time, end_time = session_times.get(str(row["session_id"]), row_times)
            else:
                start_time, end_time = subgroup_times.get((_iso(row.get("date")), str(session_ref)), row_times)
            duration = session_duration_hours(start_time, end_time)
            hours = resolve_coach_hours(coach_hours_sources(row), duration)
            session_entries[key] = AttendanceEntry(present, MappingProxyType(hours))

        logger.info(
            f"Built attendance ledger: {len(event_entries)} event records, "
            f"{len(session_entries)} session records, {skipped} skipped"
        )
        return cls(event_entries, session_entries)

    def __len__(self) -> int:
        return len(self._events) + len(self._sessions)

    def _event_entry(self, event_id: str, occurrence_date: Any, is_recurring: bool) -> AttendanceEntry:
        entry = self._events.get(self.event_key(event_id, occurrence_date))
        if entry is not None:
            return entry
        # A record without occurrence_date only ever stands in for a one-off
        # event; for recurring events it would match every occurrence.
        if is_recurring:
            return EMPTY_ENTRY
        return self._events.get(str(event_id), EMPTY_ENTRY)

    def lookup_presence(self, event_id: str, occurrence_date: Any, is_recurring: bool) -> FrozenSet[str]:
        """Members present at an event occurrence."""
        return self._event_entry(event_id, occurrence_date, is_recurring).present_ids

    def _session_entry(self, day: date, session_id: str, subgroup_ids: Iterable[str] = ()) -> AttendanceEntry:
        entry = self._sessions.get(self.session_key(day, session_id))
        if entry is not None:
            return entry
        # Oldest rows carry no session_id and are keyed by the session's subgroup
        for subgroup_id in sorted(subgroup_ids):
            entry = self._sessions.get(self.session_key(day, subgroup_id))
            if entry is not None:
                return entry
        return EMPTY_ENTRY

    def lookup_session_presence(
        self,
        day: date,
        session_id: str,
        subgroup_ids: Iterable[str] = ()
    ) -> FrozenSet[str]:
        """Members present at a legacy training session."""
        return self._session_entry(day, session_id, subgroup_ids).present_ids

    def lookup_coach_hours(self, key: str, coach_id: str) -> float:
        """Hours credited to `coach_id` on the record stored under `key`, 0 if none."""
        entry = self._events.get(key) or self._sessions.get(key) or EMPTY_ENTRY
        return entry.coach_hours.get(str(coach_id), 0)

    def event_coach_hours(self, event_id: str, occurrence_date: Any, is_recurring: bool, coach_id: str) -> float:
        entry = self._event_entry(event_id, occurrence_date, is_recurring)
        return entry.coach_hours.get(str(coach_id), 0)

    def session_coach_hours(
        self,
        day: date,
        session_id: str,
        coach_id: str,
        subgroup_ids: Iterable[str] = ()
    ) -> float:
        entry = self._session_entry(day, session_id, subgroup_ids)
        return entry.coach_hours.get(str(coach_id), 0)

    def presence_for(self, occurrence: Occurrence) -> FrozenSet[str]:
        if occurrence.is_event:
            return self.lookup_presence(occurrence.event_id, occurrence.date, occurrence.is_recurring)
        return self.lookup_session_presence(occurrence.date, occurrence.event_id, occurrence.subgroup_ids)

    def coach_hours_for(self, occurrence: Occurrence, coach_id: str) -> float:
        if occurrence.is_event:
            return self.event_coach_hours(
                occurrence.event_id, occurrence.date, occurrence.is_recurring, coach_id
            )
        return self.session_coach_hours(
            occurrence.date, occurrence.event_id, coach_id, occurrence.subgroup_ids
        )
