"""
Aggregation of occurrences and attendance into export tables.

Builds the member/coach × occurrence matrix and the per-member summary
from expanded occurrences and an AttendanceLedger.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from club_attendance.ledger import AttendanceLedger
from club_attendance.models import Coach, DateWindow, EventTemplate, Member, Occurrence, RecurrenceRule
from club_attendance.recurrence import expand_all

logger = logging.getLogger(__name__)


# Fill colours (ARGB) for dates with more than one occurrence
MULTI_SESSION_COLORS = ["FFFFEB99", "FFB3E5FC", "FFC8E6C9", "FFFFCCBC"]

ROW_HEADER = "header"
ROW_MEMBER = "member"
ROW_BLANK = "blank"
ROW_COACH_LABEL = "coach_label"
ROW_COACH = "coach"
ROW_HEADCOUNT = "headcount"
ROW_LEGEND = "legend"

LABEL_LAST_NAME = "Last name"
LABEL_FIRST_NAME = "First name"
LABEL_TOTAL = "Total"
LABEL_COACHES = "Coaches"
LABEL_HEADCOUNT = "Players per day (excluding coaches)"

SUMMARY_HEADER = ["Player", "Sessions attended", "Attendance rate"]


@dataclass
class Matrix:
    """
    Attendance pivot ready for a spreadsheet writer.

    Attributes:
        rows: Flat rows of cell values (str, int, float, bool or None for blank)
        row_kinds: One ROW_* marker per row
        occurrences: Occurrence for each occurrence column, in column order
        highlights: ARGB colour per occurrence column, None when the date
            has a single occurrence
        first_occurrence_column: Index of the first occurrence column
    """

    rows: List[List[Any]] = field(default_factory=list)
    row_kinds: List[str] = field(default_factory=list)
    occurrences: List[Occurrence] = field(default_factory=list)
    highlights: List[Optional[str]] = field(default_factory=list)
    first_occurrence_column: int = 2

    def add_row(self, kind: str, cells: List[Any]) -> None:
        self.rows.append(cells)
        self.row_kinds.append(kind)

    def rows_of_kind(self, kind: str) -> List[List[Any]]:
        return [row for row, k in zip(self.rows, self.row_kinds) if k == kind]

    def index_of(self, kind: str) -> Optional[int]:
        for index, k in enumerate(self.row_kinds):
            if k == kind:
                return index
        return None

    @property
    def column_dates(self) -> List:
        return [occ.date for occ in self.occurrences]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Member × occurrence pivot as a DataFrame.

        Index is (last name, first name); columns are (date, event id);
        out-of-scope cells are NA.
        """
        start = self.first_occurrence_column
        end = start + len(self.occurrences)
        member_rows = self.rows_of_kind(ROW_MEMBER)

        columns = pd.MultiIndex.from_tuples(
            [(occ.date, occ.event_id) for occ in self.occurrences],
            names=["date", "event_id"],
        )
        index = pd.MultiIndex.from_tuples(
            [(row[0], row[1]) for row in member_rows],
            names=["last_name", "first_name"],
        ) if member_rows else pd.MultiIndex.from_tuples([], names=["last_name", "first_name"])

        df = pd.DataFrame(
            [row[start:end] for row in member_rows],
            index=index,
            columns=columns,
            dtype="boolean",
        )
        return df


def assign_highlights(occurrences: Sequence[Occurrence]) -> List[Optional[str]]:
    """
    Colour for each occurrence column.

    Dates with more than one occurrence get a palette colour, cycling in
    chronological order of the dates; all occurrences on a date share it.
    """
    per_date: Dict[Any, int] = {}
    for occ in occurrences:
        per_date[occ.date] = per_date.get(occ.date, 0) + 1

    colors: Dict[Any, Optional[str]] = {}
    for occ in occurrences:
        if occ.date in colors:
            continue
        if per_date[occ.date] > 1:
            multi_index = sum(1 for c in colors.values() if c is not None)
            colors[occ.date] = MULTI_SESSION_COLORS[multi_index % len(MULTI_SESSION_COLORS)]
        else:
            colors[occ.date] = None

    return [colors[occ.date] for occ in occurrences]


def is_in_scope(member: Member, occurrence: Occurrence) -> bool:
    """
    Whether a member is expected at an occurrence.

    Events are club-wide: every exported member is in scope. Training
    sessions only include members of the session's subgroup.
    """
    if occurrence.is_event:
        return True
    return bool(member.subgroup_ids & occurrence.subgroup_ids)


def _sort_key(person) -> tuple:
    return (person.last_name or "", person.first_name or "")


def relevant_members(
    members: Sequence[Member],
    occurrences: Sequence[Occurrence],
    subgroup_filter: Optional[str] = None
) -> List[Member]:
    """
    Members to export for a set of occurrences.

    Applies the optional subgroup filter, keeps members sharing a subgroup
    with at least one occurrence, and sorts by last then first name.
    """
    candidates = list(members)
    if subgroup_filter:
        candidates = [m for m in candidates if subgroup_filter in m.subgroup_ids]

    occurrence_subgroups = set()
    club_wide = False
    for occ in occurrences:
        occurrence_subgroups |= occ.subgroup_ids
        # An event without target subgroups applies to the whole club
        if occ.is_event and not occ.subgroup_ids:
            club_wide = True

    selected = [
        m for m in candidates
        if club_wide or m.subgroup_ids & occurrence_subgroups
    ]
    logger.info(f"Selected {len(selected)} of {len(members)} members for export")
    return sorted(selected, key=_sort_key)


def _column_label(occurrence: Occurrence, subgroup_names: Dict[str, str]) -> str:
    if occurrence.is_event:
        name = occurrence.title
    else:
        subgroup_id = min(occurrence.subgroup_ids) if occurrence.subgroup_ids else ""
        name = subgroup_names.get(subgroup_id, subgroup_id)
    return f"{name} ({occurrence.start_time}-{occurrence.end_time})"


def _legend_rows(has_highlights: bool) -> List[List[Any]]:
    rows = [
        ["Legend:"],
        ["Players:", "☑ = present, ☐ = absent"],
        ["Coaches:", "Hours = time present in hours (e.g. 2.5)"],
        ["Total:", "Players = number of sessions, coaches = sum of hours"],
    ]
    if has_highlights:
        rows.append(["Coloured columns", "= several sessions on the same day (same colour = same day)"])
    return rows


def build_matrix(
    templates: Sequence[EventTemplate],
    rules: Dict[str, RecurrenceRule],
    window: DateWindow,
    ledger: AttendanceLedger,
    members: Sequence[Member],
    coaches: Sequence[Coach],
    subgroup_names: Optional[Dict[str, str]] = None,
    occurrences: Optional[Sequence[Occurrence]] = None
) -> Matrix:
    """
    Build the attendance matrix for a window.

    Layout: two header rows, one row per member (presence per occurrence
    plus total), a blank row, a coach label row, one row per coach (hours
    per occurrence plus total), the headcount row, a blank row and the
    legend. Members and coaches are used in the order given.

    Args:
        templates: Session and event templates in tie-break order
        rules: Recurrence rules keyed by template id
        window: Report window
        ledger: Attendance ledger for the window
        members: Members to export
        coaches: Coaches to export
        subgroup_names: Optional subgroup id -> display name
        occurrences: Already expanded occurrences of the window; expanded
            from templates and rules when None

    Returns:
        Matrix
    """
    subgroup_names = subgroup_names or {}
    if occurrences is None:
        occurrences = expand_all(templates, rules, window)
    occurrences = list(occurrences)
    highlights = assign_highlights(occurrences)
    matrix = Matrix(occurrences=occurrences, highlights=highlights)

    matrix.add_row(
        ROW_HEADER,
        [LABEL_LAST_NAME, LABEL_FIRST_NAME]
        + [occ.date.strftime("%d.%m.%Y") for occ in occurrences]
        + [LABEL_TOTAL],
    )
    matrix.add_row(
        ROW_HEADER,
        ["", ""] + [_column_label(occ, subgroup_names) for occ in occurrences] + [""],
    )

    presence = [ledger.presence_for(occ) for occ in occurrences]
    headcounts = [0] * len(occurrences)

    for member in members:
        row: List[Any] = [member.last_name, member.first_name]
        total = 0
        for column, occ in enumerate(occurrences):
            if not is_in_scope(member, occ):
                row.append(None)
                continue
            present = member.id in presence[column]
            row.append(present)
            if present:
                total += 1
                headcounts[column] += 1
        row.append(total)
        matrix.add_row(ROW_MEMBER, row)

    matrix.add_row(ROW_BLANK, [])
    matrix.add_row(ROW_COACH_LABEL, [LABEL_COACHES, ""] + [None] * len(occurrences) + [None])

    for coach in coaches:
        row = [coach.last_name, coach.first_name]
        total_hours = 0.0
        for occ in occurrences:
            # Negative durations (end before start) count as no hours
            hours = max(ledger.coach_hours_for(occ, coach.id), 0)
            row.append(hours if hours > 0 else None)
            total_hours += hours
        total_hours = round(total_hours, 1)
        row.append(total_hours if total_hours > 0 else None)
        matrix.add_row(ROW_COACH, row)

    matrix.add_row(ROW_HEADCOUNT, [LABEL_HEADCOUNT, ""] + headcounts + [None])

    matrix.add_row(ROW_BLANK, [])
    has_highlights = any(color is not None for color in highlights)
    for legend in _legend_rows(has_highlights):
        matrix.add_row(ROW_LEGEND, legend)

    logger.info(
        f"Built matrix: {len(occurrences)} occurrences, {len(members)} members, "
        f"{len(coaches)} coaches"
    )
    return matrix


def build_summary(
    occurrences: Sequence[Occurrence],
    ledger: AttendanceLedger,
    members: Sequence[Member]
) -> pd.DataFrame:
    """
    Per-member attendance totals over a set of occurrences.

    Session and event attendance are merged through the ledger. The rate
    is attendance_count / number of occurrences, and 0.0 when there are
    no occurrences.

    Args:
        occurrences: Expanded occurrences of the window
        ledger: Attendance ledger for the window
        members: Members to summarize

    Returns:
        DataFrame with columns member_id, last_name, first_name,
        attendance_count, attendance_rate; sorted by count descending,
        then last and first name
    """
    columns = ["member_id", "last_name", "first_name", "attendance_count", "attendance_rate"]
    total = len(occurrences)
    presence = [ledger.presence_for(occ) for occ in occurrences]

    records = []
    for member in members:
        count = sum(1 for present_ids in presence if member.id in present_ids)
        records.append({
            "member_id": member.id,
            "last_name": member.last_name,
            "first_name": member.first_name,
            "attendance_count": count,
            "attendance_rate": count / total if total > 0 else 0.0,
        })

    df = pd.DataFrame(records, columns=columns)
    if not df.empty:
        df = df.sort_values(
            ["attendance_count", "last_name", "first_name"],
            ascending=[False, True, True],
            kind="mergesort",
        ).reset_index(drop=True)

    logger.info(f"Summarized attendance for {len(df)} members over {total} occurrences")
    return df


def summary_rows(summary: pd.DataFrame) -> List[List[Any]]:
    """Convert a build_summary DataFrame into spreadsheet rows."""
    rows: List[List[Any]] = [list(SUMMARY_HEADER)]
    for _, record in summary.iterrows():
        name = f"{record['first_name']} {record['last_name']}".strip()
        rows.append([
            name,
            int(record["attendance_count"]),
            f"{record['attendance_rate'] * 100:.1f}%",
        ])
    return rows
