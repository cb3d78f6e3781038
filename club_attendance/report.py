"""
Monthly attendance export orchestration.

Pulls one month of data from Supabase, builds the ledger, matrix and
summary, and writes them to spreadsheet files.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from supabase import Client

from club_attendance.aggregation import Matrix, build_matrix, build_summary, relevant_members, summary_rows
from club_attendance.cache import ReferenceCache
from club_attendance.config import Config
from club_attendance.data_extraction import WindowData, extract_member_training_dates, extract_window_data
from club_attendance.errors import DataFetchError
from club_attendance.excel_writer import matrix_filename, sheet_title, summary_filename, write_matrix, write_summary
from club_attendance.ledger import AttendanceLedger
from club_attendance.models import (
    CATEGORY_SESSION,
    Coach,
    DateWindow,
    EventTemplate,
    Member,
    Occurrence,
    RecurrenceRule,
    parse_roster,
    parse_templates,
)
from club_attendance.recurrence import expand_all
from club_attendance.training_stats import calculate_training_statistics, training_dates_for_member

logger = logging.getLogger(__name__)


@dataclass
class ReportInputs:
    """Parsed, ready-to-aggregate inputs for one report window."""

    window: DateWindow
    templates: List[EventTemplate] = field(default_factory=list)
    rules: Dict[str, RecurrenceRule] = field(default_factory=dict)
    ledger: Optional[AttendanceLedger] = None
    members: List[Member] = field(default_factory=list)
    coaches: List[Coach] = field(default_factory=list)
    subgroup_names: Dict[str, str] = field(default_factory=dict)

    def occurrences(self) -> List[Occurrence]:
        return expand_all(self.templates, self.rules, self.window)


def prepare_inputs(data: WindowData, window: DateWindow) -> ReportInputs:
    """
    Parse raw window rows into templates, rules, rosters and a ledger.

    Malformed templates and roster rows are skipped and logged.
    """
    parsed = parse_templates(data.sessions, data.events)
    session_templates = [t for t in parsed.templates if t.category == CATEGORY_SESSION]

    ledger = AttendanceLedger.build(
        data.event_attendance,
        data.session_attendance,
        session_templates,
    )

    return ReportInputs(
        window=window,
        templates=parsed.templates,
        rules=parsed.rules,
        ledger=ledger,
        members=parse_roster(data.members, Member.from_row),
        coaches=parse_roster(data.coaches, Coach.from_row),
        subgroup_names=dict(data.subgroups),
    )


def build_report_matrix(inputs: ReportInputs, subgroup_filter: Optional[str] = None) -> Matrix:
    """Build the attendance matrix for the members relevant to the window's occurrences."""
    occurrences = inputs.occurrences()
    members = relevant_members(inputs.members, occurrences, subgroup_filter)
    return build_matrix(
        inputs.templates,
        inputs.rules,
        inputs.window,
        inputs.ledger,
        members,
        inputs.coaches,
        inputs.subgroup_names,
        occurrences=occurrences,
    )


def build_report_summary(inputs: ReportInputs, subgroup_filter: Optional[str] = None):
    """Build the per-member summary DataFrame, optionally restricted to one subgroup."""
    members = inputs.members
    if subgroup_filter:
        members = [m for m in members if subgroup_filter in m.subgroup_ids]
    return build_summary(inputs.occurrences(), inputs.ledger, members)


def _load_inputs(
    client: Client,
    club_id: str,
    year: int,
    month: int,
    subgroup_filter: Optional[str],
    cache: Optional[ReferenceCache]
) -> ReportInputs:
    window = DateWindow.for_month(year, month)
    data = extract_window_data(client, club_id, window, subgroup_filter, cache=cache)
    return prepare_inputs(data, window)


def export_attendance_matrix(
    client: Client,
    club_id: str,
    year: int,
    month: int,
    subgroup_filter: Optional[str] = None,
    output_dir: Optional[str] = None,
    cache: Optional[ReferenceCache] = None
) -> str:
    """
    Export one month of attendance as a member/coach × occurrence matrix.

    Args:
        client: Supabase client
        club_id: Club to export
        year: Year of the month
        month: Month number (1-12)
        subgroup_filter: Optional subgroup id, None for the whole club
        output_dir: Target directory (defaults to Config.EXPORT_DIR)
        cache: Optional reference cache shared between exports

    Returns:
        Path of the written .xlsx file

    Raises:
        DataFetchError: If loading data from Supabase fails
    """
    logger.info(f"Exporting attendance matrix for {year}-{month:02d}")
    try:
        inputs = _load_inputs(client, club_id, year, month, subgroup_filter, cache)
    except DataFetchError as e:
        logger.error(f"Attendance export failed: {e}")
        raise

    matrix = build_report_matrix(inputs, subgroup_filter)
    path = os.path.join(output_dir or Config.EXPORT_DIR, matrix_filename(year, month))
    return write_matrix(matrix, path, sheet_title(year, month))


def export_attendance_summary(
    client: Client,
    club_id: str,
    year: int,
    month: int,
    subgroup_filter: Optional[str] = None,
    output_dir: Optional[str] = None,
    cache: Optional[ReferenceCache] = None
) -> str:
    """
    Export one month of per-member attendance totals and rates.

    Args:
        client: Supabase client
        club_id: Club to export
        year: Year of the month
        month: Month number (1-12)
        subgroup_filter: Optional subgroup id, None for the whole club
        output_dir: Target directory (defaults to Config.EXPORT_DIR)
        cache: Optional reference cache shared between exports

    Returns:
        Path of the written .xlsx file

    Raises:
        DataFetchError: If loading data from Supabase fails
    """
    logger.info(f"Exporting attendance summary for {year}-{month:02d}")
    try:
        inputs = _load_inputs(client, club_id, year, month, subgroup_filter, cache)
    except DataFetchError as e:
        logger.error(f"Attendance summary export failed: {e}")
        raise

    summary = build_report_summary(inputs, subgroup_filter)
    path = os.path.join(output_dir or Config.EXPORT_DIR, summary_filename(year, month))
    return write_summary(summary_rows(summary), path)


def member_training_statistics(
    client: Client,
    club_id: str,
    member_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Dashboard training statistics for one member.

    Reads session attendance since the first day of the previous month,
    which covers both compared months and the 28-day window.
    """
    today = today or date.today()
    year, month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    since = date(year, month, 1).isoformat()

    rows = extract_member_training_dates(client, club_id, member_id, since)
    return calculate_training_statistics(training_dates_for_member(rows, member_id), today)
