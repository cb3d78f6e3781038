"""
Data extraction from Supabase tables for one report window.

Independent reads are fanned out on a thread pool and joined before the
dependent event attendance read.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from supabase import Client

from club_attendance.cache import ReferenceCache
from club_attendance.config import Config
from club_attendance.database import run_query
from club_attendance.models import DateWindow

logger = logging.getLogger(__name__)


NOT_CANCELLED = "cancelled.eq.false,cancelled.is.null"

EVENT_COLUMNS = (
    "id, title, start_date, start_time, end_time, target_subgroup_ids, "
    "event_category, event_type"
)
RECURRING_EVENT_COLUMNS = EVENT_COLUMNS + ", repeat_type, repeat_end_date, excluded_dates"


@dataclass
class WindowData:
    """Raw rows needed to build one attendance report."""

    subgroups: Dict[str, str] = field(default_factory=dict)
    sessions: List[Dict[str, Any]] = field(default_factory=list)
    single_events: List[Dict[str, Any]] = field(default_factory=list)
    recurring_events: List[Dict[str, Any]] = field(default_factory=list)
    session_attendance: List[Dict[str, Any]] = field(default_factory=list)
    event_attendance: List[Dict[str, Any]] = field(default_factory=list)
    members: List[Dict[str, Any]] = field(default_factory=list)
    coaches: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def events(self) -> List[Dict[str, Any]]:
        return self.single_events + self.recurring_events


def extract_subgroups(
    client: Client,
    club_id: str,
    cache: Optional[ReferenceCache] = None
) -> Dict[str, str]:
    """
    Extract subgroup names of a club, served from `cache` while it is fresh.

    Returns:
        Mapping subgroup id -> name (id when the name is empty)
    """
    def load() -> Dict[str, str]:
        query = client.table("subgroups").select("id, name").eq("club_id", club_id)
        rows = run_query(query, "subgroups")
        return {row["id"]: row.get("name") or row["id"] for row in rows if row.get("id")}

    if cache is None:
        return load()
    return dict(cache.get_or_build(("subgroups", club_id), load))


def extract_sessions(
    client: Client,
    club_id: str,
    window: DateWindow,
    subgroup_filter: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Extract non-cancelled training sessions dated inside the window."""
    query = (
        client.table("training_sessions")
        .select("*")
        .eq("club_id", club_id)
        .or_(NOT_CANCELLED)
        .gte("date", window.start.isoformat())
        .lte("date", window.end.isoformat())
        .order("date")
    )
    if subgroup_filter:
        query = query.eq("subgroup_id", subgroup_filter)
    return run_query(query, "training_sessions")


def extract_single_events(client: Client, club_id: str, window: DateWindow) -> List[Dict[str, Any]]:
    """Extract non-cancelled single events starting inside the window."""
    query = (
        client.table("events")
        .select(EVENT_COLUMNS)
        .eq("club_id", club_id)
        .or_(NOT_CANCELLED)
        .or_("event_type.eq.single,event_type.is.null")
        .gte("start_date", window.start.isoformat())
        .lte("start_date", window.end.isoformat())
        .order("start_date")
    )
    return run_query(query, "events")


def extract_recurring_events(client: Client, club_id: str, window: DateWindow) -> List[Dict[str, Any]]:
    """
    Extract non-cancelled recurring events that can occur inside the window.

    The start date may lie before the window; events whose repeat end date
    lies before the window are excluded.
    """
    query = (
        client.table("events")
        .select(RECURRING_EVENT_COLUMNS)
        .eq("club_id", club_id)
        .or_(NOT_CANCELLED)
        .eq("event_type", "recurring")
        .lte("start_date", window.end.isoformat())
        .or_(f"repeat_end_date.gte.{window.start.isoformat()},repeat_end_date.is.null")
        .order("start_date")
    )
    return run_query(query, "events")


def extract_session_attendance(
    client: Client,
    club_id: str,
    window: DateWindow,
    subgroup_filter: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Extract legacy session attendance rows dated inside the window."""
    query = (
        client.table("attendance")
        .select("*")
        .eq("club_id", club_id)
        .gte("date", window.start.isoformat())
        .lte("date", window.end.isoformat())
        .order("date")
    )
    if subgroup_filter:
        query = query.eq("subgroup_id", subgroup_filter)
    return run_query(query, "attendance")


def extract_event_attendance(client: Client, event_ids: Sequence[str]) -> List[Dict[str, Any]]:
    """Extract event attendance rows for the given events (empty when no ids)."""
    if not event_ids:
        return []
    query = (
        client.table("event_attendance")
        .select("event_id, occurrence_date, present_user_ids, coach_hours")
        .in_("event_id", list(event_ids))
    )
    return run_query(query, "event_attendance")


def extract_members(client: Client, club_id: str) -> List[Dict[str, Any]]:
    """Extract the player roster of a club ordered by last name."""
    query = (
        client.table("profiles")
        .select("id, first_name, last_name, subgroup_ids")
        .eq("club_id", club_id)
        .eq("role", "player")
        .order("last_name")
    )
    return run_query(query, "profiles")


def extract_coaches(client: Client, club_id: str) -> List[Dict[str, Any]]:
    """Extract coaches and head coaches of a club ordered by last name."""
    query = (
        client.table("profiles")
        .select("id, first_name, last_name")
        .eq("club_id", club_id)
        .in_("role", ["coach", "head_coach"])
        .order("last_name")
    )
    return run_query(query, "profiles")


def extract_window_data(
    client: Client,
    club_id: str,
    window: DateWindow,
    subgroup_filter: Optional[str] = None,
    max_workers: Optional[int] = None,
    cache: Optional[ReferenceCache] = None
) -> WindowData:
    """
    Extract all rows needed for one report window.

    Subgroups, sessions, single and recurring events, session attendance,
    members and coaches are fetched concurrently. Event attendance depends
    on the event ids and is fetched after all of them have completed.

    Args:
        client: Supabase client
        club_id: Club to report on
        window: Report window
        subgroup_filter: Optional subgroup id to restrict sessions and attendance
        max_workers: Thread pool size (defaults to Config.FETCH_WORKERS)
        cache: Optional reference cache for subgroup names

    Returns:
        WindowData

    Raises:
        DataFetchError: If any read fails
    """
    max_workers = max_workers or Config.FETCH_WORKERS
    logger.info(
        f"Extracting data for club {club_id} between {window.start} and {window.end}"
        + (f" (subgroup {subgroup_filter})" if subgroup_filter else "")
    )

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            "subgroups": pool.submit(extract_subgroups, client, club_id, cache),
            "sessions": pool.submit(extract_sessions, client, club_id, window, subgroup_filter),
            "single_events": pool.submit(extract_single_events, client, club_id, window),
            "recurring_events": pool.submit(extract_recurring_events, client, club_id, window),
            "session_attendance": pool.submit(
                extract_session_attendance, client, club_id, window, subgroup_filter
            ),
            "members": pool.submit(extract_members, client, club_id),
            "coaches": pool.submit(extract_coaches, client, club_id),
        }
        # result() re-raises the first failure after all reads were submitted
        results = {name: future.result() for name, future in futures.items()}

    data = WindowData(**results)

    event_ids = list(dict.fromkeys(row["id"] for row in data.events if row.get("id")))
    data.event_attendance = extract_event_attendance(client, event_ids)

    logger.info(
        f"Extraction completed: {len(data.sessions)} sessions, {len(data.events)} events, "
        f"{len(data.session_attendance) + len(data.event_attendance)} attendance records"
    )
    return data


def extract_member_training_dates(
    client: Client,
    club_id: str,
    member_id: str,
    since: str
) -> List[Dict[str, Any]]:
    """Extract session attendance rows since `since` (ISO date) in which a member was present."""
    query = (
        client.table("attendance")
        .select("date, present_player_ids")
        .eq("club_id", club_id)
        .gte("date", since)
        .contains("present_player_ids", [member_id])
    )
    return run_query(query, "attendance")
