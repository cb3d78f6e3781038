#!/usr/bin/env python3
"""
Main orchestration script for the monthly attendance export.

This script:
1. Connects to Supabase
2. Loads sessions, events, attendance and rosters for the month
3. Expands recurring events into occurrences
4. Builds the attendance matrix and/or summary
5. Writes the .xlsx files to the export directory
"""

import argparse
import logging
import sys
from datetime import date

from club_attendance.cache import ReferenceCache
from club_attendance.config import Config
from club_attendance.database import get_supabase_client, list_clubs
from club_attendance.report import export_attendance_matrix, export_attendance_summary

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    today = date.today()
    parser = argparse.ArgumentParser(description="Export monthly club attendance to Excel")
    parser.add_argument("club_id", nargs="?", help="Club to export")
    parser.add_argument("--list-clubs", action="store_true", help="List clubs and exit")
    parser.add_argument("--year", type=int, default=today.year)
    parser.add_argument("--month", type=int, default=today.month, choices=range(1, 13))
    parser.add_argument("--subgroup", default=None, help="Restrict to one subgroup id")
    parser.add_argument(
        "--report",
        choices=["matrix", "summary", "both"],
        default="both",
        help="Which file(s) to write",
    )
    parser.add_argument("--output-dir", default=Config.EXPORT_DIR)
    args = parser.parse_args(argv)
    if not args.club_id and not args.list_clubs:
        parser.error("club_id is required unless --list-clubs is given")
    return args


def main(argv=None):
    """Main execution function."""
    args = parse_args(argv)
    try:
        if args.list_clubs:
            for club in list_clubs(get_supabase_client()):
                print(f"{club['id']}\t{club.get('name') or ''}")
            return

        logger.info("=" * 60)
        logger.info(f"Starting attendance export for {args.year}-{args.month:02d}")
        logger.info("=" * 60)

        client = get_supabase_client()
        # Shared by both exports so subgroup names are read once
        cache = ReferenceCache()

        written = []
        if args.report in ("matrix", "both"):
            written.append(export_attendance_matrix(
                client, args.club_id, args.year, args.month, args.subgroup, args.output_dir, cache
            ))
        if args.report in ("summary", "both"):
            written.append(export_attendance_summary(
                client, args.club_id, args.year, args.month, args.subgroup, args.output_dir, cache
            ))

        logger.info("=" * 60)
        logger.info("Attendance Export Completed Successfully!")
        logger.info("=" * 60)
        for path in written:
            logger.info(f"  Written: {path}")

    except Exception as e:
        logger.error(f"\nExport failed with error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
