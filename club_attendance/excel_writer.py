"""
Spreadsheet output for the attendance matrix and summary.

Serializes the row contract produced by the aggregation module to .xlsx.
"""

import logging
import os
from typing import Any, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from club_attendance.aggregation import (
    ROW_COACH_LABEL,
    ROW_HEADCOUNT,
    ROW_HEADER,
    ROW_LEGEND,
    Matrix,
)

logger = logging.getLogger(__name__)


PRESENT_MARK = "☑"
ABSENT_MARK = "☐"

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def matrix_filename(year: int, month: int) -> str:
    return f"Attendance_{year}_{month:02d}.xlsx"


def summary_filename(year: int, month: int) -> str:
    return f"Attendance_Summary_{year}_{month:02d}.xlsx"


def sheet_title(year: int, month: int) -> str:
    return f"{MONTH_NAMES[month - 1]} {year}"


def _cell_value(value: Any) -> Any:
    # bool must be checked before numbers: True is an int
    if value is True:
        return PRESENT_MARK
    if value is False:
        return ABSENT_MARK
    return value


def write_matrix(matrix: Matrix, path: str, title: str = "Attendance") -> str:
    """
    Write an attendance matrix to an .xlsx file.

    Header rows are bold and centred, occurrence columns of dates with
    several occurrences are filled with their highlight colour, and the
    coach label, headcount and first legend row are bold.

    Args:
        matrix: Matrix from build_matrix
        path: Output file path
        title: Worksheet title (max 31 characters)

    Returns:
        The path written
    """
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    first_col = matrix.first_occurrence_column
    legend_seen = False

    # append() advances one sheet row per call, blank rows included
    for row_index, (row_cells, kind) in enumerate(zip(matrix.rows, matrix.row_kinds), start=1):
        ws.append([_cell_value(v) for v in row_cells])
        if not row_cells:
            continue

        row = ws[row_index]
        if kind == ROW_HEADER:
            for col_offset, cell in enumerate(row):
                occurrence_index = col_offset - first_col
                if 0 <= occurrence_index < len(matrix.highlights):
                    color = matrix.highlights[occurrence_index]
                    if color:
                        cell.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
                cell.font = Font(bold=True)
                cell.alignment = Alignment(horizontal="center", vertical="center")
        elif kind in (ROW_COACH_LABEL, ROW_HEADCOUNT):
            for cell in row:
                cell.font = Font(bold=True)
        elif kind == ROW_LEGEND and not legend_seen:
            legend_seen = True
            for cell in row:
                cell.font = Font(bold=True, size=12)

    widths = [15, 15] + [20] * len(matrix.occurrences) + [10]
    for index, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    _save(wb, path)
    logger.info(f"Excel file written: {path} ({len(matrix.rows)} rows)")
    return path


def write_summary(rows: List[List[Any]], path: str, title: str = "Summary") -> str:
    """
    Write summary rows (header first) to an .xlsx file.

    Args:
        rows: Rows from summary_rows
        path: Output file path
        title: Worksheet title

    Returns:
        The path written
    """
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    for row_index, row_cells in enumerate(rows):
        ws.append(row_cells)
        if row_index == 0:
            for cell in ws[ws.max_row]:
                cell.font = Font(bold=True)
                cell.alignment = Alignment(horizontal="center", vertical="center")

    for index, width in enumerate([25, 20, 18], start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    _save(wb, path)
    logger.info(f"Excel file written: {path} ({max(len(rows) - 1, 0)} players)")
    return path


def _save(wb: Workbook, path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    wb.save(path)
