"""
Club Attendance Export

Expands recurring club events into dated occurrences, merges attendance
and coach-hours records from current and legacy storage shapes, and builds
the monthly attendance matrix and summary for spreadsheet export.
"""

__version__ = "1.0.0"
