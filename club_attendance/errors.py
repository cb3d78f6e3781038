"""
Error taxonomy for the attendance export.

Per-template and per-record errors are skipped and logged by callers;
only DataFetchError is meant to reach the user.
"""


class AttendanceExportError(Exception):
    """Base class for all attendance export errors."""


class InvalidTemplateError(AttendanceExportError, ValueError):
    """An event or session template is missing or has malformed required fields."""

    def __init__(self, message: str, template_id: str = None):
        super().__init__(message)
        self.template_id = template_id


class MalformedTimeError(AttendanceExportError, ValueError):
    """A wall-clock time string could not be parsed as HH:MM."""


class DataFetchError(AttendanceExportError):
    """A read from the backend failed (network, auth or query error)."""

    def __init__(self, message: str, table: str = None):
        super().__init__(message)
        self.table = table
