"""
Attendance logic: the status cycle, the session sheet reconciler and
presence summaries.
"""

from .models import (
    AttendanceDay,
    AttendanceDelta,
    AttendanceRecord,
    AttendanceSummaryRow,
    MonthlyAttendance,
)
from .reconciler import (
    AttendanceSheet,
    apply_delta,
    compute_delta,
    eligible_for_groups,
    seed_statuses,
)
from .status import AttendanceStatus, next_status
from .summary import monthly_attendance, summarize_attendance

__all__ = [
    "AttendanceDay",
    "AttendanceDelta",
    "AttendanceRecord",
    "AttendanceSheet",
    "AttendanceStatus",
    "AttendanceSummaryRow",
    "MonthlyAttendance",
    "apply_delta",
    "compute_delta",
    "eligible_for_groups",
    "monthly_attendance",
    "next_status",
    "seed_statuses",
    "summarize_attendance",
]
