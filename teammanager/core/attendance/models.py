"""
Attendance models.

An attendance record is identified by (session_id, fincode). The table
holds at most one row per pair and never holds an N row.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from .status import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """One persisted status for one athlete at one session."""
    session_id: int
    fincode: int
    status: AttendanceStatus

    @property
    def key(self) -> tuple[int, int]:
        return (self.session_id, self.fincode)


@dataclass(frozen=True)
class AttendanceDay:
    """
    An athlete's attendance joined with the session it belongs to.

    This is the row shape of the attendance_to_sessions view, used by
    the individual calendar and the summary pages.
    """
    date: date
    session_id: int
    fincode: int
    status: AttendanceStatus
    type: Optional[str] = None
    groups: Optional[str] = None
    attendance_id: Optional[int] = None


@dataclass(frozen=True)
class AttendanceDelta:
    """
    The writes needed to bring the table in line with an edited sheet.

    `to_delete` lists fincodes whose stored row must go (status went back
    to N). `to_upsert` lists rows to insert or overwrite.
    """
    session_id: int
    to_delete: list[int] = field(default_factory=list)
    to_upsert: list[AttendanceRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_upsert


@dataclass(frozen=True)
class AttendanceSummaryRow:
    """Presence counts for one athlete over a period."""
    fincode: Optional[int]
    name: str
    presenze: int
    giustificate: int
    total_sessions: int
    percent: float
    photo: Optional[str] = None


@dataclass(frozen=True)
class MonthlyAttendance:
    """Share of recorded sessions attended in one month."""
    month: str  # YYYY-MM
    attendance_percentage: float
    sessions: int = 0
