"""
Attendance status domain and the toggle cycle.

The four wire codes are stored exactly as-is in the attendance table.
`N` is never persisted: a missing record means "not set".
"""

from enum import Enum
from typing import Optional


class AttendanceStatus(Enum):
    """Status of one athlete for one training session."""
    NOT_SET = "N"
    PRESENT = "P"
    JUSTIFIED = "J"
    ABSENT = "A"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AttendanceStatus":
        """
        Convert a wire value to a status.

        None and empty strings mean "no record", which is NOT_SET.
        Anything outside the four codes is rejected.
        """
        if raw is None or raw == "":
            return cls.NOT_SET
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown attendance status: {raw!r}")

    @property
    def is_set(self) -> bool:
        return self is not AttendanceStatus.NOT_SET


_NEXT_STATUS = {
    AttendanceStatus.NOT_SET: AttendanceStatus.PRESENT,
    AttendanceStatus.PRESENT: AttendanceStatus.JUSTIFIED,
    AttendanceStatus.JUSTIFIED: AttendanceStatus.ABSENT,
    AttendanceStatus.ABSENT: AttendanceStatus.NOT_SET,
}


def next_status(status: Optional[AttendanceStatus]) -> AttendanceStatus:
    """
    Advance a status one step: N -> P -> J -> A -> N.

    A missing status behaves like N, so the first click on an
    untouched athlete marks them present.
    """
    if status is None:
        status = AttendanceStatus.NOT_SET
    return _NEXT_STATUS[status]
