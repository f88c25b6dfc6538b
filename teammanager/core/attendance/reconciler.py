"""
Attendance reconciliation.

The coach edits a whole session at once: every eligible athlete starts
at their stored status (or N), clicks cycle statuses in memory, and a
single save persists the result. Saving never writes N rows. Moving an
athlete back to N deletes their stored row; any other status is upserted
on (session_id, fincode).

Only rows that actually change are written, so saving twice in a row is
a no-op the second time.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from ..models import Athlete, split_groups
from .models import AttendanceDelta, AttendanceRecord
from .status import AttendanceStatus, next_status


def eligible_for_groups(athlete_groups: Optional[str], session_groups: Optional[str]) -> bool:
    """
    Whether an athlete belongs on a session's roster.

    Both fields are comma separated group codes compared case-insensitively.
    A session without groups is open to every athlete; an athlete without
    groups only joins open sessions.
    """
    wanted = split_groups(session_groups)
    if not wanted:
        return True
    have = split_groups(athlete_groups)
    return any(group in have for group in wanted)


def seed_statuses(
    roster: Iterable[Athlete],
    persisted: Iterable[AttendanceRecord],
) -> dict[int, AttendanceStatus]:
    """
    Build the editable status map for a session.

    Keys follow roster order. Athletes without a stored row start at N.
    Stored rows for athletes outside the roster are not included; they
    are left untouched by the save.
    """
    stored = {record.fincode: record.status for record in persisted}
    return {
        athlete.fincode: stored.get(athlete.fincode, AttendanceStatus.NOT_SET)
        for athlete in roster
        if athlete.fincode is not None
    }


def compute_delta(
    session_id: int,
    current: Mapping[int, AttendanceStatus],
    persisted: Iterable[AttendanceRecord],
) -> AttendanceDelta:
    """
    Work out the deletes and upserts for one session.

    - to_delete: athletes now at N that still have a stored row.
    - to_upsert: athletes at P, J or A whose stored status differs or is missing.

    Both lists follow the iteration order of `current`.
    """
    stored = {
        record.fincode: record.status
        for record in persisted
        if record.session_id == session_id
    }

    to_delete = []
    to_upsert = []
    for fincode, status in current.items():
        status = status or AttendanceStatus.NOT_SET
        if not status.is_set:
            if fincode in stored:
                to_delete.append(fincode)
        elif stored.get(fincode) is not status:
            to_upsert.append(AttendanceRecord(session_id, fincode, status))

    return AttendanceDelta(session_id=session_id, to_delete=to_delete, to_upsert=to_upsert)


def apply_delta(
    persisted: Iterable[AttendanceRecord],
    delta: AttendanceDelta,
) -> list[AttendanceRecord]:
    """
    Return the stored rows as they look after the delta is written.

    Mirrors what the database does with the batch: rows for other
    sessions pass through, deletes drop rows, upserts replace or append.
    """
    removed = set(delta.to_delete)
    updates = {record.fincode: record for record in delta.to_upsert}

    result = []
    for record in persisted:
        if record.session_id != delta.session_id:
            result.append(record)
        elif record.fincode in updates:
            result.append(updates.pop(record.fincode))
        elif record.fincode not in removed:
            result.append(record)
    result.extend(updates.values())
    return result


@dataclass
class AttendanceSheet:
    """
    The in-memory attendance map for one session while it is being edited.

    This is the only mutable piece of the attendance workflow: toggles
    change the map, and `delta` turns it into writes.
    """
    session_id: int
    statuses: dict[int, AttendanceStatus] = field(default_factory=dict)

    @classmethod
    def seed(
        cls,
        session_id: int,
        roster: Iterable[Athlete],
        persisted: Iterable[AttendanceRecord],
    ) -> "AttendanceSheet":
        return cls(session_id=session_id, statuses=seed_statuses(roster, persisted))

    def toggle(self, fincode: int) -> AttendanceStatus:
        """Advance one athlete to the next status and return it."""
        if fincode not in self.statuses:
            raise KeyError(f"Athlete {fincode} is not on this session's roster")
        self.statuses[fincode] = next_status(self.statuses[fincode])
        return self.statuses[fincode]

    def set(self, fincode: int, status: AttendanceStatus) -> None:
        if fincode not in self.statuses:
            raise KeyError(f"Athlete {fincode} is not on this session's roster")
        self.statuses[fincode] = status

    def delta(self, persisted: Iterable[AttendanceRecord]) -> AttendanceDelta:
        return compute_delta(self.session_id, self.statuses, persisted)
