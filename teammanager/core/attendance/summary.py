"""
Attendance summaries for the season overview and the trend chart.

Both work on attendance_to_sessions rows already filtered by date range
and session type. The season summary also takes the sessions held in
that range, which set each athlete's denominator.
"""

from collections import defaultdict
from typing import Iterable

from ..models import Athlete, TrainingSession
from ..seasons import Season, season_months
from .models import AttendanceDay, AttendanceSummaryRow, MonthlyAttendance
from .reconciler import eligible_for_groups
from .status import AttendanceStatus


def _percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part * 100.0 / whole, 2)


def summarize_attendance(
    roster: Iterable[Athlete],
    records: Iterable[AttendanceDay],
    sessions: Iterable[TrainingSession],
) -> list[AttendanceSummaryRow]:
    """
    Presence counts per athlete.

    `sessions` are the sessions held in the period for the chosen type.
    An athlete's `total_sessions` counts those open to their groups, plus
    any other session they have a stored status for, so sessions left at
    N still lower the percentage. `percent` is the present share of that
    total.

    Every roster athlete gets a row, including those with no records.
    Sorted by percent descending, then name.
    """
    sessions = list(sessions)
    present: dict[int, int] = defaultdict(int)
    justified: dict[int, int] = defaultdict(int)
    recorded: dict[int, set] = defaultdict(set)

    for record in records:
        if not record.status.is_set:
            continue
        recorded[record.fincode].add(record.session_id)
        if record.status is AttendanceStatus.PRESENT:
            present[record.fincode] += 1
        elif record.status is AttendanceStatus.JUSTIFIED:
            justified[record.fincode] += 1

    rows = []
    for athlete in roster:
        held = {
            session.session_id
            for session in sessions
            if eligible_for_groups(athlete.groups, session.groups)
        }
        total = len(held | recorded.get(athlete.fincode, set()))
        rows.append(AttendanceSummaryRow(
            fincode=athlete.fincode,
            name=athlete.name,
            presenze=present.get(athlete.fincode, 0),
            giustificate=justified.get(athlete.fincode, 0),
            total_sessions=total,
            percent=_percentage(present.get(athlete.fincode, 0), total),
            photo=athlete.photo,
        ))

    rows.sort(key=lambda row: (-row.percent, row.name))
    return rows


def monthly_attendance(
    records: Iterable[AttendanceDay],
    season: Season,
) -> list[MonthlyAttendance]:
    """
    Monthly attendance percentage for one athlete across a season.

    Returns one entry per season month, in order. Months without any
    recorded session report 0.
    """
    recorded: dict[str, int] = defaultdict(int)
    attended: dict[str, int] = defaultdict(int)

    for record in records:
        if not record.status.is_set or not season.contains(record.date):
            continue
        month = record.date.strftime("%Y-%m")
        recorded[month] += 1
        if record.status is AttendanceStatus.PRESENT:
            attended[month] += 1

    return [
        MonthlyAttendance(
            month=month,
            attendance_percentage=_percentage(attended[month], recorded[month]),
            sessions=recorded[month],
        )
        for month in season_months(season)
    ]
