"""
Calendar endpoints.

Two month views share the same Monday-first grid:
- /sessions: every training session of the month, grouped by day
- /attendance: one athlete's status per day for a session type

Months are passed as YYYY-MM and default to the current month. Each
response carries the neighbouring months so clients can page without
doing date arithmetic.
"""

import logging
from datetime import date
from typing import Any, Generic, Optional, TypeVar

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.attendance import AttendanceDay
from ...core.calendar import (
    WEEKDAY_HEADERS,
    CalendarGrid,
    build_month_grid,
    format_month,
    group_by_date,
    index_by_date,
    month_bounds,
    parse_month,
    shift_month,
)
from ...core.models import SessionType, TrainingSession
from ..dependencies import (
    AttendanceRepositoryDep,
    AuthenticatedUser,
    SessionRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EntryT = TypeVar("EntryT")


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class SessionEntry(BaseModel):
    """A session as shown in a calendar cell."""
    session_id: int
    type: str
    groups: Optional[str] = None
    starttime: Optional[str] = None
    endtime: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    volume: Optional[int] = None
    location: Optional[str] = None
    poolname: Optional[str] = None
    poollength: Optional[int] = None


class AttendanceEntry(BaseModel):
    """An athlete's status on one day."""
    session_id: int
    status: str
    type: Optional[str] = None
    groups: Optional[str] = None


class CalendarDay(BaseModel, Generic[EntryT]):
    date: date
    entries: list[EntryT] = Field(default_factory=list)


class CalendarResponse(BaseModel, Generic[EntryT]):
    """A month laid out as weeks of seven cells; None pads outside the month."""
    month: str = Field(description="Month shown, YYYY-MM")
    label: str = Field(description="Human readable month, e.g. 'February 2024'")
    previous_month: str
    next_month: str
    weekdays: list[str] = Field(default_factory=lambda: list(WEEKDAY_HEADERS))
    weeks: list[list[Optional[CalendarDay[EntryT]]]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_month_param(month: Optional[str]) -> tuple[int, int]:
    if not month:
        today = date.today()
        return today.year, today.month
    try:
        return parse_month(month)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


def _calendar_response(grid: CalendarGrid, to_entry) -> dict[str, Any]:
    return dict(
        month=format_month(grid.year, grid.month),
        label=grid.label,
        previous_month=format_month(*shift_month(grid.year, grid.month, -1)),
        next_month=format_month(*shift_month(grid.year, grid.month, 1)),
        weeks=[
            [
                None if cell is None else {
                    "date": cell.date,
                    "entries": [to_entry(entry) for entry in cell.entries],
                }
                for cell in week
            ]
            for week in grid.weeks
        ],
    )


def _session_entry(session: TrainingSession) -> SessionEntry:
    return SessionEntry(
        session_id=session.session_id,
        type=session.type,
        groups=session.groups,
        starttime=session.starttime,
        endtime=session.endtime,
        title=session.title,
        description=session.description,
        volume=session.volume,
        location=session.location,
        poolname=session.poolname,
        poollength=session.poollength,
    )


def _attendance_entry(day: AttendanceDay) -> AttendanceEntry:
    return AttendanceEntry(
        session_id=day.session_id,
        status=day.status.value,
        type=day.type,
        groups=day.groups,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/sessions",
    response_model=CalendarResponse[SessionEntry],
    status_code=status.HTTP_200_OK,
    summary="Training calendar",
    description="All training sessions of a month, grouped by day",
)
async def sessions_calendar(
    month: Optional[str] = Query(None, description="Month as YYYY-MM, defaults to the current month"),
    api_key: AuthenticatedUser = None,
    repository: SessionRepositoryDep = None,
) -> CalendarResponse[SessionEntry]:
    year, month_number = _parse_month_param(month)
    start, end = month_bounds(year, month_number)

    sessions = repository.list_between(start, end)
    grid = build_month_grid(year, month_number, group_by_date(sessions, lambda s: s.date))

    logger.info(
        "Built session calendar",
        extra={"month": format_month(year, month_number), "sessions": len(sessions)}
    )

    return CalendarResponse[SessionEntry](**_calendar_response(grid, _session_entry))


@router.get(
    "/attendance",
    response_model=CalendarResponse[AttendanceEntry],
    status_code=status.HTTP_200_OK,
    summary="Individual attendance calendar",
    description="One athlete's attendance status per day for a month and session type",
)
async def attendance_calendar(
    fincode: int = Query(description="Athlete federation code"),
    month: Optional[str] = Query(None, description="Month as YYYY-MM, defaults to the current month"),
    type: SessionType = Query(SessionType.SWIM, description="Session type"),
    api_key: AuthenticatedUser = None,
    repository: AttendanceRepositoryDep = None,
) -> CalendarResponse[AttendanceEntry]:
    year, month_number = _parse_month_param(month)

    records = repository.list_for_athlete_month(fincode, year, month_number, type.value)
    # One status per day; with two sessions on a day the later row wins
    grid = build_month_grid(year, month_number, index_by_date(records, lambda r: r.date))

    return CalendarResponse[AttendanceEntry](**_calendar_response(grid, _attendance_entry))
