"""
Attendance endpoints.

The sheet workflow for one training session:
1. GET /sessions/{session_id}: the session's roster with current statuses
   (athletes of the session's season whose groups overlap the session's)
2. PUT /sessions/{session_id}: submit the edited statuses; only the
   differences against the stored rows are written, in one transaction

Plus the season overview (/summary) and one athlete's monthly trend
(/trend).
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.attendance import (
    AttendanceSheet,
    AttendanceStatus,
    eligible_for_groups,
    monthly_attendance,
    summarize_attendance,
)
from ...core.models import Athlete, SessionType, TrainingSession
from ...core.seasons import Season, resolve_season, select_season
from ...infrastructure.snowflake.repositories import (
    AthleteRepository,
    AttendanceRepository,
    AttendanceSaveError,
    SeasonRepository,
    SessionNotFoundError,
    TrainingSessionRepository,
)
from ...infrastructure.storage.client import resolve_portrait_url
from ..dependencies import (
    AthleteRepositoryDep,
    AttendanceRepositoryDep,
    AuthenticatedUser,
    SeasonRepositoryDep,
    SessionRepositoryDep,
    SettingsDep,
    StorageClientDep,
)
from .athletes import parse_group

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SheetEntry(BaseModel):
    """One roster line of an attendance sheet."""
    fincode: int
    name: str
    groups: list[str] = Field(default_factory=list)
    photo_url: str
    status: str = Field(description="N (not set), P (present), J (justified), A (absent)")


class SheetResponse(BaseModel):
    """The attendance sheet of one session."""
    session_id: int
    date: date
    type: str
    groups: list[str]
    season: str
    entries: list[SheetEntry]


class SaveSheetRequest(BaseModel):
    """Edited statuses keyed by fincode. Athletes left out keep their stored status."""
    statuses: dict[int, str] = Field(description="Status per fincode (N, P, J or A)")


class SavedRecord(BaseModel):
    fincode: int
    status: str


class SaveSheetResponse(BaseModel):
    """The writes a save performed."""
    session_id: int
    deleted: list[int] = Field(description="Fincodes whose stored row was removed (back to N)")
    upserted: list[SavedRecord] = Field(description="Rows inserted or overwritten")


class SummaryRow(BaseModel):
    fincode: Optional[int] = None
    name: str
    photo_url: str
    presenze: int = Field(description="Sessions marked present")
    giustificate: int = Field(description="Sessions marked justified")
    total_sessions: int = Field(description="Sessions held for the athlete's groups in the period")
    percent: float = Field(description="Present share of total_sessions, 0-100")


class SummaryResponse(BaseModel):
    season: str
    type: str
    group: Optional[str] = None
    rows: list[SummaryRow]


class MonthPoint(BaseModel):
    month: str = Field(description="YYYY-MM")
    attendance_percentage: float
    sessions: int


class TrendResponse(BaseModel):
    fincode: int
    season: str
    type: str
    months: list[MonthPoint]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_session(sessions: TrainingSessionRepository, session_id: int) -> TrainingSession:
    try:
        return sessions.get_session(session_id)
    except SessionNotFoundError as e:
        logger.warning("Session not found", extra={"session_id": session_id})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


def _load_sheet(
    session: TrainingSession,
    seasons: SeasonRepository,
    athletes: AthleteRepository,
    attendance: AttendanceRepository,
):
    """
    Seed the sheet for a session.

    Returns (season, roster, persisted, sheet). The roster is ordered by
    name and limited to athletes sharing a group with the session.
    """
    season = resolve_season(seasons.list_seasons(), session.date)
    roster = [
        athlete
        for athlete in athletes.list_roster(season.description)
        if athlete.fincode is not None and eligible_for_groups(athlete.groups, session.groups)
    ]
    roster.sort(key=lambda athlete: athlete.name)
    persisted = attendance.list_for_session(session.session_id)
    sheet = AttendanceSheet.seed(session.session_id, roster, persisted)
    return season, roster, persisted, sheet


def _parse_status(raw: str) -> AttendanceStatus:
    try:
        return AttendanceStatus.parse(raw)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


def _roster_filter(roster: list[Athlete], group: Optional[str]) -> list[Athlete]:
    if not group:
        return roster
    return [athlete for athlete in roster if group in athlete.group_codes]


def _season_for_request(seasons: SeasonRepository, description: Optional[str]) -> Season:
    # SeasonNotFoundError is mapped to 422 by the app-level handler
    return select_season(seasons.list_seasons(), description)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/sessions/{session_id}",
    response_model=SheetResponse,
    status_code=status.HTTP_200_OK,
    summary="Attendance sheet",
    description="Roster of a training session with each athlete's current status",
)
async def get_sheet(
    session_id: int,
    api_key: AuthenticatedUser = None,
    sessions: SessionRepositoryDep = None,
    seasons: SeasonRepositoryDep = None,
    athletes: AthleteRepositoryDep = None,
    attendance: AttendanceRepositoryDep = None,
    storage: StorageClientDep = None,
    settings: SettingsDep = None,
) -> SheetResponse:
    session = _load_session(sessions, session_id)
    season, roster, _, sheet = _load_sheet(session, seasons, athletes, attendance)

    entries = [
        SheetEntry(
            fincode=athlete.fincode,
            name=athlete.name,
            groups=athlete.group_codes,
            photo_url=await resolve_portrait_url(storage, athlete, settings.portrait_placeholder_url),
            status=sheet.statuses[athlete.fincode].value,
        )
        for athlete in roster
    ]

    return SheetResponse(
        session_id=session.session_id,
        date=session.date,
        type=session.type,
        groups=session.group_codes,
        season=season.description,
        entries=entries,
    )


@router.put(
    "/sessions/{session_id}",
    response_model=SaveSheetResponse,
    status_code=status.HTTP_200_OK,
    summary="Save attendance sheet",
    description="Write the edited statuses of a session; returns the deletes and upserts performed",
)
async def save_sheet(
    session_id: int,
    request: SaveSheetRequest,
    api_key: AuthenticatedUser = None,
    sessions: SessionRepositoryDep = None,
    seasons: SeasonRepositoryDep = None,
    athletes: AthleteRepositoryDep = None,
    attendance: AttendanceRepositoryDep = None,
) -> SaveSheetResponse:
    """
    Save a sheet.

    The submitted statuses are applied on top of the stored ones and the
    difference is written. Submitting an unchanged sheet writes nothing.
    Fincodes that are not on the session's roster are rejected with 422.
    """
    session = _load_session(sessions, session_id)
    _, _, persisted, sheet = _load_sheet(session, seasons, athletes, attendance)

    for fincode, raw_status in request.statuses.items():
        try:
            sheet.set(fincode, _parse_status(raw_status))
        except KeyError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Athlete {fincode} is not on the roster of session {session_id}",
            )

    delta = sheet.delta(persisted)

    try:
        attendance.apply_delta(delta)
    except AttendanceSaveError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return SaveSheetResponse(
        session_id=session_id,
        deleted=delta.to_delete,
        upserted=[
            SavedRecord(fincode=record.fincode, status=record.status.value)
            for record in delta.to_upsert
        ],
    )


@router.get(
    "/summary",
    response_model=SummaryResponse,
    status_code=status.HTTP_200_OK,
    summary="Season attendance summary",
    description="Present and justified counts per athlete for a season and session type",
)
async def attendance_summary(
    season: Optional[str] = Query(None, description="Season description, e.g. 2024-25; defaults to the current season"),
    type: SessionType = Query(SessionType.SWIM, description="Session type"),
    group: Optional[str] = Query(None, description="Training group code"),
    api_key: AuthenticatedUser = None,
    seasons: SeasonRepositoryDep = None,
    athletes: AthleteRepositoryDep = None,
    attendance: AttendanceRepositoryDep = None,
    sessions: SessionRepositoryDep = None,
    storage: StorageClientDep = None,
    settings: SettingsDep = None,
) -> SummaryResponse:
    group_code = parse_group(group)
    selected = _season_for_request(seasons, season)

    roster = _roster_filter(athletes.list_roster(selected.description), group_code)
    records = attendance.list_between(selected.seasonstart, selected.seasonend, type.value)
    held = [
        session
        for session in sessions.list_between(selected.seasonstart, selected.seasonend)
        if session.type == type.value
    ]
    summary = summarize_attendance(roster, records, held)

    photos = {
        athlete.key: await resolve_portrait_url(storage, athlete, settings.portrait_placeholder_url)
        for athlete in roster
    }

    logger.info(
        "Built attendance summary",
        extra={"season": selected.description, "type": type.value, "athletes": len(summary)}
    )

    return SummaryResponse(
        season=selected.description,
        type=type.value,
        group=group_code,
        rows=[
            SummaryRow(
                fincode=row.fincode,
                name=row.name,
                photo_url=photos[row.fincode if row.fincode else row.name],
                presenze=row.presenze,
                giustificate=row.giustificate,
                total_sessions=row.total_sessions,
                percent=row.percent,
            )
            for row in summary
        ],
    )


@router.get(
    "/trend",
    response_model=TrendResponse,
    status_code=status.HTTP_200_OK,
    summary="Monthly attendance trend",
    description="One athlete's attendance percentage per month of a season",
)
async def attendance_trend(
    fincode: int = Query(description="Athlete federation code"),
    season: Optional[str] = Query(None, description="Season description; defaults to the current season"),
    type: SessionType = Query(SessionType.SWIM, description="Session type"),
    api_key: AuthenticatedUser = None,
    seasons: SeasonRepositoryDep = None,
    attendance: AttendanceRepositoryDep = None,
) -> TrendResponse:
    selected = _season_for_request(seasons, season)
    records = attendance.list_between(
        selected.seasonstart,
        selected.seasonend,
        session_type=type.value,
        fincode=fincode,
    )

    return TrendResponse(
        fincode=fincode,
        season=selected.description,
        type=type.value,
        months=[
            MonthPoint(
                month=point.month,
                attendance_percentage=point.attendance_percentage,
                sessions=point.sessions,
            )
            for point in monthly_attendance(records, selected)
        ],
    )
