"""
Race result endpoints.

- /rankings: best permillili score per athlete for a season and group
- /personal-bests: one athlete's best 25m and 50m times per catalog event
- /progress: before/after improvements per swimmer with team average
- /meets: the meet calendar of a season, each meet's events and the
  times swum in one event
- /permillili: every scored result of a season, grouped per athlete
- /racesheet: meets not yet swum and their planned swims
"""

import datetime as dt
import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.results import (
    Course,
    PoolBest,
    best_by_athlete,
    build_event_catalog,
    get_strategy,
    group_by_athlete,
    pending_meets,
    select_personal_bests,
    summarize_progress,
)
from ...core.seasons import filter_by_season, select_season
from ..dependencies import (
    AuthenticatedUser,
    ResultRepositoryDep,
    SeasonRepositoryDep,
    SettingsDep,
)
from .athletes import parse_group

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class RankingEntry(BaseModel):
    """An athlete's best scored result of the season."""
    position: int
    fincode: Optional[int] = None
    name: Optional[str] = None
    permillili: float
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    course: Optional[str] = Field(None, description="25m or 50m when known")
    time: Optional[str] = None
    meet: Optional[str] = None
    eventdate: Optional[date] = None
    details: dict[str, Any] = Field(default_factory=dict, description="Extra view columns (limits, category)")


class RankingResponse(BaseModel):
    season: str
    group: str
    entries: list[RankingEntry]


class PoolBestResponse(BaseModel):
    time: Optional[str] = None
    date: Optional[dt.date] = None
    meet: Optional[str] = None


class PersonalBestEntry(BaseModel):
    distance: int
    stroke_shortname: str
    raceid: int
    pool25m: PoolBestResponse
    pool50m: PoolBestResponse


class PersonalBestResponse(BaseModel):
    athlete: str
    strategy: str
    events: list[PersonalBestEntry]


class ProgressEntry(BaseModel):
    distance: int
    stroke_shortname: str
    eventdate_prima: Optional[date] = None
    tempo_prima: Optional[str] = None
    eventdate_dopo: Optional[date] = None
    tempo_dopo: Optional[str] = None
    delta_sec: Optional[float] = Field(None, description="Negative when the swimmer got faster")
    miglioramento_perc: Optional[float] = Field(None, description="Improvement percentage")


class SwimmerProgressResponse(BaseModel):
    name: str
    average: float
    rows: list[ProgressEntry]


class ProgressResponse(BaseModel):
    course: str
    group: str
    season: Optional[str] = None
    team_average: float
    valid_count: int
    swimmers: list[SwimmerProgressResponse]


class MeetResponse(BaseModel):
    meetsid: int
    meetname: str
    place: Optional[str] = None
    mindate: Optional[date] = None
    maxdate: Optional[date] = None
    course: Optional[str] = None


class MeetEventResponse(BaseModel):
    ms_id: int
    event_numb: int
    label: str = Field(description="Event number, race, gender and category")
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    gender: Optional[str] = None
    category: Optional[str] = None


class EventResultEntry(BaseModel):
    position: int
    fincode: Optional[int] = None
    name: Optional[str] = None
    time: Optional[str] = None


class EventResultsResponse(BaseModel):
    meetsid: int
    event_numb: int
    entries: list[EventResultEntry]


class ScoredResultEntry(BaseModel):
    meet: Optional[str] = None
    eventdate: Optional[date] = None
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    course: Optional[str] = None
    time: Optional[str] = None
    permillili: Optional[float] = None
    details: dict[str, Any] = Field(default_factory=dict, description="Extra view columns (limits, category)")


class AthleteResultsResponse(BaseModel):
    name: str
    gender: Optional[str] = None
    results: list[ScoredResultEntry]


class PermilliliResponse(BaseModel):
    season: str
    total: int
    athletes: list[AthleteResultsResponse]


class RaceSheetEntryResponse(BaseModel):
    eventnumb: int
    name: str
    fincode: Optional[int] = None
    distance: Optional[int] = None
    stroke_shortname: Optional[str] = None
    personal_best: Optional[str] = None
    limit: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unprocessable(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=message,
    )


# Course codes the progress source is keyed by.
_PROGRESS_COURSE_CODES = {Course.POOL_50M: 1, Course.POOL_25M: 2}


def parse_course(raw: str) -> Optional[Course]:
    """Course from a query string; digits are read as the numeric codes."""
    raw = raw.strip()
    return Course.parse(int(raw) if raw.isdigit() else raw)


def _course_label(raw: Any) -> Optional[str]:
    course = Course.parse(raw)
    return course.value if course else None


def _pool_best(best: PoolBest) -> PoolBestResponse:
    return PoolBestResponse(time=best.time, date=best.date, meet=best.meet)


def _meet_response(meet) -> MeetResponse:
    return MeetResponse(
        meetsid=meet.meetsid,
        meetname=meet.meetname,
        place=meet.place,
        mindate=meet.mindate,
        maxdate=meet.maxdate,
        course=_course_label(meet.course),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/rankings",
    response_model=RankingResponse,
    status_code=status.HTTP_200_OK,
    summary="Best permillili ranking",
    description="Each athlete's highest-scoring result of the season, best first",
)
async def rankings(
    group: str = Query(description="Training group code"),
    season: Optional[str] = Query(None, description="Season description; defaults to the current season"),
    api_key: AuthenticatedUser = None,
    seasons: SeasonRepositoryDep = None,
    repository: ResultRepositoryDep = None,
) -> RankingResponse:
    group_code = parse_group(group)
    selected = select_season(seasons.list_seasons(), season)

    ranked = best_by_athlete(repository.list_permillili_results(selected.description, group_code))

    logger.info(
        "Built permillili ranking",
        extra={"season": selected.description, "group": group_code, "athletes": len(ranked)}
    )

    return RankingResponse(
        season=selected.description,
        group=group_code,
        entries=[
            RankingEntry(
                position=position,
                fincode=result.fincode,
                name=result.name,
                permillili=result.permillili,
                distance=result.distance,
                stroke_shortname=result.stroke_shortname,
                course=_course_label(result.course),
                time=result.time,
                meet=result.meet,
                eventdate=result.eventdate,
                details=result.details,
            )
            for position, result in enumerate(ranked, start=1)
        ],
    )


@router.get(
    "/personal-bests",
    response_model=PersonalBestResponse,
    status_code=status.HTTP_200_OK,
    summary="Personal bests",
    description="An athlete's 25m and 50m personal best for every individual event",
)
async def personal_bests(
    athlete: str = Query(min_length=1, description="Athlete name (substring match)"),
    strategy: Optional[str] = Query(None, description="first_match or fastest_time"),
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
    settings: SettingsDep = None,
) -> PersonalBestResponse:
    """
    Personal bests for an athlete.

    The athlete is matched by name substring, so a short query can pull
    in rows of other athletes whose names contain it.
    """
    strategy_name = strategy or settings.personal_best_strategy
    try:
        select = get_strategy(strategy_name)
    except ValueError as e:
        raise _unprocessable(str(e))

    catalog = build_event_catalog(repository.list_races())
    results = repository.list_personal_bests(athlete)
    records = select_personal_bests(catalog, results, select)

    logger.info(
        "Selected personal bests",
        extra={"athlete": athlete, "strategy": strategy_name, "rows": len(results)}
    )

    return PersonalBestResponse(
        athlete=athlete,
        strategy=strategy_name,
        events=[
            PersonalBestEntry(
                distance=record.distance,
                stroke_shortname=record.stroke_shortname,
                raceid=record.raceid,
                pool25m=_pool_best(record.pool25m),
                pool50m=_pool_best(record.pool50m),
            )
            for record in records
        ],
    )


@router.get(
    "/progress",
    response_model=ProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Time improvements",
    description="Before/after times per swimmer and event with per-swimmer and team averages",
)
async def progress(
    course: str = Query("1", description="Course: 1 or 50m for long course, 0, 2 or 25m for short course"),
    group: str = Query(description="Training group code"),
    season: Optional[str] = Query(None, description="Season description; all seasons when omitted"),
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
) -> ProgressResponse:
    pool = parse_course(course)
    if pool is None:
        raise _unprocessable(f"Unknown course: {course}")
    group_code = parse_group(group)

    summary = summarize_progress(
        repository.list_progress(_PROGRESS_COURSE_CODES[pool], group_code, season)
    )

    return ProgressResponse(
        course=pool.value,
        group=group_code,
        season=season,
        team_average=summary.team_average,
        valid_count=summary.valid_count,
        swimmers=[
            SwimmerProgressResponse(
                name=swimmer.name,
                average=swimmer.average,
                rows=[
                    ProgressEntry(
                        distance=row.distance,
                        stroke_shortname=row.stroke_shortname,
                        eventdate_prima=row.eventdate_prima,
                        tempo_prima=row.tempo_prima,
                        eventdate_dopo=row.eventdate_dopo,
                        tempo_dopo=row.tempo_dopo,
                        delta_sec=row.delta_sec,
                        miglioramento_perc=row.miglioramento_perc,
                    )
                    for row in swimmer.rows
                ],
            )
            for swimmer in summary.swimmers
        ],
    )


@router.get(
    "/meets",
    response_model=list[MeetResponse],
    status_code=status.HTTP_200_OK,
    summary="Meets of a season",
    description="Meets whose first day falls inside the season, most recent first",
)
async def meets(
    season: Optional[str] = Query(None, description="Season description; defaults to the current season"),
    api_key: AuthenticatedUser = None,
    seasons: SeasonRepositoryDep = None,
    repository: ResultRepositoryDep = None,
) -> list[MeetResponse]:
    selected = select_season(seasons.list_seasons(), season)
    in_season = filter_by_season(repository.list_meets(), selected, lambda meet: meet.mindate)

    return [_meet_response(meet) for meet in in_season]


@router.get(
    "/meets/{meetsid}/events",
    response_model=list[MeetEventResponse],
    status_code=status.HTTP_200_OK,
    summary="Events of a meet",
    description="The meet's programme in event order",
)
async def meet_events(
    meetsid: int,
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
) -> list[MeetEventResponse]:
    return [
        MeetEventResponse(
            ms_id=event.ms_id,
            event_numb=event.event_numb,
            label=event.label,
            distance=event.distance,
            stroke_shortname=event.stroke_shortname,
            gender=event.gender,
            category=event.category,
        )
        for event in repository.list_events(meetsid)
    ]


@router.get(
    "/meets/{meetsid}/results",
    response_model=EventResultsResponse,
    status_code=status.HTTP_200_OK,
    summary="Results of one event",
    description="Times swum in one event of a meet, fastest first",
)
async def event_results(
    meetsid: int,
    event: int = Query(description="Event number within the meet"),
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
) -> EventResultsResponse:
    results = repository.list_event_results(meetsid, event)

    return EventResultsResponse(
        meetsid=meetsid,
        event_numb=event,
        entries=[
            EventResultEntry(
                position=position,
                fincode=result.fincode,
                name=result.name,
                time=result.time,
            )
            for position, result in enumerate(results, start=1)
        ],
    )


@router.get(
    "/permillili",
    response_model=PermilliliResponse,
    status_code=status.HTTP_200_OK,
    summary="Scored results of a season",
    description="Every permillili-scored result of the season, grouped per athlete",
)
async def permillili(
    season: Optional[str] = Query(None, description="Season description; defaults to the current season"),
    api_key: AuthenticatedUser = None,
    seasons: SeasonRepositoryDep = None,
    repository: ResultRepositoryDep = None,
) -> PermilliliResponse:
    selected = select_season(seasons.list_seasons(), season)
    results = repository.list_permillili_results(selected.description)
    grouped = group_by_athlete(results)

    logger.info(
        "Loaded season permillili results",
        extra={"season": selected.description, "results": len(results), "athletes": len(grouped)}
    )

    return PermilliliResponse(
        season=selected.description,
        total=len(results),
        athletes=[
            AthleteResultsResponse(
                name=name,
                gender=rows[0].details.get("gender"),
                results=[
                    ScoredResultEntry(
                        meet=result.meet,
                        eventdate=result.eventdate,
                        distance=result.distance,
                        stroke_shortname=result.stroke_shortname,
                        course=_course_label(result.course),
                        time=result.time,
                        permillili=result.permillili,
                        details=result.details,
                    )
                    for result in rows
                ],
            )
            for name, rows in grouped
        ],
    )


@router.get(
    "/racesheet",
    response_model=list[MeetResponse],
    status_code=status.HTTP_200_OK,
    summary="Meets awaiting results",
    description="Meets whose entries all still carry a zero time, most recent first",
)
async def racesheet_meets(
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
) -> list[MeetResponse]:
    meets = repository.list_meets()
    times = repository.list_result_times([meet.meetsid for meet in meets])
    return [_meet_response(meet) for meet in pending_meets(meets, times)]


@router.get(
    "/racesheet/{meetsid}",
    response_model=list[RaceSheetEntryResponse],
    status_code=status.HTTP_200_OK,
    summary="Race sheet of a meet",
    description="Planned swims by event with each athlete's personal best and the qualifying limit",
)
async def racesheet(
    meetsid: int,
    api_key: AuthenticatedUser = None,
    repository: ResultRepositoryDep = None,
) -> list[RaceSheetEntryResponse]:
    return [
        RaceSheetEntryResponse(
            eventnumb=entry.eventnumb,
            name=entry.name,
            fincode=entry.fincode,
            distance=entry.distance,
            stroke_shortname=entry.stroke_shortname,
            personal_best=entry.personal_best,
            limit=entry.limit,
        )
        for entry in repository.list_racesheet(meetsid)
    ]
