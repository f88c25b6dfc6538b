"""
Race result logic: personal bests, permillili ranking, progress and
meet views.
"""

from .meets import group_by_athlete, pending_meets
from .models import (
    Course,
    Meet,
    MeetEvent,
    PersonalBestRecord,
    PoolBest,
    ProgressRow,
    ProgressSummary,
    RaceEvent,
    RaceSheetEntry,
    Result,
    SwimmerProgress,
    parse_swim_time,
)
from .personal_bests import (
    STRATEGIES,
    build_event_catalog,
    fastest_time,
    first_match,
    get_strategy,
    select_personal_bests,
)
from .progress import (
    average_improvement,
    group_by_swimmer,
    sort_progress_rows,
    summarize_progress,
    team_average,
)
from .ranking import best_by_athlete

__all__ = [
    "Course",
    "Meet",
    "MeetEvent",
    "PersonalBestRecord",
    "PoolBest",
    "ProgressRow",
    "ProgressSummary",
    "RaceEvent",
    "RaceSheetEntry",
    "Result",
    "STRATEGIES",
    "SwimmerProgress",
    "average_improvement",
    "best_by_athlete",
    "build_event_catalog",
    "fastest_time",
    "first_match",
    "get_strategy",
    "group_by_athlete",
    "group_by_swimmer",
    "parse_swim_time",
    "pending_meets",
    "select_personal_bests",
    "sort_progress_rows",
    "summarize_progress",
    "team_average",
]
