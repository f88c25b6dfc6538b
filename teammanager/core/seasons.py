"""
Season lookup.

A season is a named, inclusive date range ("2024-25" runs from
2024-09-01 to 2025-08-31). Rosters, rankings and attendance windows
are all scoped by season, so resolving a date to its season is the
first step of most workflows.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")


class SeasonNotFoundError(Exception):
    """Raised when no season contains a given date."""
    pass


@dataclass(frozen=True)
class Season:
    """A named season with an inclusive date range."""
    description: str
    seasonstart: date
    seasonend: date
    seasonid: Optional[int] = None

    def __post_init__(self) -> None:
        if self.seasonend < self.seasonstart:
            raise ValueError("Season end must not be before season start")

    def contains(self, day: date) -> bool:
        return self.seasonstart <= day <= self.seasonend


def resolve_season(seasons: Iterable[Season], day: date) -> Season:
    """
    Find the season whose range contains `day`.

    Seasons are assumed not to overlap; the first containing season wins.
    Raises SeasonNotFoundError when the date falls outside every season.
    """
    for season in seasons:
        if season.contains(day):
            return season
    raise SeasonNotFoundError(f"No season contains {day.isoformat()}")


def find_season(seasons: Iterable[Season], description: str) -> Season:
    """Look up a season by its display key, e.g. "2024-25"."""
    for season in seasons:
        if season.description == description:
            return season
    raise SeasonNotFoundError(f"Unknown season {description!r}")


def season_months(season: Season) -> list[str]:
    """All months touched by the season as YYYY-MM strings, in order."""
    months = []
    year, month = season.seasonstart.year, season.seasonstart.month
    while (year, month) <= (season.seasonend.year, season.seasonend.month):
        months.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def filter_by_season(
    items: Iterable[T],
    season: Season,
    get_date: Callable[[T], Optional[date]],
) -> list[T]:
    """Keep the items whose date falls inside the season. Undated items are dropped."""
    kept = []
    for item in items:
        day = get_date(item)
        if day is not None and season.contains(day):
            kept.append(item)
    return kept


def select_season(
    seasons: Iterable[Season],
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> Season:
    """
    The season a request refers to: by description when one is given,
    otherwise the season containing `today`.
    """
    seasons = list(seasons)
    if description:
        return find_season(seasons, description)
    return resolve_season(seasons, today or date.today())
