"""
Month calendar grids.

Both calendars (team sessions and an athlete's attendance) render the
same shape: Monday-first weeks of exactly seven cells. Cells outside the
month are None. Cells inside the month are always present, even when
nothing happened that day, so callers can tell "no session" apart from
"not part of this month".
"""

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Generic, Iterable, Mapping, Optional, Sequence, TypeVar, Union

T = TypeVar("T")

DateLike = Union[date, datetime, str]

WEEKDAY_HEADERS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class CalendarCell(Generic[T]):
    """One day of the month and whatever was scheduled on it."""
    date: date
    entries: tuple = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return self.date.isoformat()

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class CalendarGrid(Generic[T]):
    """A month laid out as Monday-first weeks of seven cells."""
    year: int
    month: int
    weeks: tuple

    @property
    def cells(self) -> list[Optional[CalendarCell[T]]]:
        return [cell for week in self.weeks for cell in week]

    @property
    def days(self) -> list[CalendarCell[T]]:
        return [cell for cell in self.cells if cell is not None]

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")


def days_in_month(year: int, month: int) -> int:
    """Number of days in a month (1-based month)."""
    _check_month(month)
    return calendar.monthrange(year, month)[1]


def monday_offset(year: int, month: int) -> int:
    """Weekday of the first of the month with Monday = 0 and Sunday = 6."""
    _check_month(month)
    return date(year, month, 1).weekday()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of the month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move `offset` months forward (or back), wrapping across years."""
    _check_month(month)
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def parse_month(value: str) -> tuple[int, int]:
    """Parse a YYYY-MM string into (year, month)."""
    try:
        year_str, month_str = value.strip().split("-")
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Expected a month as YYYY-MM, got {value!r}")
    _check_month(month)
    return year, month


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def date_key(value: DateLike) -> str:
    """
    Normalize a date to its YYYY-MM-DD key.

    Session dates sometimes arrive as full ISO timestamps; only the part
    before the "T" counts.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).split("T")[0]


def group_by_date(
    items: Iterable[T],
    get_date: Callable[[T], DateLike],
) -> dict[str, list[T]]:
    """Bucket items by day, keeping arrival order within each day."""
    grouped: dict[str, list[T]] = defaultdict(list)
    for item in items:
        grouped[date_key(get_date(item))].append(item)
    return dict(grouped)


def index_by_date(
    items: Iterable[T],
    get_date: Callable[[T], DateLike],
) -> dict[str, list[T]]:
    """One entry per day; a later row for the same day replaces the earlier one."""
    indexed: dict[str, list[T]] = {}
    for item in items:
        indexed[date_key(get_date(item))] = [item]
    return indexed


def build_month_grid(
    year: int,
    month: int,
    overlay: Optional[Mapping[str, Sequence[T]]] = None,
) -> CalendarGrid[T]:
    """
    Lay out a month as Monday-first weeks and attach overlay entries.

    `overlay` maps YYYY-MM-DD keys to the entries for that day. Keys that
    do not belong to the month are ignored.
    """
    overlay = overlay or {}
    total_days = days_in_month(year, month)

    cells: list[Optional[CalendarCell[T]]] = [None] * monday_offset(year, month)
    for day in range(1, total_days + 1):
        current = date(year, month, day)
        cells.append(CalendarCell(date=current, entries=tuple(overlay.get(current.isoformat(), ()))))
    while len(cells) % 7:
        cells.append(None)

    weeks = tuple(tuple(cells[i:i + 7]) for i in range(0, len(cells), 7))
    return CalendarGrid(year=year, month=month, weeks=weeks)
