"""
Calendar grid building for the session and attendance calendars.
"""

from .grid import (
    WEEKDAY_HEADERS,
    CalendarCell,
    CalendarGrid,
    build_month_grid,
    date_key,
    days_in_month,
    format_month,
    group_by_date,
    index_by_date,
    monday_offset,
    month_bounds,
    parse_month,
    shift_month,
)

__all__ = [
    "WEEKDAY_HEADERS",
    "CalendarCell",
    "CalendarGrid",
    "build_month_grid",
    "date_key",
    "days_in_month",
    "format_month",
    "group_by_date",
    "index_by_date",
    "monday_offset",
    "month_bounds",
    "parse_month",
    "shift_month",
]
