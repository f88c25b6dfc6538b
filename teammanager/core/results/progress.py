"""
Time improvement aggregation.

Rows pair an earlier and a later result for the same swimmer and event.
Two averages are reported and they are not interchangeable:

- per swimmer: mean improvement over that swimmer's rows
- team: mean improvement over every row in the filtered set
"""

from typing import Iterable, Sequence

from .models import ProgressRow, ProgressSummary, SwimmerProgress


def sort_progress_rows(rows: Iterable[ProgressRow]) -> list[ProgressRow]:
    """Name ascending, then improvement descending within a swimmer."""
    return sorted(rows, key=lambda row: (row.name, -(row.miglioramento_perc or 0)))


def group_by_swimmer(rows: Iterable[ProgressRow]) -> dict[str, list[ProgressRow]]:
    """Partition rows by swimmer name, keeping arrival order."""
    grouped: dict[str, list[ProgressRow]] = {}
    for row in rows:
        grouped.setdefault(row.name, []).append(row)
    return grouped


def average_improvement(rows: Iterable[ProgressRow]) -> float:
    """
    Mean of the non-null improvement percentages.

    No usable rows gives 0, which the pages show as a neutral average.
    """
    values = [row.miglioramento_perc for row in rows if row.miglioramento_perc is not None]
    if not values:
        return 0.0
    return sum(values) / len(values)


def team_average(rows: Sequence[ProgressRow]) -> float:
    """Mean improvement across the whole filtered set."""
    return average_improvement(rows)


def summarize_progress(rows: Iterable[ProgressRow]) -> ProgressSummary:
    """Sort, group per swimmer and compute both averages."""
    ordered = sort_progress_rows(rows)
    swimmers = tuple(
        SwimmerProgress(name=name, rows=tuple(group), average=average_improvement(group))
        for name, group in group_by_swimmer(ordered).items()
    )
    return ProgressSummary(
        swimmers=swimmers,
        team_average=team_average(ordered),
        valid_count=sum(1 for row in ordered if row.miglioramento_perc is not None),
    )
