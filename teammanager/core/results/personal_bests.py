"""
Personal best selection.

For every event in the race catalog we look for the athlete's 25m and
50m result. The historical behavior takes the first qualifying row in
the order the store returns them, which is not necessarily the fastest.
That policy is kept as the default `first_match` strategy; `fastest_time`
is available for callers that explicitly want a real best-time reduction.
"""

import logging
from typing import Callable, Iterable, Optional, Sequence

from .models import Course, PersonalBestRecord, PoolBest, RaceEvent, Result

logger = logging.getLogger(__name__)

SelectionStrategy = Callable[[Sequence[Result]], Optional[Result]]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def first_match(candidates: Sequence[Result]) -> Optional[Result]:
    """The first candidate in fetch order."""
    return candidates[0] if candidates else None


def fastest_time(candidates: Sequence[Result]) -> Optional[Result]:
    """
    The candidate with the lowest parsed time.

    Rows whose time cannot be parsed are skipped. Ties keep the earlier row.
    """
    best = None
    best_seconds = None
    for candidate in candidates:
        seconds = candidate.seconds
        if seconds is None:
            continue
        if best_seconds is None or seconds < best_seconds:
            best, best_seconds = candidate, seconds
    return best


STRATEGIES: dict[str, SelectionStrategy] = {
    "first_match": first_match,
    "fastest_time": fastest_time,
}


def get_strategy(name: str) -> SelectionStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown personal best strategy {name!r}. "
            f"Choose one of: {', '.join(sorted(STRATEGIES))}"
        )


# ---------------------------------------------------------------------------
# Catalog and selection
# ---------------------------------------------------------------------------

def build_event_catalog(races: Iterable[RaceEvent]) -> list[RaceEvent]:
    """Unique (distance, stroke, raceid) events ordered by raceid."""
    unique = {}
    for race in races:
        unique.setdefault((race.distance, race.stroke_shortname, race.raceid), race)
    return sorted(unique.values(), key=lambda race: race.raceid)


def _candidates(results: Sequence[Result], event: RaceEvent, course: Course) -> list[Result]:
    return [
        result for result in results
        if result.distance == event.distance
        and result.stroke_shortname == event.stroke_shortname
        and result.pool is course
    ]


def select_personal_bests(
    catalog: Sequence[RaceEvent],
    results: Sequence[Result],
    strategy: SelectionStrategy = first_match,
) -> list[PersonalBestRecord]:
    """
    One record per catalog event with the chosen 25m and 50m results.

    Events the athlete never swam still appear, with empty pool entries.
    """
    records = []
    for event in catalog:
        pool25 = strategy(_candidates(results, event, Course.POOL_25M))
        pool50 = strategy(_candidates(results, event, Course.POOL_50M))

        if pool25 or pool50:
            logger.debug(
                "Personal best found",
                extra={
                    "event": event.label,
                    "pool25m": pool25 is not None,
                    "pool50m": pool50 is not None,
                }
            )

        records.append(PersonalBestRecord(
            distance=event.distance,
            stroke_shortname=event.stroke_shortname,
            raceid=event.raceid,
            pool25m=PoolBest.from_result(pool25),
            pool50m=PoolBest.from_result(pool50),
        ))
    return records
