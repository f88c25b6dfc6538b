"""
Meet-level views: meets still waiting for results, and scored results
grouped per athlete.
"""

from typing import Any, Iterable, Mapping, Sequence

from .models import Meet, Result


def pending_meets(meets: Iterable[Meet], times: Mapping[int, Sequence[Any]]) -> list[Meet]:
    """
    Meets whose entries have all been loaded with a zero time.

    That is how a race sheet is stored before the meet is swum. Meets
    without any entry, or with at least one real time, are left out.
    Order follows `meets`.
    """
    pending = []
    for meet in meets:
        totals = times.get(meet.meetsid, ())
        if totals and all(_is_zero(total) for total in totals):
            pending.append(meet)
    return pending


def _is_zero(total: Any) -> bool:
    try:
        return float(total) == 0
    except (TypeError, ValueError):
        return False


def group_by_athlete(results: Iterable[Result]) -> list[tuple[str, list[Result]]]:
    """Results keyed by athlete name, in order of first appearance."""
    groups: dict[str, list[Result]] = {}
    for result in results:
        groups.setdefault(result.name or "unknown", []).append(result)
    return list(groups.items())
