"""
Best-score ranking.

The permillili view returns every scored result of a season. The
ranking keeps one row per athlete, the one with the highest score, and
orders athletes by that score.
"""

from typing import Iterable

from .models import Result


def best_by_athlete(results: Iterable[Result]) -> list[Result]:
    """
    Keep each athlete's highest-permillili result, best first.

    Athletes are keyed by fincode, or by name when the fincode is missing.
    Rows without a score are ignored. On equal scores the first row seen
    stays, and equal-scoring athletes keep their first-seen order.
    """
    best: dict[object, Result] = {}
    for result in results:
        if result.permillili is None:
            continue
        current = best.get(result.athlete_key)
        if current is None or result.permillili > current.permillili:
            best[result.athlete_key] = result

    return sorted(best.values(), key=lambda result: result.permillili, reverse=True)
