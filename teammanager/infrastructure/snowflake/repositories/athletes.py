"""
Snowflake repositories for athletes and seasons.

The roster view joins athletes to the seasons they were registered for,
so a roster lookup is always scoped by season description.
"""

import logging
from typing import Optional

from teammanager.core.models import Athlete
from teammanager.core.seasons import Season
from .base import BaseRepository, as_date

logger = logging.getLogger(__name__)


def _athlete_from_row(row: dict) -> Athlete:
    return Athlete(
        fincode=row.get("fincode"),
        name=row.get("name") or "",
        groups=row.get("groups"),
        photo=row.get("photo"),
    )


class AthleteRepository(BaseRepository):
    """Read access to athletes and season rosters."""

    def list_athletes(self, group: Optional[str] = None) -> list[Athlete]:
        """All athletes, optionally limited to one training group, by name."""
        if group:
            rows = self._fetch_all("""
                SELECT fincode, name, groups, photo
                FROM athletes
                WHERE groups = %s
                ORDER BY name
            """, (group,))
        else:
            rows = self._fetch_all("""
                SELECT fincode, name, groups, photo
                FROM athletes
                ORDER BY name
            """)
        return [_athlete_from_row(row) for row in rows]

    def list_roster(self, season: str, group: Optional[str] = None) -> list[Athlete]:
        """
        Athletes registered for a season, optionally for one group, by name.

        Group eligibility for multi-group sessions is decided by the core
        (`eligible_for_groups`), so callers usually pass no group here.
        """
        if group:
            rows = self._fetch_all("""
                SELECT fincode, name, groups, photo
                FROM roster
                WHERE season = %s AND groups = %s
                ORDER BY name
            """, (season, group))
        else:
            rows = self._fetch_all("""
                SELECT fincode, name, groups, photo
                FROM roster
                WHERE season = %s
                ORDER BY name
            """, (season,))

        logger.debug(
            "Loaded roster",
            extra={"season": season, "group": group, "count": len(rows)}
        )
        return [_athlete_from_row(row) for row in rows]


class SeasonRepository(BaseRepository):
    """Read access to the season table."""

    def list_seasons(self) -> list[Season]:
        """All seasons, most recent first."""
        rows = self._fetch_all("""
            SELECT seasonid, description, seasonstart, seasonend
            FROM seasons
            ORDER BY seasonstart DESC
        """)
        return [
            Season(
                seasonid=row.get("seasonid"),
                description=row["description"],
                seasonstart=as_date(row["seasonstart"]),
                seasonend=as_date(row["seasonend"]),
            )
            for row in rows
        ]
