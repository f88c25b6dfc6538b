"""
Snowflake repository for race results.

Each method maps one of the result sources to domain models:
- permillili_results: scored results per season and group
- progress_results: before/after pairs per swimmer and event
- races: the event catalog
- personal_bests: the personal best store, joined on athlete name
- meets: meet calendar
- events, results_detail: a meet's programme and the times per event
- results: raw times per meet, used to spot meets not yet swum
- racesheet_results: planned swims of a meet with bests and limits
"""

import logging
from typing import Optional

from teammanager.core.results import Meet, MeetEvent, ProgressRow, RaceEvent, RaceSheetEntry, Result
from .base import BaseRepository, as_date, as_float

logger = logging.getLogger(__name__)


# Columns of the permillili view shown alongside the score.
_PERMILLILI_DETAIL_COLUMNS = ("groups", "gender", "cat", "limit_descr_short", "limit_string")


class ResultRepository(BaseRepository):
    """Read access to result sources."""

    def list_permillili_results(self, season: str, group: Optional[str] = None) -> list[Result]:
        """Every scored result of a season, for one group or all, in view order."""
        conditions = ["season = %s"]
        params: list = [season]
        if group:
            conditions.append("groups = %s")
            params.append(group)

        rows = self._fetch_all(f"""
            SELECT fincode, name, groups, gender, cat, meetname, mindate,
                   distance, stroke_shortname, course, result_string,
                   limit_descr_short, limit_string, permillili
            FROM permillili_results
            WHERE {" AND ".join(conditions)}
        """, params)

        logger.debug(
            "Loaded permillili results",
            extra={"season": season, "group": group, "count": len(rows)}
        )

        return [
            Result(
                fincode=row.get("fincode"),
                name=row.get("name"),
                distance=row.get("distance"),
                stroke_shortname=row.get("stroke_shortname"),
                course=row.get("course"),
                time=row.get("result_string"),
                eventdate=as_date(row.get("mindate")),
                meet=row.get("meetname"),
                permillili=as_float(row.get("permillili")),
                details={column: row.get(column) for column in _PERMILLILI_DETAIL_COLUMNS},
            )
            for row in rows
        ]

    def list_progress(self, course: int, group: str, season: Optional[str] = None) -> list[ProgressRow]:
        """Improvement pairs for a course code and group, optionally one season."""
        conditions = ["course = %s", "selgroup = %s"]
        params: list = [course, group]
        if season:
            conditions.append("season = %s")
            params.append(season)

        rows = self._fetch_all(f"""
            SELECT name, distance, stroke_shortname, course,
                   eventdate_prima, tempo_prima, eventdate_dopo, tempo_dopo,
                   delta_sec, miglioramento_perc
            FROM progress_results
            WHERE {" AND ".join(conditions)}
        """, params)

        return [
            ProgressRow(
                name=row["name"],
                distance=row["distance"],
                stroke_shortname=row["stroke_shortname"],
                course=row.get("course"),
                eventdate_prima=as_date(row.get("eventdate_prima")),
                tempo_prima=_as_text(row.get("tempo_prima")),
                eventdate_dopo=as_date(row.get("eventdate_dopo")),
                tempo_dopo=_as_text(row.get("tempo_dopo")),
                delta_sec=as_float(row.get("delta_sec")),
                miglioramento_perc=as_float(row.get("miglioramento_perc")),
            )
            for row in rows
        ]

    def list_races(self, relaycount: int = 1) -> list[RaceEvent]:
        """The race catalog, individual events only by default."""
        rows = self._fetch_all("""
            SELECT raceid, distance, stroke_shortname
            FROM races
            WHERE relaycount = %s
            ORDER BY distance, stroke_shortname
        """, (relaycount,))
        return [
            RaceEvent(
                distance=row["distance"],
                stroke_shortname=row["stroke_shortname"],
                raceid=row["raceid"],
            )
            for row in rows
        ]

    def list_personal_bests(self, athlete_name: str) -> list[Result]:
        """
        Personal best rows whose athlete name contains `athlete_name`.

        This is a case-insensitive substring match, not a key join: "Rossi"
        also returns rows for "Rossini". `%` and `_` in the name match
        themselves. Row order is whatever the store returns.

        The meet column is named differently across loads of the store,
        so the first populated one wins.
        """
        rows = self._fetch_all("""
            SELECT *
            FROM personal_bests
            WHERE athlete_name ILIKE %s ESCAPE '!'
        """, (f"%{_escape_like(athlete_name.strip())}%",))

        return [
            Result(
                name=row.get("athlete_name"),
                distance=row.get("distance"),
                stroke_shortname=row.get("stroke_shortname"),
                course=row.get("course"),
                time=_as_text(row.get("tempofin")),
                eventdate=as_date(row.get("eventdate")),
                meet=row.get("meet_name") or row.get("meet") or row.get("meetname"),
            )
            for row in rows
        ]

    def list_meets(self) -> list[Meet]:
        """All meets, most recent first."""
        rows = self._fetch_all("""
            SELECT meetsid, meetname, place, mindate, maxdate, course
            FROM meets
            ORDER BY mindate DESC
        """)
        return [
            Meet(
                meetsid=row["meetsid"],
                meetname=row.get("meetname") or "",
                mindate=as_date(row.get("mindate")),
                maxdate=as_date(row.get("maxdate")),
                place=row.get("place"),
                course=row.get("course"),
            )
            for row in rows
        ]

    def list_events(self, meetsid: int) -> list[MeetEvent]:
        """A meet's programme in event order, with distance and stroke from the race catalog."""
        rows = self._fetch_all("""
            SELECT ms_id, meet_id, event_numb, ms_race_id, gender, ms_cat
            FROM events
            WHERE meet_id = %s
            ORDER BY event_numb
        """, (meetsid,))

        race_ids = sorted({row["ms_race_id"] for row in rows if row.get("ms_race_id") is not None})
        races = {}
        if race_ids:
            placeholders = ", ".join(["%s"] * len(race_ids))
            for race in self._fetch_all(f"""
                SELECT raceid, distance, stroke_shortname
                FROM races
                WHERE raceid IN ({placeholders})
            """, race_ids):
                races[race["raceid"]] = race

        events = []
        for row in rows:
            race = races.get(row.get("ms_race_id"), {})
            events.append(MeetEvent(
                ms_id=row["ms_id"],
                meet_id=row["meet_id"],
                event_numb=row["event_numb"],
                race_id=row.get("ms_race_id"),
                gender=row.get("gender"),
                category=row.get("ms_cat"),
                distance=race.get("distance"),
                stroke_shortname=race.get("stroke_shortname"),
            ))
        return events

    def list_event_results(self, meetsid: int, event_numb: int) -> list[Result]:
        """Times swum in one event of a meet, fastest first."""
        rows = self._fetch_all("""
            SELECT fincode, name, distance, stroke_shortname, totaltime, formatted_time
            FROM results_detail
            WHERE meetsid = %s AND eventnumb = %s
            ORDER BY totaltime
        """, (meetsid, event_numb))

        logger.debug(
            "Loaded event results",
            extra={"meetsid": meetsid, "event_numb": event_numb, "count": len(rows)}
        )

        return [
            Result(
                fincode=row.get("fincode"),
                name=row.get("name"),
                distance=row.get("distance"),
                stroke_shortname=row.get("stroke_shortname"),
                time=_as_text(row.get("formatted_time")),
            )
            for row in rows
        ]

    def list_result_times(self, meetsids: list[int]) -> dict[int, list]:
        """Raw total times per meet, for the given meets only."""
        if not meetsids:
            return {}

        placeholders = ", ".join(["%s"] * len(meetsids))
        rows = self._fetch_all(f"""
            SELECT meetsid, totaltime
            FROM results
            WHERE meetsid IN ({placeholders})
        """, list(meetsids))

        times: dict[int, list] = {}
        for row in rows:
            times.setdefault(row["meetsid"], []).append(row.get("totaltime"))
        return times

    def list_racesheet(self, meetsid: int) -> list[RaceSheetEntry]:
        """Planned swims of a meet by event number, then athlete."""
        rows = self._fetch_all("""
            SELECT fincode, athlete_name, eventnumb, distance, stroke_shortname,
                   personal_best, limit_str
            FROM racesheet_results
            WHERE meetsid = %s
            ORDER BY eventnumb, athlete_name
        """, (meetsid,))

        return [
            RaceSheetEntry(
                eventnumb=row["eventnumb"],
                name=row.get("athlete_name") or "",
                fincode=row.get("fincode"),
                distance=row.get("distance"),
                stroke_shortname=row.get("stroke_shortname"),
                personal_best=_as_text(row.get("personal_best")),
                limit=_as_text(row.get("limit_str")),
            )
            for row in rows
        ]


def _as_text(value) -> Optional[str]:
    return None if value is None else str(value)


def _escape_like(text: str) -> str:
    for char in ("!", "%", "_"):
        text = text.replace(char, "!" + char)
    return text
