"""
Snowflake repository for training sessions.

Sessions are created and edited elsewhere; this repository only reads
them for the calendar and the attendance sheet.
"""

import logging
from datetime import date
from typing import Optional

from teammanager.core.models import TrainingSession
from .base import BaseRepository, as_date

logger = logging.getLogger(__name__)


def _as_text(value) -> Optional[str]:
    """TIME columns come back as datetime.time; the model keeps HH:MM:SS text."""
    return None if value is None else str(value)


class SessionNotFoundError(Exception):
    """Raised when a requested session doesn't exist."""
    pass


_SESSION_COLUMNS = """
    session_id, date, type, groups, starttime, endtime, title,
    description, volume, location, poolname, poollength
"""


class TrainingSessionRepository(BaseRepository):
    """
    Repository for training session reads.

    - get_session: one session by id (attendance sheet)
    - list_between: sessions in a date range (calendar month)
    """

    def get_session(self, session_id: int) -> TrainingSession:
        row = self._fetch_one(f"""
            SELECT {_SESSION_COLUMNS}
            FROM sessions
            WHERE session_id = %s
        """, (session_id,))

        if not row:
            raise SessionNotFoundError(f"Session {session_id} not found")

        return self._build_session(row)

    def list_between(self, start: date, end: date) -> list[TrainingSession]:
        """Sessions dated within [start, end], latest first."""
        rows = self._fetch_all(f"""
            SELECT {_SESSION_COLUMNS}
            FROM sessions
            WHERE date >= %s AND date <= %s
            ORDER BY date DESC
        """, (start, end))

        logger.debug(
            "Loaded sessions",
            extra={"start": start.isoformat(), "end": end.isoformat(), "count": len(rows)}
        )
        return [self._build_session(row) for row in rows]

    def _build_session(self, row: dict) -> TrainingSession:
        return TrainingSession(
            session_id=row["session_id"],
            date=as_date(row["date"]),
            type=row.get("type") or "",
            groups=row.get("groups"),
            starttime=_as_text(row.get("starttime")),
            endtime=_as_text(row.get("endtime")),
            title=row.get("title"),
            description=row.get("description"),
            volume=row.get("volume"),
            location=row.get("location"),
            poolname=row.get("poolname"),
            poollength=row.get("poollength"),
        )
