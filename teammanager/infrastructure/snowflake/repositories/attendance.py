"""
Snowflake repository for attendance.

Reads come from two places: the attendance table itself (one session's
sheet) and the attendance_to_sessions view, which joins each record to
its session date, type and groups (calendars and summaries).

Writes only happen through `apply_delta`, which runs the deletes and
upserts of one sheet save as a single transaction.
"""

import logging
from datetime import date
from typing import Optional

from teammanager.core.attendance import (
    AttendanceDay,
    AttendanceDelta,
    AttendanceRecord,
    AttendanceStatus,
)
from teammanager.core.calendar import month_bounds
from .base import BaseRepository, as_date

logger = logging.getLogger(__name__)


class AttendanceSaveError(Exception):
    """Raised when a sheet save is rejected; nothing from the batch is kept."""
    pass


_DAY_COLUMNS = "attendance_id, session_id, fincode, status, type, groups, date"


class AttendanceRepository(BaseRepository):
    """Repository for attendance records."""

    def list_for_session(self, session_id: int) -> list[AttendanceRecord]:
        """Stored statuses for one session."""
        rows = self._fetch_all("""
            SELECT session_id, fincode, status
            FROM attendance
            WHERE session_id = %s
        """, (session_id,))
        return [
            AttendanceRecord(
                session_id=row["session_id"],
                fincode=row["fincode"],
                status=AttendanceStatus.parse(row["status"]),
            )
            for row in rows
        ]

    def list_for_athlete_month(
        self,
        fincode: int,
        year: int,
        month: int,
        session_type: str,
    ) -> list[AttendanceDay]:
        """One athlete's attendance for a calendar month and session type."""
        start, end = month_bounds(year, month)
        rows = self._fetch_all(f"""
            SELECT {_DAY_COLUMNS}
            FROM attendance_to_sessions
            WHERE fincode = %s AND type = %s AND date >= %s AND date <= %s
            ORDER BY date
        """, (fincode, session_type, start, end))
        return [self._build_day(row) for row in rows]

    def list_between(
        self,
        start: date,
        end: date,
        session_type: Optional[str] = None,
        fincode: Optional[int] = None,
    ) -> list[AttendanceDay]:
        """Attendance in a date range, optionally for one type and one athlete."""
        conditions = ["date >= %s", "date <= %s"]
        params: list = [start, end]
        if session_type:
            conditions.append("type = %s")
            params.append(session_type)
        if fincode is not None:
            conditions.append("fincode = %s")
            params.append(fincode)

        rows = self._fetch_all(f"""
            SELECT {_DAY_COLUMNS}
            FROM attendance_to_sessions
            WHERE {" AND ".join(conditions)}
            ORDER BY date
        """, params)
        return [self._build_day(row) for row in rows]

    def apply_delta(self, delta: AttendanceDelta) -> None:
        """
        Persist a sheet save.

        Deletes and upserts run in one transaction: either the whole
        batch lands or none of it does.
        """
        if delta.is_empty:
            logger.debug("Nothing to save", extra={"session_id": delta.session_id})
            return

        cursor = self._conn.cursor()

        try:
            cursor.execute("BEGIN")

            if delta.to_delete:
                placeholders = ", ".join(["%s"] * len(delta.to_delete))
                cursor.execute(f"""
                    DELETE FROM attendance
                    WHERE session_id = %s AND fincode IN ({placeholders})
                """, (delta.session_id, *delta.to_delete))

            for record in delta.to_upsert:
                self._upsert_record(cursor, record)

            self._conn.commit()

            logger.info(
                "Saved attendance",
                extra={
                    "session_id": delta.session_id,
                    "deleted": len(delta.to_delete),
                    "upserted": len(delta.to_upsert),
                }
            )

        except Exception as e:
            self._conn.rollback()
            logger.error(
                "Failed to save attendance",
                extra={"session_id": delta.session_id, "error": str(e)}
            )
            raise AttendanceSaveError(f"Attendance save failed: {e}") from e

        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _upsert_record(self, cursor, record: AttendanceRecord) -> None:
        """Insert or update one status, keyed on (session_id, fincode)."""
        cursor.execute("""
            MERGE INTO attendance AS target
            USING (SELECT %s AS session_id, %s AS fincode, %s AS status) AS source
            ON target.session_id = source.session_id
               AND target.fincode = source.fincode
            WHEN MATCHED THEN UPDATE SET status = source.status
            WHEN NOT MATCHED THEN INSERT (session_id, fincode, status)
                VALUES (source.session_id, source.fincode, source.status)
        """, (record.session_id, record.fincode, record.status.value))

    def _build_day(self, row: dict) -> AttendanceDay:
        return AttendanceDay(
            date=as_date(row["date"]),
            session_id=row["session_id"],
            fincode=row["fincode"],
            status=AttendanceStatus.parse(row["status"]),
            type=row.get("type"),
            groups=row.get("groups"),
            attendance_id=row.get("attendance_id"),
        )
