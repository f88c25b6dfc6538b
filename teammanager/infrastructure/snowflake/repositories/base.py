"""
Shared plumbing for the Snowflake repositories.

Repositories run plain SQL through a DB-API style connection and turn
rows into dicts keyed by lower-cased column name. Everything above this
layer works with domain models only.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "TEAMMANAGER"
    schema: str = "SWIMTEAM"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class RepositoryError(Exception):
    """Raised when a query against the data source fails."""
    pass


def as_date(value: Any) -> Optional[date]:
    """Coerce DATE / TIMESTAMP / ISO string columns to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).split("T")[0])


def as_float(value: Any) -> Optional[float]:
    """NUMBER columns arrive as Decimal; the core works with floats."""
    if value is None:
        return None
    return float(value)


class BaseRepository:
    """Runs queries and maps rows to dicts for the concrete repositories."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """
        Execute a SELECT and return its rows as dicts.

        Failures are logged and re-raised as RepositoryError so the API
        can report them without knowing about the driver.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(query, tuple(params))
            columns = [column[0].lower() for column in cursor.description or ()]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

        except RepositoryError:
            raise
        except Exception as e:
            logger.error(
                "Query failed",
                extra={"repository": type(self).__name__, "error": str(e)}
            )
            raise RepositoryError(f"Query failed: {e}") from e

        finally:
            cursor.close()

    def _fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        rows = self._fetch_all(query, params)
        return rows[0] if rows else None
