"""
Connections to the team database.

Real connections come from snowflake-connector-python; the mock keeps
tables as lists of dicts and understands just enough SQL to run every
query the repositories send. Routes never use this module directly, they
receive repositories built on top of a connection.
"""

import base64
import copy
import logging
import re
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Generator, Optional

from .repositories.base import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when no connection to the team database can be opened."""
    pass


def _der_private_key(pem_bytes: bytes) -> bytes:
    """
    Convert a PEM private key to the DER/PKCS8 bytes snowflake-connector expects.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    private_key = serialization.load_pem_private_key(
        pem_bytes,
        password=None,
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


def _load_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    """
    Load the key-pair auth key, from a file or from a base64 env value.

    The base64 form exists for deployments where mounting a key file is
    awkward. Returns None when neither is configured.
    """
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _der_private_key(key_file.read())

    if config.private_key_base64:
        return _der_private_key(base64.b64decode(config.private_key_base64))

    return None


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Open a Snowflake connection and close it when the block exits.

    A configured private key wins over a password.

    Usage:
        with get_snowflake_connection(config) as conn:
            repo = AttendanceRepository(conn)
    """
    import snowflake.connector

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'client_session_keep_alive': True,
        }

        private_key = _load_private_key(config)
        if private_key:
            logger.info("Snowflake login with key pair")
            connect_params['private_key'] = private_key
        elif config.password:
            logger.info("Snowflake login with password")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or a private key must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Snowflake connection open",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

    except SnowflakeConnectionError:
        raise
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Snowflake connection closed")
        except Exception as e:
            logger.warning(
                "Snowflake connection did not close cleanly",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# In-memory Database
# ---------------------------------------------------------------------------

class MockQueryError(Exception):
    """Raised by the mock for statements it can't run or was told to fail."""
    pass


_SELECT_RE = re.compile(
    r"^SELECT (?P<columns>.+?)"
    r"(?: FROM (?P<table>\w+)"
    r"(?: WHERE (?P<where>.+?))?"
    r"(?: ORDER BY (?P<order>.+?))?"
    r"(?: LIMIT (?P<limit>\d+))?)?$",
    re.IGNORECASE,
)
_DELETE_RE = re.compile(r"^DELETE FROM (?P<table>\w+)(?: WHERE (?P<where>.+))?$", re.IGNORECASE)
_MERGE_RE = re.compile(
    r"^MERGE INTO (?P<table>\w+) .*?USING \(SELECT (?P<source>.+?)\) AS source ON (?P<on>.+?) WHEN",
    re.IGNORECASE,
)
_COMPARISON_RE = re.compile(r"^(\w+) *(>=|<=|=|>|<) *%s$")
_ILIKE_RE = re.compile(r"^(\w+) +ILIKE +%s(?: +ESCAPE +'(.)')?$", re.IGNORECASE)
_IN_RE = re.compile(r"^(\w+) +IN *\(([^)]*)\)$", re.IGNORECASE)
_AND_RE = re.compile(r" AND ", re.IGNORECASE)


def _coerce(value: Any, other: Any) -> Any:
    """Make an ISO string comparable with a date column value."""
    if isinstance(other, datetime) and isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(other, date) and isinstance(value, str):
        return date.fromisoformat(value.split("T")[0])
    return value


def _compare(left: Any, op: str, right: Any) -> bool:
    if left is None or right is None:
        return False
    left = _coerce(left, right)
    right = _coerce(right, left)
    if op == "=":
        return left == right
    if op == ">=":
        return left >= right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left < right


def _like_to_regex(pattern: str, escape: Optional[str] = None) -> re.Pattern:
    """`%` matches any run, `_` any one character; `escape` makes the next character literal."""
    parts = []
    chars = iter(pattern)
    for char in chars:
        if escape and char == escape:
            parts.append(re.escape(next(chars, "")))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


class MockSnowflakeCursor:
    """
    Cursor over the in-memory tables.

    Runs the small SQL subset the repositories use against in-memory
    tables of dicts:
    - SELECT cols FROM table [WHERE ...] [ORDER BY ...] [LIMIT n]
      with `=`, `>=`, `<=`, `>`, `<`, ILIKE [ESCAPE] and IN conditions joined by AND
    - DELETE FROM table [WHERE ...]
    - MERGE INTO table USING (SELECT %s AS col, ...) AS source ON ...
    - BEGIN
    """

    def __init__(self, connection: "MockSnowflakeConnection") -> None:
        self._conn = connection
        self._results: list[tuple] = []
        self._rowcount: int = 0
        self.description: Optional[list[tuple]] = None

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        statement = " ".join(query.split())
        params = tuple(params or ())

        logger.debug(
            "Mock cursor execute",
            extra={"query": statement[:100], "params": params}
        )

        self._conn._check_failure(statement)

        keyword = statement.split(" ", 1)[0].upper()
        if keyword == "BEGIN":
            self._conn._begin()
        elif keyword == "SELECT":
            self._handle_select(statement, params)
        elif keyword == "DELETE":
            self._handle_delete(statement, params)
        elif keyword == "MERGE":
            self._handle_merge(statement, params)
        else:
            raise MockQueryError(f"Unsupported statement: {statement[:40]}")

        return self

    def _handle_select(self, statement: str, params: tuple) -> None:
        match = _SELECT_RE.match(statement)
        if not match or (match.group("table") is None and " FROM " in statement.upper()):
            raise MockQueryError(f"Unsupported SELECT: {statement[:60]}")

        columns = [column.strip().lower() for column in match.group("columns").split(",")]

        if match.group("table") is None:
            # SELECT 1 health checks
            self._set_results(columns, [tuple(_literal(column) for column in columns)])
            return

        rows = self._conn._table(match.group("table"))
        remaining = iter(params)
        if match.group("where"):
            predicate = self._compile_where(match.group("where"), remaining)
            rows = [row for row in rows if predicate(row)]

        if match.group("order"):
            rows = _order_rows(rows, match.group("order"))

        if match.group("limit"):
            rows = rows[:int(match.group("limit"))]

        if columns == ["*"]:
            columns = []
            for row in rows:
                columns.extend(key for key in row if key not in columns)

        self._set_results(columns, [tuple(row.get(column) for column in columns) for row in rows])

    def _handle_delete(self, statement: str, params: tuple) -> None:
        match = _DELETE_RE.match(statement)
        if not match:
            raise MockQueryError(f"Unsupported DELETE: {statement[:60]}")

        table = self._conn._table(match.group("table"))
        predicate = (
            self._compile_where(match.group("where"), iter(params))
            if match.group("where") else (lambda row: True)
        )
        kept = [row for row in table if not predicate(row)]
        self._rowcount = len(table) - len(kept)
        table[:] = kept

    def _handle_merge(self, statement: str, params: tuple) -> None:
        """Upsert one row: source columns come from `%s AS name` pairs."""
        match = _MERGE_RE.match(statement)
        if not match:
            raise MockQueryError(f"Unsupported MERGE: {statement[:60]}")

        names = re.findall(r"%s AS (\w+)", match.group("source"), re.IGNORECASE)
        if len(names) != len(params):
            raise MockQueryError("MERGE parameter count mismatch")
        source = {name.lower(): value for name, value in zip(names, params)}
        keys = [key.lower() for key in re.findall(r"target\.(\w+) = source\.\w+", match.group("on"))]

        table = self._conn._table(match.group("table"))
        for row in table:
            if all(row.get(key) == source[key] for key in keys):
                row.update(source)
                break
        else:
            table.append(dict(source))
        self._rowcount = 1

    def _compile_where(self, where: str, params):
        checks = []
        for condition in _AND_RE.split(where):
            condition = condition.strip()

            comparison = _COMPARISON_RE.match(condition)
            if comparison:
                column, op = comparison.group(1).lower(), comparison.group(2)
                value = next(params)
                checks.append(lambda row, c=column, o=op, v=value: _compare(row.get(c), o, v))
                continue

            ilike = _ILIKE_RE.match(condition)
            if ilike:
                column = ilike.group(1).lower()
                pattern = _like_to_regex(str(next(params)), ilike.group(2))
                checks.append(
                    lambda row, c=column, p=pattern:
                        row.get(c) is not None and p.fullmatch(str(row.get(c))) is not None
                )
                continue

            in_list = _IN_RE.match(condition)
            if in_list:
                column = in_list.group(1).lower()
                values = [next(params) for _ in range(in_list.group(2).count("%s"))]
                checks.append(lambda row, c=column, vs=values: row.get(c) in vs)
                continue

            raise MockQueryError(f"Unsupported condition: {condition}")

        return lambda row: all(check(row) for check in checks)

    def _set_results(self, columns: list[str], rows: list[tuple]) -> None:
        self.description = [(column.upper(), None, None, None, None, None, None) for column in columns]
        self._results = rows
        self._rowcount = len(rows)

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return list(self._results)

    def close(self) -> None:
        """Nothing to release."""
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


def _literal(token: str) -> Any:
    return int(token) if token.isdigit() else token


def _order_rows(rows: list[dict], order: str) -> list[dict]:
    """Stable multi-key sort; applied from the last key to the first."""
    ordered = list(rows)
    for term in reversed(order.split(",")):
        parts = term.split()
        column = parts[0].lower()
        descending = len(parts) > 1 and parts[1].upper() == "DESC"
        present = [row for row in ordered if row.get(column) is not None]
        missing = [row for row in ordered if row.get(column) is None]
        present.sort(key=lambda row: row[column], reverse=descending)
        ordered = present + missing
    return ordered


class MockSnowflakeConnection:
    """
    In-memory stand-in for a Snowflake connection.

    Tables are lists of row dicts keyed by lower-case table name. BEGIN
    snapshots every table and rollback restores the snapshot, so a failed
    batch leaves the data as it was, like it does in Snowflake.
    """

    def __init__(self) -> None:
        self._storage: dict[str, list[dict]] = {}
        self._snapshot: Optional[dict[str, list[dict]]] = None
        self._fail_prefix: Optional[str] = None

        logger.info("Using in-memory team database")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self)

    def commit(self) -> None:
        """Commit transaction (drops the rollback snapshot)."""
        self._snapshot = None
        logger.debug("Mock commit")

    def rollback(self) -> None:
        """Restore the tables as they were at BEGIN."""
        if self._snapshot is not None:
            self._storage = self._snapshot
            self._snapshot = None
        logger.debug("Mock rollback")

    def close(self) -> None:
        logger.debug("Mock close")

    def _begin(self) -> None:
        self._snapshot = copy.deepcopy(self._storage)

    def _table(self, name: str) -> list[dict]:
        return self._storage.setdefault(name.lower(), [])

    def _check_failure(self, statement: str) -> None:
        if self._fail_prefix and statement.upper().startswith(self._fail_prefix):
            self._fail_prefix = None
            raise MockQueryError(f"Injected failure for: {statement[:40]}")

    # Helper methods for testing
    def _seed(self, table: str, rows: list[dict]) -> None:
        """Add rows to a mock table (for test setup)."""
        self._table(table).extend(dict(row) for row in rows)

    def _rows(self, table: str) -> list[dict]:
        """Copy of a mock table's rows (for test assertions)."""
        return [dict(row) for row in self._table(table)]

    def _fail_next(self, prefix: str) -> None:
        """Make the next statement starting with `prefix` raise (for test setup)."""
        self._fail_prefix = prefix.upper()

    def _clear(self) -> None:
        """Drop every table and pending failure."""
        self._storage.clear()
        self._snapshot = None
        self._fail_prefix = None


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    """A fresh, empty in-memory connection."""
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Open the mock or a real connection.

    `config` is only read, and then required, outside mock mode.
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
