"""
Explicitly owned database connection for neutrondb.

A `Connection` wraps exactly one backend handle. The handle is opened lazily
on first use and reused until `close()`; there is no pooling and no
reconnect. The same object is passed to models and to the migration runner,
so a test can hand each of them an in-memory SQLite connection.

Access is not internally locked: callers sharing one Connection across
threads must serialize their use of it.
"""

from __future__ import annotations

from contextlib import closing
from typing import Any, Dict, List, Mapping, Optional

from neutrondb.config import Settings, get_settings
from neutrondb.exceptions import ConnectionError, ExecutionError
from neutrondb.infrastructure.backends import Backend, SQLiteBackend, backend_from_settings
from neutrondb.utils.logging import get_logger

log = get_logger(__name__)


def _run(cursor: Any, sql: str, params: Optional[Mapping[str, Any]]) -> None:
    # Parameterless statements go through without a mapping so drivers never
    # scan them for placeholders.
    if params:
        cursor.execute(sql, dict(params))
    else:
        cursor.execute(sql)


class Connection:
    """
    Single-handle execution interface shared by models and migrations.

    Parameters
    ----------
    backend : Backend
        Dialect recipe used to open the handle and spell placeholders.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self._raw: Any = None
        self._last_rowid: Optional[int] = None

    @classmethod
    def sqlite_memory(cls) -> "Connection":
        """A private in-memory SQLite database (one per Connection)."""
        return cls(SQLiteBackend(":memory:"))

    @property
    def dialect(self) -> str:
        return self.backend.name

    @property
    def is_open(self) -> bool:
        return self._raw is not None

    def open(self) -> Any:
        """Return the raw handle, opening it on first use."""
        if self._raw is None:
            log.debug("Opening database connection", extra={"backend": self.backend.describe()})
            raw = self.backend.connect()
            if raw is None:
                raise ConnectionError(f"Backend {self.backend.name} returned no connection")
            self._raw = raw
        return self._raw

    def placeholder(self, name: str) -> str:
        """Named parameter marker understood by the backend driver."""
        return self.backend.placeholder(name)

    def quote(self, identifier: str) -> str:
        """Identifier delimited for the backend dialect."""
        return self.backend.quote_identifier(identifier)

    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> int:
        """
        Execute a single statement and return the affected row count.

        Raises
        ------
        ConnectionError
            If the backend cannot be reached.
        ExecutionError
            If the backend rejects the statement.
        """
        raw = self.open()
        log.debug("execute", extra={"sql": sql})
        try:
            with closing(self.backend.cursor(raw)) as cur:
                _run(cur, sql, params)
                self._last_rowid = getattr(cur, "lastrowid", None)
                return cur.rowcount
        except self.backend.error_types as exc:
            raise ExecutionError(str(exc), statement=sql) from exc

    def query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a SELECT and return every row as a column -> value dict."""
        raw = self.open()
        log.debug("query", extra={"sql": sql})
        try:
            with closing(self.backend.cursor(raw)) as cur:
                _run(cur, sql, params)
                return self.backend.fetch_rows(cur)
        except self.backend.error_types as exc:
            raise ExecutionError(str(exc), statement=sql) from exc

    def last_insert_id(self) -> Any:
        """Identifier assigned by the most recent INSERT through this connection."""
        raw = self.open()
        try:
            return self.backend.last_insert_id(raw, self._last_rowid)
        except self.backend.error_types as exc:
            raise ExecutionError(str(exc), statement="last insert id") from exc

    def execute_script(self, sql: str) -> None:
        """Execute raw SQL text verbatim; it may hold several statements."""
        raw = self.open()
        try:
            self.backend.execute_script(raw, sql)
        except self.backend.error_types as exc:
            raise ExecutionError(str(exc), statement=sql) from exc

    def close(self) -> None:
        """Close the handle if open. A later call reopens lazily."""
        if self._raw is not None:
            try:
                self.backend.close(self._raw)
            finally:
                self._raw = None
                self._last_rowid = None

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<Connection {self.backend.describe()} ({state})>"


def connect(settings: Optional[Settings] = None) -> Connection:
    """
    Build a Connection for the backend named in settings.

    The handle itself is not opened until the first statement.

    Raises
    ------
    ConnectionError
        If `db_connection` names an unsupported backend.
    """
    settings = settings or get_settings()
    return Connection(backend_from_settings(settings))


__all__ = ["Connection", "connect"]
