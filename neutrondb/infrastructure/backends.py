"""
Database backends for neutrondb.

A backend knows how to open a DB-API connection for one SQL dialect and how
that dialect spells the few things the core cannot write portably: named
placeholders, quoted identifiers, the last inserted id, multi-statement
scripts, an unbounded LIMIT, and the DDL of the migration ledger. It does
not build queries.

Three dialects are supported, chosen once from settings:

- sqlite: stdlib `sqlite3`
- pgsql: `psycopg` 3
- mysql: `mysql-connector-python` (optional extra `neutrondb[mysql]`)

Connections are opened in autocommit mode so each statement is applied as
soon as it returns.
"""

from __future__ import annotations

import abc
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

import psycopg
from psycopg.rows import dict_row
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from neutrondb.config import Settings
from neutrondb.exceptions import ConnectionError
from neutrondb.utils.logging import get_logger

log = get_logger(__name__)


class Backend(abc.ABC):
    """
    Dialect-specific connection recipe.

    Subclasses set `name`, `error_types` (driver exceptions meaning "statement
    rejected") and implement `connect` and `ledger_ddl`.
    """

    name: str
    error_types: Tuple[Type[BaseException], ...] = ()
    unbounded_limit: str = "ALL"
    identifier_quote: str = '"'

    @abc.abstractmethod
    def connect(self) -> Any:
        """Open and return a raw DB-API connection (autocommit, dict-like rows)."""
        raise NotImplementedError

    @abc.abstractmethod
    def ledger_ddl(self, table: str) -> str:
        """`CREATE TABLE IF NOT EXISTS` statement for the migration ledger."""
        raise NotImplementedError

    def placeholder(self, name: str) -> str:
        """Named parameter marker for this driver."""
        return f"%({name})s"

    def quote_identifier(self, name: str) -> str:
        """
        Delimit an already validated identifier so reserved words
        (`order`, `user`, ...) can name tables and columns.
        """
        return f"{self.identifier_quote}{name}{self.identifier_quote}"

    def insert_default_values(self, table: str) -> str:
        """INSERT of a row that only has backend-assigned columns."""
        return f"INSERT INTO {self.quote_identifier(table)} DEFAULT VALUES"

    def cursor(self, raw: Any) -> Any:
        return raw.cursor()

    def fetch_rows(self, cursor: Any) -> List[Dict[str, Any]]:
        return [dict(row) for row in cursor.fetchall()]

    def last_insert_id(self, raw: Any, last_rowid: Optional[int]) -> Any:
        """Identifier assigned by the most recent INSERT on this handle."""
        return last_rowid

    def execute_script(self, raw: Any, sql: str) -> None:
        """Run raw SQL that may contain several statements."""
        with closing(self.cursor(raw)) as cur:
            cur.execute(sql)

    def close(self, raw: Any) -> None:
        raw.close()

    def describe(self) -> str:
        return self.name


class SQLiteBackend(Backend):
    """SQLite via the stdlib `sqlite3` module; `:memory:` for tests."""

    name = "sqlite"
    error_types = (sqlite3.Error,)
    unbounded_limit = "-1"

    def __init__(self, database: str = ":memory:") -> None:
        self.database = database

    def _ensure_database_exists(self) -> None:
        """Create the database file and its directory if they are missing."""
        if self.database == ":memory:" or self.database.startswith("file:"):
            return
        path = Path(self.database)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.touch()
            log.info("Created SQLite database file", extra={"database": str(path)})

    def connect(self) -> sqlite3.Connection:
        try:
            self._ensure_database_exists()
            raw = sqlite3.connect(
                self.database,
                isolation_level=None,
                check_same_thread=False,
                uri=self.database.startswith("file:"),
            )
        except (sqlite3.Error, OSError) as exc:
            raise ConnectionError(f"Database connection failed: {exc}") from exc
        raw.row_factory = sqlite3.Row
        return raw

    def placeholder(self, name: str) -> str:
        return f":{name}"

    def execute_script(self, raw: Any, sql: str) -> None:
        raw.executescript(sql)

    def ledger_ddl(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "migration TEXT NOT NULL UNIQUE, "
            "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    def describe(self) -> str:
        return f"sqlite:{self.database}"


class PostgresBackend(Backend):
    """PostgreSQL via psycopg 3 with dict rows."""

    name = "pgsql"
    error_types = (psycopg.Error,)
    default_port = 5432

    def __init__(
        self,
        database: str,
        host: str = "localhost",
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        connect_attempts: int = 3,
        dsn: Optional[str] = None,
    ) -> None:
        self.database = database
        self.host = host
        self.port = port or self.default_port
        self.username = username
        self.password = password
        self.connect_attempts = connect_attempts
        self._dsn_override = dsn

    def dsn(self) -> str:
        """Compose a DSN string from the configured parts."""
        if self._dsn_override:
            return self._dsn_override
        auth = ""
        if self.username:
            auth = self.username
            if self.password:
                auth += f":{self.password}"
            auth += "@"
        return f"postgresql://{auth}{self.host}:{self.port}/{self.database}"

    def connect(self) -> psycopg.Connection:
        opener = retry(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
            reraise=True,
        )(psycopg.connect)
        try:
            return opener(self.dsn(), autocommit=True, row_factory=dict_row)
        except psycopg.Error as exc:
            raise ConnectionError(f"Database connection failed: {exc}") from exc

    def last_insert_id(self, raw: Any, last_rowid: Optional[int]) -> Any:
        with raw.cursor() as cur:
            cur.execute("SELECT lastval() AS id")
            row = cur.fetchone()
        return row["id"] if row else None

    def ledger_ddl(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} ("
            "id SERIAL PRIMARY KEY, "
            "migration TEXT NOT NULL UNIQUE, "
            "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    def describe(self) -> str:
        return f"pgsql:{self.host}:{self.port}/{self.database}"


class MySQLBackend(Backend):
    """MySQL / MariaDB via `mysql.connector` with dictionary cursors."""

    name = "mysql"
    # 2**64 - 1, the documented way to ask MySQL for "all remaining rows".
    unbounded_limit = "18446744073709551615"
    identifier_quote = "`"
    default_port = 3306

    def __init__(
        self,
        database: str,
        host: str = "localhost",
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        connect_attempts: int = 3,
    ) -> None:
        self.database = database
        self.host = host
        self.port = port or self.default_port
        self.username = username
        self.password = password
        self.connect_attempts = connect_attempts

    def _driver(self) -> Any:
        try:
            import mysql.connector
        except ImportError:
            raise ConnectionError(
                "mysql-connector-python is required for MySQL. "
                "Install with: pip install neutrondb[mysql]"
            ) from None
        return mysql.connector

    def connect(self) -> Any:
        driver = self._driver()
        self.error_types = (driver.Error,)
        opener = retry(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((driver.InterfaceError, driver.OperationalError)),
            reraise=True,
        )(driver.connect)
        try:
            return opener(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.username,
                password=self.password,
                autocommit=True,
            )
        except driver.Error as exc:
            raise ConnectionError(f"Database connection failed: {exc}") from exc

    def cursor(self, raw: Any) -> Any:
        return raw.cursor(dictionary=True)

    def insert_default_values(self, table: str) -> str:
        return f"INSERT INTO {self.quote_identifier(table)} () VALUES ()"

    def execute_script(self, raw: Any, sql: str) -> None:
        with closing(raw.cursor()) as cur:
            cur.execute(sql)
            # Drain every statement's result so later errors surface here.
            while cur.nextset():
                pass

    def ledger_ddl(self, table: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} ("
            "id INT AUTO_INCREMENT PRIMARY KEY, "
            "migration VARCHAR(255) NOT NULL UNIQUE, "
            "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )

    def describe(self) -> str:
        return f"mysql:{self.host}:{self.port}/{self.database}"


def backend_from_settings(settings: Settings) -> Backend:
    """
    Resolve the backend named by `settings.db_connection`.

    Raises
    ------
    ConnectionError
        If the configured connection type is not one of sqlite, pgsql, mysql.
    """
    kind = settings.db_connection.strip().lower()
    if kind == "sqlite":
        return SQLiteBackend(settings.db_database)
    if kind in ("pgsql", "postgres", "postgresql"):
        return PostgresBackend(
            database=settings.db_database,
            host=settings.db_host,
            port=settings.db_port,
            username=settings.db_username,
            password=settings.db_password,
            connect_attempts=settings.db_connect_attempts,
        )
    if kind == "mysql":
        return MySQLBackend(
            database=settings.db_database,
            host=settings.db_host,
            port=settings.db_port,
            username=settings.db_username,
            password=settings.db_password,
            connect_attempts=settings.db_connect_attempts,
        )
    raise ConnectionError(f"Unsupported database type: {settings.db_connection}")


__all__ = [
    "Backend",
    "SQLiteBackend",
    "PostgresBackend",
    "MySQLBackend",
    "backend_from_settings",
]
