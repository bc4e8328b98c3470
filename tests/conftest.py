"""
Pytest configuration for neutrondb.

Provides fixtures for:
- An in-memory SQLite connection per test
- A migrations directory with a helper to write migration files
- Settings isolation (the cached settings are cleared around every test)
- PostgreSQL connectivity for integration tests
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Generator

import pytest

from neutrondb.config import get_settings
from neutrondb.infrastructure.backends import PostgresBackend
from neutrondb.infrastructure.connection import Connection

_ENV_VARS = (
    "DB_CONNECTION",
    "DB_DATABASE",
    "DB_HOST",
    "DB_PORT",
    "DB_USERNAME",
    "DB_PASSWORD",
    "DB_CONNECT_ATTEMPTS",
    "MIGRATIONS_PATH",
    "MIGRATIONS_TABLE",
    "MODELS_PATH",
    "MIGRATION_LOG_FILE",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path: Path) -> Generator[None, None, None]:
    """
    Keep tests independent of the developer's environment and `.env` file.

    Runs every test from its own temporary working directory.
    """
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def connection() -> Generator[Connection, None, None]:
    """
    A private in-memory SQLite connection, closed after the test.
    """
    conn = Connection.sqlite_memory()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "migrations"
    directory.mkdir()
    return directory


@pytest.fixture
def write_migration(migrations_dir: Path) -> Callable[[str, str], Path]:
    """
    Write `<migrations_dir>/<filename>` with the given SQL and return its path.
    """

    def _write(filename: str, sql: str) -> Path:
        path = migrations_dir / filename
        path.write_text(sql, encoding="utf-8")
        return path

    return _write


@pytest.fixture(scope="session")
def pg_dsn() -> str:
    """
    PostgreSQL connection string for integration tests.
    """
    return os.getenv(
        "TEST_DATABASE_URL",
        "postgresql://{user}:{password}@{host}:{port}/{name}".format(
            user=os.getenv("DB_TEST_USER", "postgres"),
            password=os.getenv("DB_TEST_PASSWORD", "postgres"),
            host=os.getenv("DB_TEST_HOST", "localhost"),
            port=os.getenv("DB_TEST_PORT", "5432"),
            name=os.getenv("DB_TEST_NAME", "neutrondb_test"),
        ),
    )


@pytest.fixture
def pg_connection(pg_dsn: str) -> Generator[Connection, None, None]:
    """
    A PostgreSQL connection for integration tests.

    Skips tests if the database is not available.
    """
    conn = Connection(PostgresBackend(database="", dsn=pg_dsn, connect_attempts=1))
    try:
        conn.open()
    except Exception:
        pytest.skip("Database not available for integration tests")
    try:
        yield conn
    finally:
        conn.close()
