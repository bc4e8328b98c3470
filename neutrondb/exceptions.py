"""
Error taxonomy for neutrondb.

- ValidationError: malformed identifier/operator/argument input (caller bug).
- ConnectionError: backend unreachable or misconfigured.
- ExecutionError: backend rejected a statement.
- MigrationError: a migration file failed to apply; the run halted.

Backend driver exceptions are never swallowed: they are wrapped with the
identifying context (statement, table, migration filename) and chained.
"""

from __future__ import annotations

import builtins
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from neutrondb.domain.migrations import MigrationResult


class NeutronError(Exception):
    """Base class for every error raised by neutrondb."""


class ValidationError(NeutronError, ValueError):
    """Invalid column, operator, identifier or argument."""


class ConnectionError(NeutronError, builtins.ConnectionError):
    """No usable backend connection."""


class ExecutionError(NeutronError):
    """
    A statement was rejected by the backend.

    Attributes
    ----------
    statement : str | None
        SQL text that failed.
    table : str | None
        Table the failing model operation targeted, when known.
    migration : str | None
        Migration filename, when raised by the migration runner.
    """

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        table: Optional[str] = None,
        migration: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.statement = statement
        self.table = table
        self.migration = migration


class MigrationError(ExecutionError):
    """A migration failed; `results` holds what ran up to and including it."""

    def __init__(
        self,
        migration: str,
        message: str,
        results: Optional[List["MigrationResult"]] = None,
        statement: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Error executing migration {migration}: {message}",
            statement=statement,
            migration=migration,
        )
        self.backend_message = message
        self.results = list(results or [])


__all__ = [
    "NeutronError",
    "ValidationError",
    "ConnectionError",
    "ExecutionError",
    "MigrationError",
]
