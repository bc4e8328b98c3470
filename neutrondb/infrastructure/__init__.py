"""
Infrastructure package for neutrondb.

Centralizes database connectivity: the per-dialect backends and the single
owned Connection that models and migrations execute through. Keep this layer
focused on I/O, decoupled from query building and migration logic.
"""

from neutrondb.infrastructure.backends import (
    Backend,
    MySQLBackend,
    PostgresBackend,
    SQLiteBackend,
    backend_from_settings,
)
from neutrondb.infrastructure.connection import Connection, connect

__all__ = [
    "Backend",
    "MySQLBackend",
    "PostgresBackend",
    "SQLiteBackend",
    "backend_from_settings",
    "Connection",
    "connect",
]
