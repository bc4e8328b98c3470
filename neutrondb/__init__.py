"""
neutrondb - a minimal Active Record persistence layer with SQL migrations.

This package provides:

- Typed Active Record models built on pydantic, with a chainable,
  parameterized query builder (where / order_by / limit / offset)
- A single explicitly owned Connection over SQLite, PostgreSQL or MySQL
- A migration runner that applies timestamped SQL files exactly once and
  records them in a ledger table
- Scaffolding for new migrations and models, and a typer CLI
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from neutrondb.config import Settings, get_settings
from neutrondb.domain.migrations import (
    MigrationRecord,
    MigrationResult,
    MigrationSource,
    MigrationStatus,
)
from neutrondb.domain.models import Model
from neutrondb.domain.query import QueryBuilder, QueryState
from neutrondb.exceptions import (
    ConnectionError,
    ExecutionError,
    MigrationError,
    NeutronError,
    ValidationError,
)
from neutrondb.infrastructure.connection import Connection, connect
from neutrondb.migrator import MigrationRunner
from neutrondb.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Connection
    "Connection",
    "connect",
    # Models and queries
    "Model",
    "QueryBuilder",
    "QueryState",
    # Migrations
    "MigrationRunner",
    "MigrationRecord",
    "MigrationResult",
    "MigrationSource",
    "MigrationStatus",
    # Errors
    "NeutronError",
    "ValidationError",
    "ConnectionError",
    "ExecutionError",
    "MigrationError",
    # Logging
    "configure_logging",
    "get_logger",
]
