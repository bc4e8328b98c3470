"""
Domain package for neutrondb: records, queries, and migration types.
"""

from neutrondb.domain.migrations import (
    MigrationRecord,
    MigrationResult,
    MigrationSource,
    MigrationStatus,
)
from neutrondb.domain.models import Model
from neutrondb.domain.query import Predicate, QueryBuilder, QueryState

__all__ = [
    "MigrationRecord",
    "MigrationResult",
    "MigrationSource",
    "MigrationStatus",
    "Model",
    "Predicate",
    "QueryBuilder",
    "QueryState",
]
