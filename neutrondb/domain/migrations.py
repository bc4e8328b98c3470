"""
Migration domain types.

A migration source is one `<unix_ts>_<snake_case_name>.sql` file whose text
is executed verbatim. Sources order by their numeric timestamp, then by
filename, never by directory listing order.
"""
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from neutrondb.exceptions import ValidationError

MIGRATION_FILENAME = re.compile(r"^(?P<timestamp>\d+)_(?P<name>[A-Za-z0-9_]+)\.sql$")


class MigrationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class MigrationSource(BaseModel):
    """An immutable unit of raw SQL keyed by its filename."""

    identifier: str = Field(..., description="Filename, e.g. 1700000000_create_users_table.sql.")
    timestamp: int = Field(..., description="Creation time encoded in the filename.")
    name: str = Field(..., description="Human name encoded in the filename.")
    sql: str = Field(..., description="Raw SQL text.")
    path: Optional[Path] = Field(None, description="File the SQL was read from.")

    model_config = {"frozen": True}

    @classmethod
    def parse_identifier(cls, identifier: str) -> tuple[int, str]:
        match = MIGRATION_FILENAME.match(identifier)
        if not match:
            raise ValidationError(
                f"Invalid migration filename {identifier!r}; expected <unix_ts>_<name>.sql"
            )
        return int(match.group("timestamp")), match.group("name")

    @classmethod
    def from_sql(cls, identifier: str, sql: str, path: Optional[Path] = None) -> "MigrationSource":
        timestamp, name = cls.parse_identifier(identifier)
        return cls(identifier=identifier, timestamp=timestamp, name=name, sql=sql, path=path)

    @classmethod
    def from_path(cls, path: Path | str) -> "MigrationSource":
        path = Path(path)
        return cls.from_sql(path.name, path.read_text(encoding="utf-8"), path=path)

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.timestamp, self.identifier)


class MigrationRecord(BaseModel):
    """One row of the migration ledger."""

    id: Optional[int] = None
    migration: str
    created_at: Optional[datetime] = None


class MigrationResult(BaseModel):
    """Outcome of one source during a run."""

    migration: str
    status: MigrationStatus
    error: Optional[str] = None
    duration_seconds: float = 0.0


__all__ = [
    "MIGRATION_FILENAME",
    "MigrationStatus",
    "MigrationSource",
    "MigrationRecord",
    "MigrationResult",
]
