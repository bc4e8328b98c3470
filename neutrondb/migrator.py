"""
Migration runner: applies pending SQL migration files exactly once.

Usage (example from CLI):
    from neutrondb.infrastructure.connection import connect
    from neutrondb.migrator import MigrationRunner

    runner = MigrationRunner(connect(), "migrations")
    results = runner.run()

Every source moves Pending -> Running -> Applied, or Pending -> Running ->
Failed. Sources already in the ledger are reported as skipped. The first
failure halts the run: later sources are not attempted and the ledger only
ever lists migrations whose SQL succeeded.

The run is a plain sequential loop with no cross-migration transaction, and
it is not safe to run from two processes against one ledger at the same
time; wrap `run()` in an external lock if that can happen.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from neutrondb.domain.migrations import (
    MigrationRecord,
    MigrationResult,
    MigrationSource,
    MigrationStatus,
)
from neutrondb.domain.query import validate_identifier
from neutrondb.exceptions import ExecutionError, MigrationError, ValidationError
from neutrondb.infrastructure.connection import Connection
from neutrondb.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LEDGER_TABLE = "migrations"


class MigrationRunner:
    """
    Discover, order and apply migration sources against one connection.

    Parameters
    ----------
    connection : Connection
        Execution interface shared with the model layer.
    directory : Path | str | None
        Directory holding `<unix_ts>_<name>.sql` files.
    table : str
        Ledger table name.
    sources : iterable[MigrationSource] | None
        Explicit sources to use instead of reading `directory`.
    """

    def __init__(
        self,
        connection: Connection,
        directory: Path | str | None = None,
        table: str = DEFAULT_LEDGER_TABLE,
        sources: Optional[Iterable[MigrationSource]] = None,
    ) -> None:
        if directory is None and sources is None:
            raise ValidationError("MigrationRunner needs a directory or explicit sources")
        self.connection = connection
        self.directory = Path(directory) if directory is not None else None
        self.table = validate_identifier(table, "ledger table")
        self._sources = list(sources) if sources is not None else None

    # -- ledger -------------------------------------------------------------------

    def ensure_ledger(self) -> None:
        """Create the ledger table if it does not exist. Safe on every run."""
        self.connection.execute(self.connection.backend.ledger_ddl(self.table))

    @property
    def _quoted_table(self) -> str:
        return self.connection.quote(self.table)

    def ledger(self) -> List[MigrationRecord]:
        self.ensure_ledger()
        rows = self.connection.query(
            f"SELECT id, migration, created_at FROM {self._quoted_table} ORDER BY id ASC"
        )
        return [MigrationRecord.model_validate(row) for row in rows]

    def list_applied(self) -> Set[str]:
        """Identifiers currently recorded in the ledger."""
        self.ensure_ledger()
        rows = self.connection.query(f"SELECT migration FROM {self._quoted_table}")
        return {row["migration"] for row in rows}

    def _record(self, source: MigrationSource) -> None:
        marker = self.connection.placeholder("migration")
        self.connection.execute(
            f"INSERT INTO {self._quoted_table} (migration) VALUES ({marker})",
            {"migration": source.identifier},
        )

    # -- sources -------------------------------------------------------------------

    def discover(self) -> List[MigrationSource]:
        """
        Migration sources in application order (timestamp, then filename).

        Raises
        ------
        FileNotFoundError
            If the migrations directory does not exist.
        ValidationError
            If a `.sql` file is not named `<unix_ts>_<name>.sql`, or two
            sources share an identifier.
        """
        if self._sources is not None:
            sources = list(self._sources)
        elif self.directory is None:
            raise ValidationError("MigrationRunner needs a directory or explicit sources")
        else:
            if not self.directory.is_dir():
                raise FileNotFoundError(f"Migrations directory not found: {self.directory}")
            sources = [MigrationSource.from_path(path) for path in self.directory.glob("*.sql")]

        seen: Set[str] = set()
        for source in sources:
            if source.identifier in seen:
                raise ValidationError(f"Duplicate migration identifier: {source.identifier}")
            seen.add(source.identifier)
        return sorted(sources, key=lambda source: source.sort_key)

    def pending(self) -> List[MigrationSource]:
        applied = self.list_applied()
        return [source for source in self.discover() if source.identifier not in applied]

    def status(self) -> List[Tuple[MigrationSource, bool]]:
        """Every discovered source paired with whether it has been applied."""
        applied = self.list_applied()
        return [(source, source.identifier in applied) for source in self.discover()]

    # -- execution -------------------------------------------------------------------

    def _apply(self, source: MigrationSource, results: List[MigrationResult]) -> MigrationResult:
        log.debug(
            f"Running migration: {source.identifier}",
            extra={"migration": source.identifier, "status": MigrationStatus.RUNNING.value},
        )
        start = time.perf_counter()
        try:
            self.connection.execute_script(source.sql)
        except ExecutionError as exc:
            duration = time.perf_counter() - start
            failed = MigrationResult(
                migration=source.identifier,
                status=MigrationStatus.FAILED,
                error=exc.message,
                duration_seconds=duration,
            )
            results.append(failed)
            log.error(
                f"Error executing migration: {source.identifier}: {exc.message}",
                extra={"migration": source.identifier, "status": failed.status.value},
            )
            raise MigrationError(
                source.identifier, exc.message, results=results, statement=exc.statement
            ) from exc

        try:
            self._record(source)
        except ExecutionError as exc:
            failed = MigrationResult(
                migration=source.identifier,
                status=MigrationStatus.FAILED,
                error=f"applied but not recorded in ledger: {exc.message}",
                duration_seconds=time.perf_counter() - start,
            )
            results.append(failed)
            log.error(
                f"Migration {source.identifier} applied but ledger insert failed: {exc.message}",
                extra={"migration": source.identifier, "status": failed.status.value},
            )
            raise MigrationError(
                source.identifier, failed.error or exc.message, results=results,
                statement=exc.statement,
            ) from exc

        applied = MigrationResult(
            migration=source.identifier,
            status=MigrationStatus.APPLIED,
            duration_seconds=time.perf_counter() - start,
        )
        results.append(applied)
        log.info(
            f"Executed migration: {source.identifier}",
            extra={"migration": source.identifier, "duration_seconds": applied.duration_seconds},
        )
        return applied

    def run(self) -> List[MigrationResult]:
        """
        Apply every pending source in order; stop at the first failure.

        Returns
        -------
        list[MigrationResult]
            One applied/skipped result per discovered source.

        Raises
        ------
        MigrationError
            When a source fails. `results` holds the outcomes so far, the
            failed source last; sources after it were never attempted.
        """
        self.ensure_ledger()
        applied = self.list_applied()
        sources = self.discover()
        log.info(
            f"Found {len(sources)} migration(s), {len(applied)} already applied",
            extra={"ledger": self.table},
        )

        results: List[MigrationResult] = []
        for source in sources:
            if source.identifier in applied:
                results.append(
                    MigrationResult(migration=source.identifier, status=MigrationStatus.SKIPPED)
                )
                log.debug(
                    f"Skipped migration: {source.identifier}",
                    extra={"migration": source.identifier},
                )
                continue
            self._apply(source, results)

        applied_count = sum(1 for r in results if r.status is MigrationStatus.APPLIED)
        log.info(
            f"Migrations complete: {applied_count} applied, {len(results) - applied_count} skipped",
            extra={"applied": applied_count, "skipped": len(results) - applied_count},
        )
        return results


__all__ = ["MigrationRunner", "DEFAULT_LEDGER_TABLE"]
