"""
Console rendering of migration runs and ledger status.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from neutrondb.domain.migrations import MigrationResult, MigrationSource, MigrationStatus

_STATUS_STYLES = {
    MigrationStatus.APPLIED: "green",
    MigrationStatus.SKIPPED: "dim",
    MigrationStatus.FAILED: "bold red",
    MigrationStatus.PENDING: "yellow",
    MigrationStatus.RUNNING: "cyan",
}


def _status_cell(status: MigrationStatus) -> str:
    style = _STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def print_results(
    results: Sequence[MigrationResult],
    console: Optional[Console] = None,
    title: str = "Migration Run",
) -> None:
    """
    Render the outcome of `MigrationRunner.run()` as a rich table.

    The failed migration, if any, is the last row.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No migrations found.[/yellow]")
        return

    applied = sum(1 for r in results if r.status is MigrationStatus.APPLIED)
    skipped = sum(1 for r in results if r.status is MigrationStatus.SKIPPED)
    failed = sum(1 for r in results if r.status is MigrationStatus.FAILED)

    table = Table(
        title=title,
        box=box.ROUNDED,
        caption=f"{applied} applied │ {skipped} skipped │ {failed} failed",
    )
    table.add_column("Migration", style="cyan", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Duration (s)", justify="right", style="magenta")
    table.add_column("Error", style="red")

    for res in results:
        duration = f"{res.duration_seconds:.3f}" if res.status is not MigrationStatus.SKIPPED else "-"
        table.add_row(res.migration, _status_cell(res.status), duration, res.error or "")

    console.print(table)


def print_status(
    status: List[Tuple[MigrationSource, bool]],
    console: Optional[Console] = None,
) -> None:
    """Render every discovered migration with whether it has been applied."""
    console = console or Console()

    if not status:
        console.print("[yellow]No migrations found.[/yellow]")
        return

    pending = sum(1 for _, applied in status if not applied)
    table = Table(
        title="Migration Status",
        box=box.ROUNDED,
        caption=f"{len(status) - pending} applied │ {pending} pending",
    )
    table.add_column("Timestamp", justify="right", style="magenta")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Status", justify="center")

    for source, applied in status:
        state = MigrationStatus.APPLIED if applied else MigrationStatus.PENDING
        table.add_row(str(source.timestamp), source.name, _status_cell(state))

    console.print(table)


__all__ = ["print_results", "print_status"]
