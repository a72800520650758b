from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from bulk_worker.domain.models import CycleOutcome


def outcome_table(outcome: CycleOutcome) -> Table:
    """
    Build a two-column summary of one cycle outcome.
    """
    status = "[bold green]succeeded[/bold green]" if outcome.succeeded else "[bold red]failed[/bold red]"
    table = Table(title="Bulk Worker Cycle", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Status", status)
    table.add_row("Attempts", str(outcome.attempts))
    table.add_row("Rows read", f"{outcome.rows_read:,}")
    table.add_row("Rows inserted", f"{outcome.rows_inserted:,}")
    table.add_row("Rows updated", f"{outcome.rows_updated:,}")
    table.add_row("Rows exported", f"{outcome.rows_exported:,}")
    table.add_row("Duration (s)", f"{outcome.duration_seconds:.2f}")

    if outcome.handler_failures:
        table.add_row("Handler failures", f"[yellow]{outcome.handler_failures}[/yellow]")
    for sink, message in outcome.export_failures.items():
        table.add_row(f"Export failed ({sink})", f"[yellow]{message}[/yellow]")
    if outcome.error is not None:
        table.add_row("Error", f"[red]{type(outcome.error).__name__}: {outcome.error}[/red]")
    return table


def print_outcome(outcome: CycleOutcome, console: Optional[Console] = None) -> None:
    """Render a cycle outcome as a rich table."""
    (console or Console()).print(outcome_table(outcome))
