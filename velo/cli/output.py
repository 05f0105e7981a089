"""Console output for CLI commands: status lines and listing tables."""

from datetime import datetime
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from velo.core.models.pending_operation import OperationStatus, PendingOperation
from velo.core.models.quick_step import QuickStep

OUTCOME_STYLES = {
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def report(console: Console, message: str, outcome: str = "success") -> None:
    """Print a one-line command outcome in the colour for ``outcome``."""
    style = OUTCOME_STYLES.get(outcome, "white")
    console.print(message, style=style, markup=False)


def _format_ms(timestamp_ms: Optional[int]) -> str:
    if not timestamp_ms:
        return "-"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


class OperationTable:
    """Pending operation table component.

    Used by: queue list, queue list --failed
    """

    def __init__(self, console: Console):
        self.console = console

    def display(self, operations: List[PendingOperation], title: str = "Pending operations") -> None:
        """Display operations as a formatted table."""
        if not operations:
            self.console.print("[yellow]No operations to display[/yellow]")
            return

        table = Table(title=title)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Account", style="magenta")
        table.add_column("Type", style="green")
        table.add_column("Resource", style="white")
        table.add_column("Retries", justify="right")
        table.add_column("Created", style="yellow", justify="right")
        table.add_column("Next retry", style="yellow", justify="right")
        table.add_column("Error", style="red")

        for op in operations:
            retries = f"{op.retry_count}/{op.max_retries}"
            if op.status is OperationStatus.FAILED:
                retries = f"[red]{retries}[/red]"

            table.add_row(
                op.id[:8],
                op.account_id,
                op.operation_type,
                op.resource_id,
                retries,
                _format_ms(op.created_at),
                _format_ms(op.next_retry_at),
                op.error_message or "",
            )

        self.console.print(table)


class QuickStepTable:
    """Quick step table component."""

    def __init__(self, console: Console):
        self.console = console

    def display(self, steps: List[QuickStep], title: str = "Quick steps") -> None:
        if not steps:
            self.console.print("[yellow]No quick steps to display[/yellow]")
            return

        table = Table(title=title)
        table.add_column("#", justify="right")
        table.add_column("Name", style="green")
        table.add_column("Actions", style="cyan")
        table.add_column("Shortcut", style="magenta")
        table.add_column("On error")
        table.add_column("Enabled", justify="center")

        for step in steps:
            table.add_row(
                str(step.sort_order),
                step.name,
                " -> ".join(action.type for action in step.actions),
                step.shortcut or "",
                "continue" if step.continue_on_error else "stop",
                "[green]yes[/green]" if step.is_enabled else "[red]no[/red]",
            )

        self.console.print(table)
