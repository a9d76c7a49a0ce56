"""Output formatting for CLI commands."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dbop.core.types import TableDescriptor
from dbop.exceptions import DbOpError

console = Console()


class OutputFormatter:
    """Formats output for terminal or JSON mode."""

    def __init__(self, json_mode: bool = False) -> None:
        """Initialize formatter.

        Args:
            json_mode: If True, output JSON instead of Rich formatting
        """
        self.json_mode = json_mode

    def print_rows(self, title: str, rows: list[dict[str, Any]]) -> None:
        """Print result rows as a Rich table or JSON array."""
        if self.json_mode:
            print(json.dumps(rows, default=str, indent=2))
            return

        if not rows:
            console.print(f"{title}: no rows", style="dim")
            return

        table = Table(title=title, show_header=True, header_style="bold magenta")
        columns = list(rows[0])
        for col in columns:
            table.add_column(col)
        for row in rows:
            table.add_row(*["" if row.get(col) is None else str(row.get(col)) for col in columns])
        console.print(table)

    def print_table_descriptor(self, descriptor: TableDescriptor) -> None:
        """Print a table's columns and keys."""
        if self.json_mode:
            print(json.dumps(descriptor.model_dump(mode="json"), indent=2))
            return

        console.print(f"\n[bold]Table:[/bold] {descriptor.name}")
        if descriptor.primary_keys:
            console.print(f"Primary key: {', '.join(descriptor.primary_keys)}")

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Column")
        table.add_column("Type")
        table.add_column("Length")
        table.add_column("Values")
        table.add_column("Key")
        table.add_column("Auto")
        table.add_column("Null")

        for column in descriptor.columns.values():
            table.add_row(
                column.name,
                column.base_type.value,
                "" if column.max_length is None else str(column.max_length),
                ", ".join(column.enum_values or ()),
                column.key_type or "",
                "✓" if column.is_auto_generated else "",
                "✓" if column.allows_null else "",
            )
        console.print(table)

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print success message.

        Args:
            message: Success message
            details: Optional details to display
        """
        if self.json_mode:
            output = {"success": True, "message": message}
            if details:
                output.update(details)
            print(json.dumps(output, default=str, indent=2))
        else:
            console.print(f"✓ {message}", style="green")
            if details:
                for key, value in details.items():
                    console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print error message.

        Args:
            error: Exception to display
        """
        if self.json_mode:
            if isinstance(error, DbOpError):
                print(json.dumps(error.to_dict(), default=str, indent=2))
            else:
                print(json.dumps({"error": str(error)}, indent=2))
        else:
            error_text = str(error)
            if isinstance(error, DbOpError) and error.context:
                context_str = "\n".join(f"{k}: {v}" for k, v in error.context.items())
                error_text = f"{error_text}\n\n{context_str}"

            panel = Panel(
                error_text,
                title="[red]Error[/red]",
                border_style="red",
            )
            console.print(panel)
