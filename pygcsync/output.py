"""Console output for the CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Prints messages, tables and JSON, honoring --quiet and --json."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def print(self, message: str = "") -> None:
        if not self.json_output:
            self.console.print(message)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))

    def output_table(self, columns: list[str], rows: list[list[str]]) -> None:
        if self.json_output:
            self.output_json([dict(zip(columns, row)) for row in rows])
            return
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self.console.print(table)

    def print_summary(self, title: str, stats: dict[str, Any]) -> None:
        """Print a key/value summary (or JSON object)."""
        if self.json_output:
            self.output_json(stats)
            return
        if self.quiet:
            return
        self.console.print(f"\n[bold]{title}[/bold]")
        for key, value in stats.items():
            self.console.print(f"  {key}: {value}")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
