"""CLI utility functions shared across commands.

This module contains generic CLI utilities for:
- Resolving the configured registry
- Rendering registry state as tables
"""

import typer
from rich.console import Console
from rich.table import Table

from retail_services.exceptions import LoaderTableError
from retail_services.services.enums import ServiceStatus
from retail_services.services.models import ServiceEntryInfo
from retail_services.services.registry import ServiceRegistry, get_service_registry

console = Console()

STATUS_STYLES = {
    ServiceStatus.ABSENT: "dim",
    ServiceStatus.PENDING: "yellow",
    ServiceStatus.RESOLVED: "green",
    ServiceStatus.FAILED: "red",
}


def load_registry() -> ServiceRegistry:
    """Get the registry configured through settings.

    Raises:
        typer.Exit: If the configured loader table is invalid
    """
    try:
        return get_service_registry()
    except LoaderTableError as e:
        console.print(f"[red]Error: invalid loader configuration: {e}[/red]")
        raise typer.Exit(1) from e


def render_entries(entries: list[ServiceEntryInfo], title: str = "Services") -> Table:
    """Build a table with one row per registry entry."""
    table = Table(title=title)
    table.add_column("Service", style="cyan")
    table.add_column("Category")
    table.add_column("Critical")
    table.add_column("Status")
    table.add_column("Load time")
    table.add_column("Error", style="red")

    for entry in entries:
        style = STATUS_STYLES.get(ServiceStatus(entry.status), "")
        table.add_row(
            entry.service_name,
            str(entry.category),
            "yes" if entry.critical else "",
            f"[{style}]{entry.status}[/{style}]" if style else str(entry.status),
            f"{entry.load_time_ms:.1f}ms" if entry.load_time_ms is not None else "",
            entry.error or "",
        )
    return table
