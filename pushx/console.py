"""Rich console utilities for pushx.

All operator-facing output goes to stderr: stdout is reserved for payload
bytes written by the ``local`` driver or a ``-`` secondary output.
"""

import os
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

IS_GITHUB_ACTIONS = os.getenv("GITHUB_ACTIONS") == "true"

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "highlight": "magenta",
    }
)

# Shared console instance
console = Console(
    theme=custom_theme,
    stderr=True,
    force_terminal=IS_GITHUB_ACTIONS or None,
    color_system="auto",
)


def print_driver_table(drivers: List[Dict[str, Any]]) -> None:
    """
    Print the registered drivers as a table.

    Args:
        drivers: Entries with "name" and "description" keys
    """
    table = Table(title="Available drivers", show_header=True, header_style="bold")
    table.add_column("Driver", style="cyan")
    table.add_column("Description")
    for driver in drivers:
        table.add_row(driver["name"], driver.get("description") or "")
    console.print(table)


def print_push_summary(
    driver_name: str,
    success: bool,
    delivered: bool = False,
    stage: str = "",
    error_message: str = "",
) -> None:
    """Print the outcome of a push run."""
    if success:
        console.print(f"[success]✓ Pushed payload with {driver_name}[/success]")
        return
    if delivered:
        console.print(f"[warning]Payload delivered by {driver_name}, but {stage or 'cleanup'} failed[/warning]")
    else:
        console.print(f"[error]✗ Push with {escape(driver_name or '<none>')} failed at {stage or 'unknown'} stage[/error]")
    if error_message:
        console.print(f"  Error: {escape(error_message)}")
