from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from aware_store.domain.models import WriteResult

MAX_DATA_WIDTH = 80


def _compact(document: Any, width: int = MAX_DATA_WIDTH) -> str:
    text = json.dumps(document, separators=(",", ":"), default=str)
    if len(text) > width:
        return text[: width - 1] + "…"
    return text


def build_records_table(
    rows: Sequence[Dict[str, Any]], title: Optional[str] = None
) -> Table:
    """
    Build a rich table for stored row documents, in the order given.
    """
    table = Table(
        title=title or "Stored records",
        box=box.ROUNDED,
        caption=f"{len(rows):,} rows, ascending timestamp",
    )
    table.add_column("_id", justify="right", style="dim")
    table.add_column("Timestamp", justify="right", style="green")
    table.add_column("Device", style="cyan", no_wrap=True)
    table.add_column("Data", style="magenta")

    for row in rows:
        table.add_row(
            str(row.get("_id", "")),
            f"{row.get('timestamp', 0.0):.3f}",
            str(row.get("device_id", "")),
            _compact(row.get("data")),
        )
    return table


def print_records(
    rows: List[Dict[str, Any]], title: Optional[str] = None, console: Optional[Console] = None
) -> None:
    """
    Render query results as a rich table.
    """
    console = console or Console()
    if not rows:
        console.print("[yellow]No records in range.[/yellow]")
        return
    console.print(build_records_table(rows, title=title))


def print_write_result(result: WriteResult, console: Optional[Console] = None) -> None:
    """Print a one-line summary of a write operation."""
    console = console or Console()
    line = (
        f"{result.get('operation')} {result.get('table')} "
        f"device={result.get('device_id')} rows={result.get('rows', 0)} "
        f"affected={result.get('affected', 0)}"
    )
    if result.get("error"):
        console.print(f"[red]{line} error={result['error']}[/red]")
    else:
        console.print(f"[green]{line}[/green]")


__all__ = ["build_records_table", "print_records", "print_write_result"]
