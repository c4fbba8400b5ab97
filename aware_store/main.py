from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from aware_store.config import get_settings
from aware_store.domain.models import ConnectOptions
from aware_store.errors import StoreError
from aware_store.reporter import print_records, print_write_result
from aware_store.router import DELETE_DATA, GET_DATA, INSERT_DATA, UPDATE_DATA
from aware_store.service import StoreService
from aware_store.utils.logging import configure_logging

app = typer.Typer(help="aware-store sensor record persistence CLI.")


def _load_data(data: Optional[str], file: Optional[Path]) -> str:
    if file is not None:
        return file.read_text(encoding="utf-8")
    if data is None:
        raise typer.BadParameter("Provide --data or --file.")
    return data


async def _dispatch(operation: str, body: Dict[str, Any]) -> Any:
    async with StoreService.from_settings(get_settings()) as service:
        return await service.router.dispatch(operation, body)


async def _provision(table: str) -> None:
    async with StoreService.from_settings(get_settings()) as service:
        await service.provisioner.ensure_table(table)


def _run(coro: Any) -> Any:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        return asyncio.run(coro)
    except StoreError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _write(operation: str, table: str, device_id: str, data: Optional[str], file: Optional[Path]) -> None:
    body = {"device_id": device_id, "table": table, "data": _load_data(data, file)}
    result = _run(_dispatch(operation, body))
    print_write_result(result)
    if result.get("error"):
        raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective connection configuration.
    """
    settings = get_settings()
    try:
        options = ConnectOptions.from_settings(settings)
    except StoreError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(
        f"DB={options.describe()} | pool={settings.database_pool_max_size} "
        f"timeout={settings.database_pool_timeout}s env={settings.app_env}"
    )


@app.command()
def provision(table: str = typer.Argument(..., help="Table to create if missing.")) -> None:
    """
    Create a record table and its index if they do not exist.
    """
    _run(_provision(table))
    typer.echo(f"Table '{table}' is ready.")


@app.command()
def insert(
    table: str = typer.Argument(...),
    device_id: str = typer.Argument(...),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON array of entries."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File holding the JSON array."),
) -> None:
    """
    Insert a batch of entries for a device.
    """
    _write(INSERT_DATA, table, device_id, data, file)


@app.command()
def update(
    table: str = typer.Argument(...),
    device_id: str = typer.Argument(...),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON array of entries."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File holding the JSON array."),
) -> None:
    """
    Replace stored entries matched by device and timestamp.
    """
    _write(UPDATE_DATA, table, device_id, data, file)


@app.command()
def delete(
    table: str = typer.Argument(...),
    device_id: str = typer.Argument(...),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON array of entries."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="File holding the JSON array."),
) -> None:
    """
    Delete the device's entries whose timestamps appear in the batch.
    """
    _write(DELETE_DATA, table, device_id, data, file)


@app.command()
def query(
    table: str = typer.Argument(...),
    device_id: str = typer.Argument(...),
    start: float = typer.Option(..., "--start", "-s", help="Inclusive lower timestamp."),
    end: float = typer.Option(..., "--end", "-e", help="Inclusive upper timestamp."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON instead of a table."),
) -> None:
    """
    Show a device's entries within a timestamp range.
    """
    body = {"device_id": device_id, "table": table, "start": start, "end": end}
    rows = _run(_dispatch(GET_DATA, body))
    if as_json:
        typer.echo(json.dumps(rows, indent=2, default=str))
    else:
        print_records(rows, title=f"{table} / {device_id}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
