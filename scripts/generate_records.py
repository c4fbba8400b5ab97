"""
Synthetic record generator for aware-store.

Builds deterministic pseudo-random sensor entries for one device and pushes them
through the router in insert batches. Useful for smoke-testing a deployment.
"""

from __future__ import annotations

import asyncio
import json
import random
import sys
import time
import uuid
from typing import Any, Dict, List

import typer

from aware_store.config import get_settings
from aware_store.router import INSERT_DATA
from aware_store.service import StoreService
from aware_store.utils.logging import configure_logging

app = typer.Typer(help="Generate synthetic sensor entries and insert them via the router.")


def _generate_entries(
    count: int, seed: int, start_ts: float, interval: float = 1.0
) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    entries: List[Dict[str, Any]] = []
    for i in range(count):
        entries.append(
            {
                "timestamp": start_ts + i * interval,
                "battery_level": rng.randint(0, 100),
                "battery_status": rng.choice(["charging", "discharging", "full"]),
                "temperature": round(rng.uniform(20.0, 45.0), 2),
            }
        )
    return entries


def _batches(entries: List[Dict[str, Any]], batch_size: int) -> List[List[Dict[str, Any]]]:
    return [entries[i : i + batch_size] for i in range(0, len(entries), batch_size)]


async def _push(table: str, device_id: str, entries: List[Dict[str, Any]], batch_size: int) -> int:
    async with StoreService.from_settings(get_settings()) as service:
        tasks = [
            service.router.dispatch(
                INSERT_DATA,
                {"device_id": device_id, "table": table, "data": json.dumps(batch)},
            )
            for batch in _batches(entries, batch_size)
        ]
        results = await asyncio.gather(*tasks)
    return sum(result.get("affected", 0) for result in results)


@app.command()
def main(
    table: str = typer.Option("battery", "--table", "-t", help="Target table."),
    device_id: str = typer.Option(
        None, "--device-id", "-d", help="Device UUID (random when omitted)."
    ),
    rows: int = typer.Option(1_000, "--rows", "-r", help="Number of entries to generate."),
    batch_size: int = typer.Option(100, "--batch-size", "-b", help="Entries per insert message."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
) -> None:
    """
    Generate entries for one device and insert them in batches.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    device = device_id or str(uuid.uuid4())

    entries = _generate_entries(rows, seed=seed, start_ts=time.time())
    start = time.perf_counter()
    inserted = asyncio.run(_push(table, device, entries, batch_size))
    duration = time.perf_counter() - start
    typer.echo(
        f"Inserted {inserted:,}/{rows:,} entries for {device} into '{table}' "
        f"in {duration:.2f}s ({rows / duration:,.0f} rows/s)."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
