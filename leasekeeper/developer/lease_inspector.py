#!/usr/bin/env python3
"""
Lease Inspector

Operator tool to look at, or clear, the lease record of a namespace stored
in a NATS KV bucket.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from leasekeeper.domain.enums import LeaseDecision
from leasekeeper.domain.models import LeaseRecord
from leasekeeper.domain.services import LeaseAcquisitionPolicy
from leasekeeper.domain.value_objects import LeaseKey
from leasekeeper.infrastructure.config import KVStoreConfig, NATSConnectionConfig
from leasekeeper.infrastructure.nats_connection import NATSConnection
from leasekeeper.infrastructure.nats_kv_lease_store import NATSKVLeaseStore
from leasekeeper.infrastructure.system_clock import SystemClock

INSPECTOR_ID = "lease-inspector"


def describe_record(record: LeaseRecord | None, now_ms: int, timeout_ms: int) -> dict[str, str]:
    """Summarize a record the way a newly started participant would see it."""
    decision = LeaseAcquisitionPolicy.decide(record, INSPECTOR_ID, now_ms, timeout_ms)
    if record is None:
        return {"state": "vacant", "decision": decision.value}

    acquired = datetime.fromtimestamp(record.acquired_at / 1000, tz=timezone.utc)
    return {
        "state": "stale" if decision is LeaseDecision.CLAIM_EXPIRED else "held",
        "owner": record.owner_id,
        "acquired_at": acquired.isoformat(),
        "age_ms": str(record.age_ms(now_ms)),
        "decision": decision.value,
    }


def render_status(console: Console, key: str, summary: dict[str, str]) -> None:
    style = {"vacant": "yellow", "stale": "red", "held": "green"}[summary["state"]]
    console.print(Panel(f"Lease [bold]{key}[/bold] is {summary['state']}", border_style=style))

    table = Table(title="Lease Record", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field_name, value in summary.items():
        table.add_row(field_name, value)
    console.print(table)


async def _open_store(
    servers: tuple[str, ...], bucket: str
) -> tuple[NATSConnection, NATSKVLeaseStore]:
    connection = NATSConnection(NATSConnectionConfig(servers=list(servers)))
    await connection.connect()
    store = NATSKVLeaseStore(connection, KVStoreConfig(bucket=bucket, create_bucket=False))
    await store.connect()
    return connection, store


@click.group()
@click.option(
    "--servers",
    "-s",
    multiple=True,
    default=("nats://localhost:4222",),
    show_default=True,
    help="NATS server URL (repeatable)",
)
@click.option("--bucket", "-b", default="leasekeeper", show_default=True, help="KV bucket name")
@click.option("--prefix", default="single-owner", show_default=True, help="Storage key prefix")
@click.option("--namespace", "-n", default="my-app", show_default=True, help="Election namespace")
@click.pass_context
def main(
    ctx: click.Context, servers: tuple[str, ...], bucket: str, prefix: str, namespace: str
) -> None:
    """Lease Inspector - inspect single-owner leases in NATS KV."""
    ctx.ensure_object(dict)
    ctx.obj["servers"] = servers
    ctx.obj["bucket"] = bucket
    ctx.obj["key"] = LeaseKey(prefix=prefix, namespace=namespace).key
    ctx.obj["console"] = Console()


@main.command()
@click.option("--timeout-ms", default=15000, show_default=True, help="Lease timeout in ms")
@click.pass_context
def status(ctx: click.Context, timeout_ms: int) -> None:
    """Show the current owner and whether the lease is stale."""
    console: Console = ctx.obj["console"]
    key: str = ctx.obj["key"]

    async def run() -> None:
        connection, store = await _open_store(ctx.obj["servers"], ctx.obj["bucket"])
        try:
            record = await store.get(key)
        finally:
            await connection.disconnect()
        render_status(console, key, describe_record(record, SystemClock().now_ms(), timeout_ms))

    try:
        asyncio.run(run())
    except Exception as e:
        console.print(f"[red]Inspection failed: {e}[/red]")
        sys.exit(1)


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Delete the lease record so the next participant claims it."""
    console: Console = ctx.obj["console"]
    key: str = ctx.obj["key"]

    if not yes and not click.confirm(f"Delete lease {key}?"):
        console.print("Aborted")
        return

    async def run() -> None:
        connection, store = await _open_store(ctx.obj["servers"], ctx.obj["bucket"])
        try:
            await store.delete(key)
        finally:
            await connection.disconnect()

    try:
        asyncio.run(run())
    except Exception as e:
        console.print(f"[red]Clear failed: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]✓ Lease {key} cleared[/green]")


if __name__ == "__main__":
    main()
