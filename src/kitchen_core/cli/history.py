"""History CLI commands.

This module provides CLI commands for reading the kitchen history database:
- tickets: Archived (completed) tickets
- remakes: Remake log entries
- handoffs: Handoff log entries

Per project patterns:
- Use typer.Typer() subcommand group
- asyncio.run() to execute async database operations in sync CLI commands
- Rich Table for formatted output, JSON for automation
"""

import asyncio
import json
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from kitchen_core.config import load_settings
from kitchen_core.db.history import KitchenLogDB
from kitchen_core.notes import kitchen_lines
from kitchen_core.types import utc_now

history_app = typer.Typer(help="Browse kitchen history")


def _get_db_path(db_path: Path | None) -> Path:
    """Resolve the database path from the option or settings."""
    return db_path or load_settings().db_path


def _fmt_minutes(value: float | None) -> str:
    return f"{value:.0f}m" if value is not None else "-"


@history_app.command("tickets")
def list_tickets(
    station: str = typer.Option(None, "--station", "-s", help="Only tickets for this station"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum tickets to show"),
    details: bool = typer.Option(False, "--details", "-d", help="Show kitchen lines per item"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(None, "--db", help="Path to kitchen database"),
) -> None:
    """List archived (completed) tickets."""

    async def _list() -> None:
        async with KitchenLogDB(_get_db_path(db_path)) as db:
            tickets = await db.list_archived(station=station, limit=limit)

        if json_output:
            print(json.dumps([t.to_dict() for t in tickets], indent=2, default=str))
            return

        console = Console()
        table = Table(title="Completed Tickets")
        table.add_column("Order", style="cyan")
        table.add_column("Channel")
        table.add_column("Stations")
        table.add_column("Items", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Handoff")
        table.add_column("Completed")

        for t in tickets:
            duration = (
                (t.completed_at - t.started_at).total_seconds() / 60
                if t.started_at and t.completed_at
                else None
            )
            late = t.completed_at is not None and t.completed_at > t.promised_at
            table.add_row(
                t.order_number,
                t.channel.value,
                ", ".join(t.station_assignments),
                str(sum(item.quantity for item in t.items)),
                f"[red]{_fmt_minutes(duration)}[/red]" if late else _fmt_minutes(duration),
                f"{t.handoff_method.value if t.handoff_method else '-'} by {t.handoff_by or '-'}",
                t.completed_at.strftime("%Y-%m-%d %H:%M:%S") if t.completed_at else "-",
            )

        console.print(table)

        if details:
            for t in tickets:
                console.print(f"[bold]{t.order_number}[/bold]")
                for item in t.items:
                    lines = kitchen_lines(item)
                    suffix = f"  ({'; '.join(lines)})" if lines else ""
                    console.print(f"  {item.quantity}x {item.name} @ {item.station}{suffix}")

    asyncio.run(_list())


@history_app.command("remakes")
def list_remakes(
    since_minutes: int = typer.Option(
        None, "--since", help="Only remakes from the last N minutes"
    ),
    station: str = typer.Option(None, "--station", "-s", help="Only remakes at this station"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(None, "--db", help="Path to kitchen database"),
) -> None:
    """List remake log entries."""

    async def _list() -> None:
        since = utc_now() - timedelta(minutes=since_minutes) if since_minutes else None
        async with KitchenLogDB(_get_db_path(db_path)) as db:
            entries = await db.list_remakes(since=since, station=station)

        if json_output:
            print(json.dumps([e.to_dict() for e in entries], indent=2, default=str))
            return

        console = Console()
        table = Table(title="Remake Log")
        table.add_column("Time")
        table.add_column("Item", style="cyan")
        table.add_column("Station")
        table.add_column("Reason", style="yellow")
        table.add_column("Ticket")
        table.add_column("By")

        for e in entries:
            table.add_row(
                e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                e.item_name,
                e.station,
                e.reason.label,
                e.ticket_id,
                e.performed_by or "-",
            )

        console.print(table)

    asyncio.run(_list())


@history_app.command("handoffs")
def list_handoffs(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum handoffs to show"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(None, "--db", help="Path to kitchen database"),
) -> None:
    """List handoff log entries, newest first."""

    async def _list() -> None:
        async with KitchenLogDB(_get_db_path(db_path)) as db:
            entries = await db.list_handoffs(limit=limit)

        if json_output:
            print(json.dumps([e.to_dict() for e in entries], indent=2, default=str))
            return

        console = Console()
        table = Table(title="Handoffs")
        table.add_column("Time")
        table.add_column("Order", style="cyan")
        table.add_column("Method", style="green")
        table.add_column("Table", justify="center")
        table.add_column("By")

        for e in entries:
            table.add_row(
                e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                e.order_number,
                e.method.value,
                e.table_number or "-",
                e.handed_off_by,
            )

        console.print(table)

    asyncio.run(_list())
