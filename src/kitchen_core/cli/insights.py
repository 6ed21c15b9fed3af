"""Mistake insight CLI command.

Mines the persisted remake log for recurring item/station problems and
prints the insights with a one-line summary.
"""

import asyncio
import json
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from kitchen_core.config import MiningConfig, load_settings
from kitchen_core.db.history import KitchenLogDB
from kitchen_core.monitor.mistakes import detect_patterns, summarize_insights
from kitchen_core.types import Severity, utc_now


def show_insights(
    window_minutes: int = typer.Option(
        None, "--window", "-w", help="Trailing window in minutes (default from settings)"
    ),
    min_occurrences: int = typer.Option(
        None, "--min", help="Remakes needed before a pattern is reported"
    ),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    db_path: Path = typer.Option(None, "--db", help="Path to kitchen database"),
) -> None:
    """Show recurring remake patterns from the remake log."""
    settings = load_settings()
    base = settings.mining_config()
    config = MiningConfig(
        window=timedelta(minutes=window_minutes) if window_minutes else base.window,
        min_occurrences=min_occurrences or base.min_occurrences,
        critical_occurrences=base.critical_occurrences,
    )

    async def _show() -> None:
        now = utc_now()
        async with KitchenLogDB(db_path or settings.db_path) as db:
            entries = await db.list_remakes(since=now - config.window)

        insights = detect_patterns(entries, now, config)

        if json_output:
            print(json.dumps([i.to_dict() for i in insights], indent=2, default=str))
            return

        console = Console()
        if not insights:
            console.print(
                f"No recurring remakes in the last {config.window.total_seconds() / 60:.0f} minutes "
                f"({len(entries)} remake(s) logged)"
            )
            return

        table = Table(title="Mistake Insights")
        table.add_column("Severity")
        table.add_column("Item", style="cyan")
        table.add_column("Station")
        table.add_column("Count", justify="right")
        table.add_column("Reasons")
        table.add_column("Suggestion")

        for i in insights:
            severity = (
                f"[red]{i.severity.value}[/red]"
                if i.severity is Severity.CRITICAL
                else f"[yellow]{i.severity.value}[/yellow]"
            )
            table.add_row(
                severity,
                i.item_name,
                i.station,
                str(i.remake_count),
                ", ".join(f"{reason.label} x{count}" for reason, count in i.reason_breakdown),
                i.suggestion,
            )

        console.print(table)

        summary = summarize_insights(insights)
        line = (
            f"{summary.total_remakes} remakes in patterns; most problematic: "
            f"{summary.most_problematic}; worst station: {summary.worst_station}"
        )
        if summary.allergy_issue:
            line += " [bold red](allergy-related remakes present)[/bold red]"
        console.print(line)

    asyncio.run(_show())
