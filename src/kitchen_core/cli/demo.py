"""Demo CLI command.

Runs the full kitchen against simulated intake:
- TicketSimulator manufactures tickets every cycle
- DemoCrew plays station operators (start, bump, hand off, remake)
- DetectionLoop refreshes priorities, alerts and insights and flushes
  remakes, handoffs and completed tickets to the history database

Time runs accelerated (one real second is one kitchen minute by default)
so tickets age and bottlenecks form within a short demo.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from kitchen_core.config import load_settings
from kitchen_core.db.history import KitchenLogDB
from kitchen_core.demo.crew import AcceleratedClock, DemoCrew
from kitchen_core.demo.simulator import TicketSimulator
from kitchen_core.engine import DetectionResult, KitchenEngine
from kitchen_core.monitor.loop import DetectionLoop
from kitchen_core.monitor.mistakes import RemakeLog
from kitchen_core.priority import urgency_level
from kitchen_core.types import Severity

_URGENCY_STYLE = {"late": "red", "critical": "magenta", "warning": "yellow", "ok": "green"}


def _render(console: Console, engine: KitchenEngine, result: DetectionResult, cycle: int) -> None:
    now = engine.last_refresh or engine.clock()
    console.rule(f"Cycle {cycle} - {now.strftime('%H:%M')}")

    queue = Table(title="Next Up", show_lines=False)
    queue.add_column("Order", style="cyan")
    queue.add_column("Priority")
    queue.add_column("Urgency")
    queue.add_column("Why")
    for ticket, score in engine.prioritized_queue(now)[:5]:
        urgency = urgency_level(ticket, now, engine.load.late_threshold_minutes)
        queue.add_row(
            ticket.order_number,
            score.level.value,
            f"[{_URGENCY_STYLE[urgency]}]{urgency}[/{_URGENCY_STYLE[urgency]}]",
            score.explanation,
        )
    console.print(queue)

    for alert in result.alerts[:3]:
        color = "red" if alert.severity is Severity.CRITICAL else "yellow"
        console.print(
            f"[{color}]{alert.message}[/{color}] "
            f"(backlog {alert.backlog}/{alert.threshold}, avg {alert.avg_age_minutes:.0f}m): "
            f"{alert.suggestion}"
        )
    for insight in result.insights[:3]:
        console.print(f"[bold]Insight:[/bold] {insight.suggestion}")


def run_demo(
    cycles: int = typer.Option(30, "--cycles", "-c", help="Cycles to run (0 = until Ctrl+C)"),
    interval: float = typer.Option(1.0, "--interval", "-i", help="Seconds between cycles"),
    speed: float = typer.Option(60.0, "--speed", help="Kitchen minutes per real minute"),
    seed: int = typer.Option(None, "--seed", help="Seed for a reproducible demo"),
    tickets_per_cycle: int = typer.Option(1, "--tickets", "-t", help="New tickets per cycle"),
    db_path: Path = typer.Option(None, "--db", help="Path to kitchen database"),
) -> None:
    """Run the kitchen against simulated intake and a simulated crew."""
    settings = load_settings()
    console = Console()
    clock = AcceleratedClock(speed=speed)

    async def _run() -> None:
        async with KitchenLogDB(db_path or settings.db_path) as db:
            history = await db.list_remakes(since=clock() - settings.mining_config().window)
            engine = KitchenEngine.from_settings(
                settings, clock=clock, remake_log=RemakeLog(history)
            )
            crew = DemoCrew(engine, seed=seed)
            simulator = TicketSimulator(
                seed=seed, tickets_per_poll=tickets_per_cycle, clock=clock
            )

            def on_cycle(result: DetectionResult) -> None:
                _render(console, engine, result, loop.cycles)
                crew.work()
                if cycles and loop.cycles >= cycles:
                    loop.stop()

            loop = DetectionLoop(
                engine,
                interval_seconds=interval,
                source=simulator,
                sink=db,
                on_cycle=on_cycle,
            )
            await loop.run()

            summary = engine.performance()
            console.print(
                f"Completed {summary.completed_count} ticket(s), "
                f"avg {summary.avg_ticket_minutes:.0f} min, {summary.late_count} late"
            )

    asyncio.run(_run())
