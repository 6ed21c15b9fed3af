"""Kitchen CLI - kitchen display engine for multi-station kitchens."""

import logging

import typer
from rich.logging import RichHandler

from kitchen_core.cli.demo import run_demo
from kitchen_core.cli.history import history_app
from kitchen_core.cli.insights import show_insights

app = typer.Typer(
    name="kitchen",
    help="Kitchen display engine: ticket lifecycle, bottlenecks and remake insights",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(history_app, name="history")
app.command("demo")(run_demo)
app.command("insights")(show_insights)


@app.callback()
def configure(
    log_level: str = typer.Option(
        "INFO", "--log-level", "-l", envvar="KITCHEN_LOG_LEVEL", help="Logging level"
    ),
) -> None:
    """Configure logging once for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
