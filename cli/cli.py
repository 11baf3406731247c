"""Operator CLI for the trainer core.

Runs the weekly review, catch-up regeneration and the review scheduler
against the configured database, outside any web layer.
"""

import asyncio
import json

import typer
from apscheduler.schedulers.blocking import BlockingScheduler
from loguru import logger
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from trainer.calendar.catch_up import check_and_run_catch_up_review
from trainer.calendar.scheduler import regenerate_weekly_calendar
from trainer.config.settings import settings
from trainer.core.errors import TrainerError
from trainer.core.logger import setup_logger
from trainer.db.models import Base
from trainer.db.session import check_database_connection, get_engine
from trainer.programs.service import get_active_program
from trainer.review.batch import run_weekly_review_batch
from trainer.review.scheduler import start_weekly_review_scheduler
from trainer.review.service import run_weekly_review
from trainer.stats.service import calculate_weekly_stats, get_current_week_bounds
from trainer.tracking.service import list_history

# Initialize logger
setup_logger(level=settings.log_level, log_file=settings.log_file)

console = Console()

app = typer.Typer(
    name="trainer-cli",
    help="Trainer CLI - weekly review, calendar and history tools",
    add_completion=False,
)


def _print_json(data: object) -> None:
    console.print(JSON(json.dumps(data, default=str)))


@app.command()
def init_db() -> None:
    """Create all tables in the configured database."""
    Base.metadata.create_all(bind=get_engine())
    console.print(Panel(Text("Database tables created", style="bold green"), border_style="green"))


@app.command()
def check_db() -> None:
    """Verify the configured database is reachable."""
    try:
        check_database_connection()
    except Exception as e:
        console.print(Panel(Text("Database connection failed", style="bold red"), subtitle=str(e), border_style="red"))
        raise typer.Exit(1) from e
    db_type = "PostgreSQL" if "postgres" in settings.database_url.lower() else "SQLite"
    console.print(Panel(Text(f"{db_type} connection OK", style="bold green"), border_style="green"))


@app.command()
def weekly_review(
    user_id: str | None = typer.Option(None, "--user-id", help="Review a single user instead of all active users"),
) -> None:
    """Run the weekly program review for one user or the whole batch."""
    try:
        if user_id:
            result = asyncio.run(run_weekly_review(user_id))
        else:
            result = asyncio.run(run_weekly_review_batch())
    except TrainerError as e:
        console.print(f"[bold red]✗ Weekly review failed:[/bold red] {e}")
        logger.exception("Weekly review failed")
        raise typer.Exit(code=1) from e
    _print_json(result)


@app.command()
def catch_up(user_id: str = typer.Option(..., "--user-id", help="User to check")) -> None:
    """Regenerate the calendar if the user has no upcoming workouts."""
    result = check_and_run_catch_up_review(user_id)
    style = "green" if result["regenerated"] else "yellow"
    console.print(f"[{style}]{json.dumps(result)}[/{style}]")


@app.command()
def regenerate_calendar(user_id: str = typer.Option(..., "--user-id", help="User whose calendar to rebuild")) -> None:
    """Rebuild the projected week from the user's active program."""
    program = get_active_program(user_id)
    if program is None:
        console.print(f"[yellow]No active program for user {user_id}[/yellow]")
        raise typer.Exit(1)
    _print_json(regenerate_weekly_calendar(user_id, program.document))


@app.command()
def week_stats(user_id: str = typer.Option(..., "--user-id", help="User to summarize")) -> None:
    """Print this week's training stats."""
    week_start, week_end = get_current_week_bounds()
    _print_json(calculate_weekly_stats(user_id, week_start, week_end))


@app.command()
def history(
    user_id: str = typer.Option(..., "--user-id", help="User whose sessions to list"),
    limit: int = typer.Option(20, "--limit", "-n", help="Sessions per page (1-50)"),
    cursor: str | None = typer.Option(None, "--cursor", help="started_at of the last item of the previous page"),
) -> None:
    """List finished workout sessions, newest first."""
    page = list_history(user_id, limit=limit, cursor=cursor)
    table = Table(title=f"Workout history for {user_id}")
    for column in ("Started", "Title", "Status", "Exercises", "Volume", "RPE"):
        table.add_column(column)
    for item in page["items"]:
        table.add_row(
            item["started_at"] or "-",
            item["title"],
            item["status"],
            f"{item['completed_exercise_count']}/{item['exercise_count']}",
            str(item["total_volume"]),
            str(item["session_rpe"] or "-"),
        )
    console.print(table)
    if page["next_cursor"]:
        console.print(f"[dim]Next page: --cursor {page['next_cursor']}[/dim]")


@app.command()
def scheduler(
    cron: str | None = typer.Option(None, "--cron", help="Override WEEKLY_REVIEW_CRON"),
) -> None:
    """Run the weekly review on its cron schedule until interrupted."""
    console.print(f"[cyan]Weekly review scheduler running ({cron or settings.weekly_review_cron}, UTC)[/cyan]")
    try:
        start_weekly_review_scheduler(BlockingScheduler(timezone="UTC"), cron=cron)
    except (KeyboardInterrupt, SystemExit):
        logger.info("[SCHEDULER] Stopped weekly review scheduler")


if __name__ == "__main__":
    app()
