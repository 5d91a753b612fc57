"""
Typer CLI for the VMQ practice engine.

Commands:
    vmq record MODULE --correct/--wrong   - Record one answer
    vmq stats [MODULE]                    - Show mastery, level and XP
    vmq due [--module MODULE]             - List spaced-repetition items due now
    vmq plan MODULE --fresh ID ...        - Plan the next question
    vmq reset MODULE                      - Zero a module's stats

Usage:
    vmq --help
    vmq record keys --correct --time-ms 1800
    vmq record intervals --wrong --item m3 --expected m3 --chosen M3
    vmq plan keys --fresh G --fresh D --fresh A
    vmq --db sqlite:///practice.db stats
"""

from __future__ import annotations

import sys
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from vmq.core.collaborators import LevelChanged, RecordingNotificationSink
from vmq.core.errors import InvalidArgument
from vmq.delivery.state_store import SqlStateStore
from vmq.study.practice_service import PracticeEngine

app = typer.Typer(
    help="VMQ practice engine: adaptive difficulty, mastery, spaced review and XP",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None, "--db", help="SQLAlchemy URL of the state store (default: from config)"
    ),
):
    """VMQ practice engine CLI."""
    ctx.obj = {"db": db}


# ========================================
# Context Builder
# ========================================


class CLIContext:
    """Builds the engine over the configured SQL store."""

    def __init__(self, db: str | None = None):
        self.settings = get_settings()
        self.store = SqlStateStore(db or self.settings.resolved_database_url())
        self.notifications = RecordingNotificationSink()
        self.engine = PracticeEngine.from_settings(
            self.settings, storage=self.store, notifier=self.notifications
        )

    def known_modules(self) -> list[str]:
        """Modules with persisted stats."""
        return [key.split(":", 1)[1] for key in self.store.keys("stats:")]

    def close(self) -> None:
        self.store.close()


def _context(ctx: typer.Context) -> CLIContext:
    return CLIContext((ctx.obj or {}).get("db"))


# ========================================
# Commands
# ========================================


@app.command("record")
def record(
    ctx: typer.Context,
    module: str = typer.Argument(..., help="Skill module (keys, intervals, rhythm, ...)"),
    correct: bool = typer.Option(True, "--correct/--wrong", help="Answer outcome"),
    time_ms: int = typer.Option(0, "--time-ms", "-t", min=0, help="Response time in ms"),
    hint: bool = typer.Option(False, "--hint", help="A hint was used"),
    item: Optional[str] = typer.Option(None, "--item", "-i", help="Content id to schedule for review"),
    expected: Optional[str] = typer.Option(None, "--expected", help="Correct answer"),
    chosen: Optional[str] = typer.Option(None, "--chosen", help="Answer given"),
) -> None:
    """Record one answer."""
    cli = _context(ctx)
    try:
        outcome = cli.engine.submit_answer(
            module, correct, time_ms, used_hint=hint, item_id=item,
            expected=expected, chosen=chosen,
        )
    except InvalidArgument as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        cli.close()

    color = "green" if correct else "yellow"
    rprint(f"[{color}]{outcome.reward.feedback_message}[/{color}]")

    stats = outcome.stats
    rprint(
        f"  {stats.module}: {stats.correct}/{stats.total} "
        f"({outcome.mastery.accuracy_pct}%, grade {outcome.mastery.grade.value}) "
        f"streak {stats.streak}, combo x{stats.combo_multiplier:.1f}"
    )

    for change in cli.notifications.of_type(LevelChanged):
        rprint(f"[bold cyan]{change.toast_message}[/bold cyan]")

    if outcome.review is not None:
        rprint(
            f"  [dim]Next review of {outcome.review.content_id} in "
            f"{outcome.review.interval_days:g} day(s)[/dim]"
        )
    if outcome.xp is not None and outcome.xp.leveled_up:
        rprint(f"[bold magenta]Level {outcome.xp.new_level}! +{outcome.xp.bonus_xp} bonus XP[/bold magenta]")


@app.command("stats")
def stats(
    ctx: typer.Context,
    module: Optional[str] = typer.Argument(None, help="Show a single module"),
) -> None:
    """Show mastery, difficulty level and XP."""
    cli = _context(ctx)
    try:
        modules = [module] if module else cli.known_modules()
        dashboard = cli.engine.dashboard(modules)
    except InvalidArgument as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        cli.close()

    if not dashboard.modules:
        rprint("[yellow]No answers recorded yet.[/yellow]")
    else:
        table = Table(title="Module Mastery", show_header=True)
        table.add_column("Module", style="cyan")
        table.add_column("Answers", justify="right")
        table.add_column("Accuracy", justify="right")
        table.add_column("Grade", justify="center")
        table.add_column("Status")
        table.add_column("Level")
        table.add_column("Avg ms", justify="right", style="dim")
        table.add_column("Due", justify="right")

        for report in dashboard.modules:
            grade = report.mastery.grade
            table.add_row(
                report.module,
                str(report.mastery.total),
                f"{report.mastery.accuracy_pct}%",
                f"[{grade.color}]{grade.value}[/{grade.color}]",
                report.mastery.status,
                report.difficulty_level,
                f"{report.avg_response_time_ms:.0f}",
                str(report.due_reviews) if report.due_reviews else "-",
            )
        console.print(table)

    rprint(
        f"[bold]Level {dashboard.level}[/bold] {dashboard.level_title} · "
        f"{dashboard.xp_total} XP ({dashboard.level_progress_pct}% to next)"
    )
    for rec in dashboard.recommendations:
        style = "red" if rec.priority == "high" else "green"
        rprint(f"  [{style}]{rec.action}[/{style}] {rec.module}: {rec.reason}")


@app.command("due")
def due(
    ctx: typer.Context,
    module: Optional[str] = typer.Option(None, "--module", "-m", help="Restrict to one module"),
) -> None:
    """List items due for review."""
    cli = _context(ctx)
    try:
        items = cli.engine.scheduler.due_items(module)
        overview = cli.engine.scheduler.overview()
    finally:
        cli.close()

    if not items:
        rprint("[green]✓[/green] Nothing due for review")
        return

    table = Table(title=f"Due Reviews ({len(items)})", show_header=True)
    table.add_column("Item", style="cyan")
    table.add_column("Due", style="dim")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Reviews", justify="right")
    table.add_column("Lapses", justify="right", style="red")

    for item in items:
        table.add_row(
            item.item_key,
            item.due_at.strftime("%Y-%m-%d %H:%M") if item.due_at else "-",
            f"{item.interval_days:g}d",
            f"{item.ease_factor:.2f}",
            str(item.reviews),
            str(item.lapses) if item.lapses else "-",
        )
    console.print(table)
    rprint(
        f"[dim]{overview['total_items']} items tracked, "
        f"{overview['total_reviews']} reviews, {overview['accuracy_pct']}% correct[/dim]"
    )


@app.command("plan")
def plan(
    ctx: typer.Context,
    module: str = typer.Argument(..., help="Module to plan for"),
    fresh: Optional[list[str]] = typer.Option(None, "--fresh", "-f", help="Fresh content id (repeatable)"),
) -> None:
    """Plan the next question: difficulty level and review pick."""
    cli = _context(ctx)
    try:
        question = cli.engine.plan_next_question(module, fresh or [])
    except InvalidArgument as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        cli.close()

    rprint(f"[bold]{question.module}[/bold] at [cyan]{question.difficulty_level}[/cyan]")
    if question.due_item_ids:
        rprint(f"  Due: {', '.join(question.due_item_ids)}")
    if question.selection is None:
        rprint("  [yellow]Nothing to serve; generate a new question[/yellow]")
    else:
        rprint(f"  Next: {question.selection.content_id} ({question.selection.source})")


@app.command("reset")
def reset(
    ctx: typer.Context,
    module: str = typer.Argument(..., help="Module to reset"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Zero a module's answer statistics."""
    if not yes and not typer.confirm(f"Reset all stats for {module}?"):
        raise typer.Abort()

    cli = _context(ctx)
    try:
        cli.engine.recorder.reset_module(module)
    except InvalidArgument as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        cli.close()

    rprint(f"[green]✓[/green] Reset {module}")


# ========================================
# Entry Point
# ========================================


def configure_logging(level: str, log_file: str | None = None) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="1 MB", retention=5)


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    app()


if __name__ == "__main__":
    main()
