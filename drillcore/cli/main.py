"""
CLI entry point for drillcore.
"""

# Standard library imports
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

# Third-party imports
import typer
from rich.console import Console
from rich.table import Table

# Local application imports
from drillcore.analytics import ResponseLog
from drillcore.cli.review_ui import start_review_flow
from drillcore.exceptions import DrillFileError, StorageError
from drillcore.models import CardState, DrillItem
from drillcore.parser import drill_metadata, load_drill_file
from drillcore.review_manager import DrillSessionManager
from drillcore.storage import DuckDBKeyValueStore


console = Console()

app = typer.Typer(
    name="drillcore",
    help="Drillcore: spaced-repetition scheduling for sentence drills.",
    add_completion=False,
    rich_markup_mode="markdown",
)


# ---------------------------------------------------------------------------
# Helpers for resolving the --db path (no defaults, DRILLCORE_DB envvar)
# ---------------------------------------------------------------------------


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from CLI flag or DRILLCORE_DB envvar. Exits on missing."""
    if db is not None:
        return db
    env_val = os.environ.get("DRILLCORE_DB")
    if env_val:
        return Path(env_val)
    console.print(
        "[bold red]Error: --db is required "
        "(or set the DRILLCORE_DB environment variable).[/bold red]"
    )
    raise typer.Exit(code=1)


# Common typer options reused across commands
_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB database file. "
    "Falls back to DRILLCORE_DB env var.",
    envvar="DRILLCORE_DB",
)

_drill_file_argument = typer.Argument(  # noqa: B008
    ..., help="YAML file with a top-level 'drills' list."
)


def _load_drills(drill_file: Path) -> List[DrillItem]:
    """
    Load drills from a YAML file, printing any per-entry errors.

    Exits with code 1 if the file itself cannot be used, or if it yields no
    valid drills.
    """
    try:
        drills, errors = load_drill_file(drill_file)
    except DrillFileError as e:
        console.print(f"[bold red]Error loading drills:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if errors:
        console.print(
            "[bold red]Errors encountered while loading drills:[/bold red]"
        )
        for error in errors:
            console.print(f"- {error}")

    if not drills:
        console.print("[yellow]No valid drills found.[/yellow]")
        raise typer.Exit(code=1)
    return drills


# ---------------------------------------------------------------------------
# Init
# ---------------------------------------------------------------------------


@app.command()
def init(
    drill_file: Path = _drill_file_argument,
    db: Optional[Path] = _db_option,
):
    """
    Create a New card for every drill in DRILL_FILE that has none yet.

    Existing cards keep their scheduling state.
    """
    db_path = _resolve_db_path(db)
    drills = _load_drills(drill_file)
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            manager.initialize_session()
            created = manager.initialize_cards(drills)
            console.print(
                f"[bold green]Created {created} new cards[/bold green] "
                f"({len(manager.store)} total)."
            )
            if not manager.persistence_ok:
                console.print(
                    "[yellow]Warning: cards could not be saved.[/yellow]"
                )
                raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except StorageError as e:
        console.print(f"[bold red]Storage Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(
            "[bold red]An unexpected error occurred "
            f"during init:[/bold red] {e}"
        )
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@app.command()
def review(
    drill_file: Path = _drill_file_argument,
    db: Optional[Path] = _db_option,
    limit: Optional[int] = typer.Option(  # noqa: B008
        None,
        "--limit",
        "-n",
        min=1,
        help="Maximum number of cards in this session.",
    ),
):
    """Start an interactive drill session over the cards in the database."""
    db_path = _resolve_db_path(db)
    drills = _load_drills(drill_file)
    drills_by_id: Dict[str, DrillItem] = {d.id: d for d in drills}
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            manager.initialize_session()
            manager.load_drill_meta(drill_metadata(drills))

            response_log = ResponseLog(store)
            response_log.load()

            start_review_flow(manager, drills_by_id, response_log, limit=limit)
    except StorageError as e:
        console.print(f"[bold red]Storage Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(
            "[bold red]An unexpected error occurred "
            f"during review:[/bold red] {e}"
        )
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Stats helpers & command
# ---------------------------------------------------------------------------


def _display_overall_stats(cons: Console, stats_data: dict):
    """
    Prints totals and memory averages as a two-column table.

    Parameters:
        stats_data (dict): Output of DrillSessionManager.get_stats.
    """
    overall_table = Table(title="Overall Stats", show_header=False)
    overall_table.add_column("Metric", style="cyan")
    overall_table.add_column("Value", style="magenta")
    overall_table.add_row("Total Cards", str(stats_data["total"]))
    overall_table.add_row("Due Now", str(stats_data["due_today"]))
    overall_table.add_row("Mastered", str(stats_data["mastered"]))
    overall_table.add_row("Total Reviews", str(stats_data["total_reviews"]))
    overall_table.add_row("Total Lapses", str(stats_data["total_lapses"]))
    overall_table.add_row(
        "Avg Stability (days)", f"{stats_data['avg_stability']:.2f}"
    )
    overall_table.add_row(
        "Avg Difficulty", f"{stats_data['avg_difficulty']:.2f}"
    )
    cons.print(overall_table)


def _display_state_stats(cons: Console, stats_data: dict):
    """Render card counts per learning state."""
    states_table = Table(title="Card States")
    states_table.add_column("State", style="cyan")
    states_table.add_column("Count", style="magenta")
    for state in CardState:
        states_table.add_row(state.name, str(stats_data[state.name.lower()]))
    cons.print(states_table)


def _display_problem_cards(cons: Console, manager: DrillSessionManager):
    problem_cards = manager.get_problematic_cards()
    if not problem_cards:
        return
    table = Table(title="Most Errors")
    table.add_column("Card", style="cyan")
    table.add_column("Pattern", style="yellow")
    table.add_column("Errors", style="magenta")
    table.add_column("Lapses", style="magenta")
    for card in problem_cards:
        table.add_row(
            card.id,
            card.pos_pattern or "-",
            str(len(card.error_history)),
            str(card.lapses),
        )
    cons.print(table)


@app.command()
def stats(
    db: Optional[Path] = _db_option,
):
    """Display statistics about the cards in the database."""
    db_path = _resolve_db_path(db)
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            manager.store.load()
            stats_data = manager.get_stats()

            _display_overall_stats(console, stats_data)

            if not stats_data["total"]:
                console.print("[yellow]No cards found in the database.[/yellow]")
                return

            _display_state_stats(console, stats_data)
            _display_problem_cards(console, manager)

    except StorageError as e:
        console.print(f"[bold]A storage error occurred: {e}[/bold]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(
            "[bold]An unexpected error occurred "
            f"while fetching stats: {e}[/bold]"
        )
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Due
# ---------------------------------------------------------------------------


@app.command()
def due(
    db: Optional[Path] = _db_option,
):
    """List the cards the next session would draw, in order."""
    db_path = _resolve_db_path(db)
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            queue = manager.initialize_session()
            if not queue:
                console.print("[green]No cards are due.[/green]")
                return

            now = datetime.now(timezone.utc)
            table = Table(title=f"Next Session ({len(queue)} cards)")
            table.add_column("Card", style="cyan")
            table.add_column("State", style="yellow")
            table.add_column("Pattern")
            table.add_column("Commonality", style="magenta")
            table.add_column("Overdue", style="magenta")
            for card in queue:
                overdue = (
                    "-"
                    if card.state == CardState.New
                    else f"{(now - card.due).total_seconds() / 3600:.1f}h"
                )
                table.add_row(
                    card.id,
                    card.state.name,
                    card.pos_pattern or "-",
                    f"{card.commonality:.2f}",
                    overdue,
                )
            console.print(table)
    except StorageError as e:
        console.print(f"[bold red]Storage Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------


@app.command()
def reset(
    card_id: Optional[str] = typer.Argument(  # noqa: B008
        None, help="Id of the card to reset."
    ),
    all_cards: bool = typer.Option(
        False, "--all", help="Reset every card to New."
    ),
    db: Optional[Path] = _db_option,
):
    """Return one card, or every card with --all, to the New state."""
    if (card_id is None) == (not all_cards):
        console.print(
            "[bold red]Error: give either a CARD_ID or --all.[/bold red]"
        )
        raise typer.Exit(code=1)

    db_path = _resolve_db_path(db)
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            manager.store.load()
            if all_cards:
                count = manager.reset_all_cards()
                console.print(f"[green]Reset {count} cards.[/green]")
                return
            if manager.reset_card(card_id) is None:
                console.print(
                    f"[bold red]Error: no card with id '{card_id}'.[/bold red]"
                )
                raise typer.Exit(code=1)
            console.print(f"[green]Reset card '{card_id}'.[/green]")
    except typer.Exit:
        raise
    except StorageError as e:
        console.print(f"[bold red]Storage Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


# ---------------------------------------------------------------------------
# Graduation
# ---------------------------------------------------------------------------


@app.command()
def graduation(
    drill_file: Path = _drill_file_argument,
    db: Optional[Path] = _db_option,
):
    """Show how many cards have graduated out of their pattern groups."""
    db_path = _resolve_db_path(db)
    drills = _load_drills(drill_file)
    try:
        with DuckDBKeyValueStore(db_path) as store:
            manager = DrillSessionManager(store)
            manager.store.load()
            manager.load_drill_meta(drill_metadata(drills))
            grad = manager.get_graduation_stats()
    except StorageError as e:
        console.print(f"[bold red]Storage Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(title="Graduation", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Total Cards", str(grad["total"]))
    table.add_row("Graduated", str(grad["graduated"]))
    table.add_row("Active", str(grad["active"]))
    table.add_row("Pattern Groups", str(grad["patterns"]))
    table.add_row("Graduated %", f"{grad['percent_graduated']}%")
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """
    Run the CLI application.

    If an unexpected exception occurs, print a bold red error message to the console and exit the process with status code 1.
    """
    try:
        app()
    except Exception as e:
        console.print(f"[bold red]UNEXPECTED ERROR: {e}[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
