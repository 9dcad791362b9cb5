"""
Command-line interface for drilling cards.
"""

import logging
from typing import Mapping, Optional

from rich.console import Console
from rich.panel import Panel

from drillcore.analytics import ResponseLog
from drillcore.models import Card, DrillItem, Rating
from drillcore.review_manager import DrillSessionManager

logger = logging.getLogger(__name__)
console = Console()


def _get_user_rating() -> int:
    """
    Prompt until the learner enters a rating between 1 and 4.
    """
    while True:
        try:
            rating_str = console.input(
                "[bold]Rating (1:Again, 2:Hard, 3:Good, 4:Easy): [/bold]"
            )
            rating = int(rating_str)
            if 1 <= rating <= 4:
                return rating
            console.print(
                "[bold red]Invalid rating. Please enter a number between 1 and 4.[/bold red]"
            )
        except (ValueError, TypeError):
            console.print(
                "[bold red]Invalid input. Please enter a number.[/bold red]"
            )


def _display_card(card: Card, drill: Optional[DrillItem]) -> str:
    """
    Show the prompt, read the learner's answer, then reveal the expected one.

    Returns:
        str: The answer the learner typed.
    """
    prompt = drill.prompt if drill and drill.prompt else card.id
    console.print(Panel(prompt, title="Translate", border_style="green"))
    answer = console.input("[italic]Your answer: [/italic]")
    expected = drill.answer if drill and drill.answer else "(no answer on file)"
    console.print(Panel(expected, title="Expected", border_style="blue"))
    return answer


def start_review_flow(
    manager: DrillSessionManager,
    drills: Mapping[str, DrillItem],
    response_log: Optional[ResponseLog] = None,
    limit: Optional[int] = None,
) -> int:
    """
    Runs one drill session in the terminal.

    Args:
        manager: The learner's DrillSessionManager, with cards loaded.
        drills: Drill text keyed by id.
        response_log: Optional log that every answer is recorded in.
        limit: Maximum number of cards; defaults to the configured session size.

    Returns:
        int: Number of cards reviewed.
    """
    console.print("[bold cyan]Starting drill session...[/bold cyan]")
    queue = manager.build_session_queue(max_cards=limit)
    due_cards_count = len(queue)
    if due_cards_count == 0:
        console.print("[bold yellow]No cards are due for review.[/bold yellow]")
        console.print("[bold cyan]Drill session finished.[/bold cyan]")
        return 0

    reviewed_count = 0
    while reviewed_count < due_cards_count:
        card = manager.get_next_card()
        if card is None:
            break
        reviewed_count += 1
        console.rule(f"[bold]Card {reviewed_count} of {due_cards_count}[/bold]")

        drill = drills.get(card.id)
        if response_log is not None:
            response_log.start_prompt_timer()
        answer = _display_card(card, drill)
        rating = _get_user_rating()

        error_info = {"type": "self_reported"} if rating < Rating.Good else None
        result = manager.process_review(card.id, rating, error_info=error_info)
        if result is None:
            console.print("[bold red]Card no longer exists; skipping.[/bold red]")
            continue

        if response_log is not None:
            response_log.log_response(
                card_id=card.id,
                unit=card.unit,
                prompt=drill.prompt if drill else None,
                expected=drill.answer if drill else None,
                user_answer=answer,
                correct=rating >= Rating.Good,
                grade=rating,
                errors=[error_info] if error_info else [],
                card_state=int(result.card.state),
                card_reps=result.card.reps,
                card_lapses=result.card.lapses,
            )

        console.print(
            f"[green]Reviewed.[/green] Next due in "
            f"[bold]{result.interval_display}[/bold]."
        )
        if not manager.persistence_ok:
            console.print(
                "[yellow]Progress may not have saved.[/yellow]"
            )
        console.print("")

    stats = manager.session_stats
    console.print(
        f"[bold cyan]Drill session finished. "
        f"{stats.correct}/{stats.reviewed} correct.[/bold cyan]"
    )
    return reviewed_count
