"""
Typer CLI for the civicbook interactive element engine.

Commands:
    civicbook db init               - Initialize database tables
    civicbook validate TYPE FILE    - Validate a payload file and print its canonical form
    civicbook elements SECTION      - List a section's interactive elements
    civicbook render SECTION        - Render a section to HTML
    civicbook submit USER ELEMENT FILE - Grade and record a submission
    civicbook responses USER ELEMENT - List a user's responses, newest first
    civicbook progress USER BOOK    - Show a user's progress through a book
    civicbook generate BOOK         - Create default elements for an imported book

Usage:
    civicbook --help
    civicbook validate quiz quiz.json
    civicbook render 12 --output section.html
    civicbook generate 3 --quiz-bank quizzes.json --dry-run
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from civicbook.errors import EngineError

app = typer.Typer(
    help="civicbook: interactive elements, grading and reading progress",
    no_args_is_help=True,
)

db_app = typer.Typer(help="Database management", no_args_is_help=True)
app.add_typer(db_app, name="db")

console = Console()


def configure_logging(level: str | None = None) -> None:
    """Replace loguru's default sink with the configured console (and file) sinks."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format=settings.log_format)
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Interactive element engine for civic-education books."""
    configure_logging("DEBUG" if verbose else None)


def _service():
    from civicbook.service import InteractiveElementService

    return InteractiveElementService()


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {path} is not valid JSON: {e.msg}[/red]")
        raise typer.Exit(1)


def _fail(error: EngineError) -> None:
    console.print(f"[red]{error.kind.value}:[/red] {error.message}")
    for detail in error.details:
        console.print(f"  {detail}", style="dim", markup=False)
    raise typer.Exit(1)


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from civicbook.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@app.command("validate")
def validate_payload(
    element_type: str = typer.Argument(..., help="quiz, reflection, call_to_action, discussion_prompt or poll"),
    payload_file: Path = typer.Argument(..., help="JSON payload file"),
):
    """Validate a payload and print its canonical JSON."""
    from civicbook.schema import normalize_payload

    data = _read_json(payload_file)
    try:
        canonical = normalize_payload(element_type, data)
    except EngineError as e:
        _fail(e)
    rprint("[green]✓[/green] Payload is valid")
    console.print_json(canonical)


@app.command("elements")
def list_elements(section_id: int = typer.Argument(..., help="Section id")):
    """List the interactive elements of a section in display order."""
    elements = _service().list_elements(section_id)
    if not elements:
        console.print(f"[yellow]Section {section_id} has no interactive elements[/yellow]")
        return

    table = Table(title=f"Section {section_id}")
    table.add_column("ID", justify="right")
    table.add_column("Pos", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Completion")
    table.add_column("Points", justify="right")
    table.add_column("Req")
    for element in elements:
        table.add_row(
            str(element.id),
            str(element.position),
            element.element_type,
            element.title,
            element.completion_type,
            str(element.points_value),
            "✓" if element.required else "",
        )
    console.print(table)


@app.command("render")
def render_section(
    section_id: int = typer.Argument(..., help="Section id"),
    output: Path = typer.Option(None, "--output", "-o", help="Write HTML to a file"),
):
    """Render a section's markup with its interactive elements."""
    try:
        html = _service().render_section(section_id)
    except EngineError as e:
        _fail(e)
    if output:
        output.write_text(html, encoding="utf-8")
        rprint(f"[green]✓[/green] Wrote {len(html)} characters to {output}")
    else:
        typer.echo(html)


@app.command("submit")
def submit_response(
    user_id: int = typer.Argument(..., help="User id"),
    element_id: int = typer.Argument(..., help="Element id"),
    submission_file: Path = typer.Argument(..., help="JSON submission file"),
    nonce: str = typer.Option(None, "--nonce", help="Deduplication key for retries"),
):
    """Grade a submission and record it."""
    submission = _read_json(submission_file)
    try:
        result = _service().submit_response(user_id, element_id, submission, nonce=nonce)
    except EngineError as e:
        _fail(e)

    outcome = result.outcome
    color = {"completed": "green", "partial": "yellow", "failed": "red"}[outcome.status.value]
    console.print(f"\n[bold]Status:[/bold] [{color}]{outcome.status.value}[/{color}]")
    console.print(f"  Score: {outcome.score}%")
    console.print(f"  Points: {outcome.points}")
    if result.duplicate:
        console.print("  [dim]Already recorded (same nonce)[/dim]")
    if result.is_new_completion:
        console.print("  [green]New completion![/green]")
    if result.progress is not None:
        p = result.progress
        console.print(
            f"  Book progress: {p.completed_elements}/{p.total_elements} "
            f"({p.completion_percentage}%), {p.total_points_earned}/{p.total_points_available} points"
        )


@app.command("responses")
def list_responses(
    user_id: int = typer.Argument(..., help="User id"),
    element_id: int = typer.Argument(..., help="Element id"),
):
    """List a user's responses to an element, newest first."""
    responses = _service().list_responses(user_id, element_id)
    table = Table(title=f"User {user_id}, element {element_id}")
    table.add_column("ID", justify="right")
    table.add_column("Submitted")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Points", justify="right")
    for response in responses:
        table.add_row(
            str(response.id),
            response.submitted_at.strftime("%Y-%m-%d %H:%M:%S"),
            response.completion_status,
            str(response.score),
            str(response.points_awarded),
        )
    console.print(table)


@app.command("progress")
def show_progress(
    user_id: int = typer.Argument(..., help="User id"),
    book_id: int = typer.Argument(..., help="Book id"),
):
    """Show a user's progress through a book."""
    try:
        progress = _service().get_progress(user_id, book_id)
    except EngineError as e:
        _fail(e)

    table = Table(title=f"User {user_id}, book {book_id}", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Elements completed", f"{progress.completed_elements}/{progress.total_elements}")
    table.add_row("Completion", f"{progress.completion_percentage}%")
    table.add_row("Points", f"{progress.total_points_earned}/{progress.total_points_available}")
    table.add_row("Average score", f"{progress.avg_score_percentage}%")
    table.add_row("Required completed", "yes" if progress.required_completed else "no")
    console.print(table)


@app.command("generate")
def generate_elements(
    book_id: int = typer.Argument(..., help="Book id"),
    quiz_bank: Path = typer.Option(None, "--quiz-bank", "-q", help="JSON quiz bank keyed by section title"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show drafts without storing them"),
):
    """Create default interactive elements for every section of a book."""
    from civicbook.generator import ElementGenerator, generate_for_book, load_quiz_bank

    bank = load_quiz_bank(quiz_bank) if quiz_bank else None
    try:
        created = generate_for_book(_service(), book_id, ElementGenerator(quiz_bank=bank), dry_run=dry_run)
    except EngineError as e:
        _fail(e)

    verb = "Would create" if dry_run else "Created"
    rprint(f"[green]✓[/green] {verb} {len(created)} elements for book {book_id}")
    for item in created:
        console.print(f"  section {item.section_id}: {item.element_type.value if dry_run else item.element_type} - {item.title}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
