"""
Typer CLI for the lingo-progress engine.

Commands:
    lingo db init                      - Create progress tables
    lingo progress show USER           - Show overall progress and topic mastery
    lingo progress words USER          - List words that still need practice
    lingo progress record-lesson FILE  - Fold a completed lesson (JSON) into progress
    lingo progress record-assessment FILE
                                       - Fold a completed assessment (JSON) into progress
    lingo progress topics USER         - Suggest topics for the next lessons

Usage:
    lingo --help
    lingo db init
    lingo progress record-lesson lesson.json --user user-1
    lingo progress topics user-1 --purpose travel --count 3
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.db.database import dispose_engine, init_db
from src.db.progress_repository import SqlAlchemyProgressRepository
from src.progress import (
    OnboardingPreferences,
    ProgressAggregator,
    TopicSelectionContext,
    TopicSelectionScorer,
)
from src.progress.events import load_assessment, load_lesson
from src.progress.topic_selector import skill_scores

T = TypeVar("T")

app = typer.Typer(help="lingo-progress CLI: learner progress and mastery tracking")

console = Console()


@app.callback()
def main_callback() -> None:
    """Adaptive learning progress and mastery engine."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)


def _run(factory: Callable[[], Awaitable[T]]) -> T:
    """Run one async command body and release the engine on the same loop."""

    async def runner() -> T:
        try:
            return await factory()
        finally:
            await dispose_engine()

    return asyncio.run(runner())


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        rprint(f"[red]✗[/red] File not found: {path}")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        rprint(f"[red]✗[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(code=1)


def _aggregator() -> ProgressAggregator:
    return ProgressAggregator(SqlAlchemyProgressRepository())


# ========================================
# Database Commands
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create progress tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    _run(init_db)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Progress Commands
# ========================================

progress_app = typer.Typer(help="Learner progress (show, record, topics)")
app.add_typer(progress_app, name="progress")


@progress_app.command("show")
def progress_show(
    user_id: str = typer.Argument(..., help="Learner identifier"),
) -> None:
    """Show overall progress and per-topic mastery."""
    progress = _run(lambda: _aggregator().get_progress_with_details(user_id))
    if progress is None:
        rprint(f"[yellow]No learning progress recorded for {user_id}[/yellow]")
        raise typer.Exit(code=1)

    rprint(f"\n[bold cyan]Learning Progress: {user_id}[/bold cyan]")
    rprint(f"  Overall score: {progress.overall_score:.1f}")
    rprint(f"  Proficiency:   {progress.estimated_proficiency_level.value}")
    rprint(f"  Trajectory:    {progress.learning_trajectory.value}")
    rprint(f"  Strengths:     {', '.join(progress.strengths) or '-'}")
    rprint(f"  Weaknesses:    {', '.join(progress.weaknesses) or '-'}\n")

    if not progress.topics:
        return

    table = Table(title="Topics", show_header=True)
    table.add_column("Topic", style="cyan")
    table.add_column("Mastery")
    table.add_column("Score", justify="right")
    table.add_column("Lessons", justify="right", style="dim")
    table.add_column("Assessments", justify="right", style="dim")
    for topic in sorted(progress.topics, key=lambda t: t.topic_name):
        level = topic.mastery_level
        table.add_row(
            topic.display_name or topic.topic_name,
            f"[{level.color}]{level.display_name}[/{level.color}]",
            f"{topic.score:.1f}" if topic.score is not None else "-",
            str(len(topic.related_lesson_ids)),
            str(len(topic.related_assessment_ids)),
        )
    console.print(table)


@progress_app.command("words")
def progress_words(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum words to list"),
) -> None:
    """List words below Mastered, least recently reviewed first."""
    words = _run(lambda: _aggregator().get_practice_words(user_id, limit=limit))
    if not words:
        rprint(f"[yellow]No words to practice for {user_id}[/yellow]")
        return

    table = Table(title="Words to Practice", show_header=True)
    table.add_column("Word", style="cyan")
    table.add_column("Translation", style="dim")
    table.add_column("Mastery")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Incorrect", justify="right", style="red")
    table.add_column("Seen", justify="right")
    for word in words:
        level = word.mastery_level
        table.add_row(
            word.display_text or word.word,
            word.translation or "",
            f"[{level.color}]{level.display_name}[/{level.color}]",
            str(word.times_correct),
            str(word.times_incorrect),
            str(word.times_seen),
        )
    console.print(table)


@progress_app.command("record-lesson")
def progress_record_lesson(
    lesson_file: Path = typer.Argument(..., help="Completed lesson JSON"),
    user_id: str | None = typer.Option(None, "--user", "-u", help="Learner (default: lesson userId)"),
) -> None:
    """Fold a completed lesson into the learner's progress."""
    try:
        lesson = load_lesson(_read_json(lesson_file))
    except ValidationError as e:
        rprint(f"[red]✗[/red] Invalid lesson payload: {e}")
        raise typer.Exit(code=1)

    user = user_id or lesson.user_id
    if not user:
        rprint("[red]✗[/red] No user given and the lesson has no userId")
        raise typer.Exit(code=1)

    async def record():
        aggregator = _aggregator()
        before = await aggregator.get_progress(user)
        await aggregator.update_after_lesson(user, lesson)
        return before, await aggregator.get_progress(user)

    before, after = _run(record)
    _print_summary(user, after, _completion_recorded(before, after, "last_lesson_completed_at"))


@progress_app.command("record-assessment")
def progress_record_assessment(
    assessment_file: Path = typer.Argument(..., help="Completed assessment JSON"),
    user_id: str | None = typer.Option(
        None, "--user", "-u", help="Learner (default: assessment userId)"
    ),
) -> None:
    """Fold a completed assessment into the learner's progress."""
    try:
        assessment = load_assessment(_read_json(assessment_file))
    except ValidationError as e:
        rprint(f"[red]✗[/red] Invalid assessment payload: {e}")
        raise typer.Exit(code=1)

    user = user_id or assessment.user_id
    if not user:
        rprint("[red]✗[/red] No user given and the assessment has no userId")
        raise typer.Exit(code=1)

    async def record():
        aggregator = _aggregator()
        before = await aggregator.get_progress(user)
        await aggregator.update_after_assessment(user, assessment)
        return before, await aggregator.get_progress(user)

    before, after = _run(record)
    _print_summary(user, after, _completion_recorded(before, after, "last_assessment_completed_at"))


@progress_app.command("topics")
def progress_topics(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    assessment_file: Path | None = typer.Option(
        None, "--assessment-file", "-a", help="Latest assessment JSON (proposed/suggested topics)"
    ),
    purpose: str | None = typer.Option(None, "--purpose", help="Learning purpose (travel, business, ...)"),
    proficiency: str | None = typer.Option(
        None, "--proficiency", help="Declared proficiency when no progress exists"
    ),
    count: int | None = typer.Option(None, "--count", "-n", help="Number of topics"),
) -> None:
    """Suggest topics for the next generated lessons."""
    settings = get_settings()

    assessment_topics: list[str] = []
    audio_topics: list[str] = []
    scores: dict[str, float] = {}
    if assessment_file is not None:
        try:
            assessment = load_assessment(_read_json(assessment_file))
        except ValidationError as e:
            rprint(f"[red]✗[/red] Invalid assessment payload: {e}")
            raise typer.Exit(code=1)
        assessment_topics = list(assessment.proposed_topics)
        if assessment.audio_metrics is not None:
            audio_topics = list(assessment.audio_metrics.suggested_topics)
        scores = skill_scores(assessment.audio_metrics)

    progress = _run(lambda: _aggregator().get_progress_with_details(user_id))
    context = TopicSelectionContext(
        progress=progress,
        preferences=OnboardingPreferences(learning_purpose=purpose, proficiency_level=proficiency),
        assessment_topics=assessment_topics,
        audio_suggested_topics=audio_topics,
        skill_scores=scores,
    )
    scorer = TopicSelectionScorer(default_count=settings.topic_selection_count)
    topics = scorer.select_topics(user_id, context, limit=count)

    rprint(f"\n[bold cyan]Suggested topics for {user_id}[/bold cyan]")
    for i, topic in enumerate(topics, 1):
        rprint(f"  {i}. {topic}")


def _completion_recorded(before, after, field: str) -> bool:
    """True when the update stamped a new completion time on the record."""
    if after is None or getattr(after, field) is None:
        return False
    return before is None or getattr(before, field) != getattr(after, field)


def _print_summary(user_id: str, progress, recorded: bool) -> None:
    if not recorded:
        rprint(f"[yellow]⚠[/yellow] Progress for {user_id} was not updated; check logs for details")
        raise typer.Exit(code=1)
    rprint(f"\n[green]✓[/green] Progress updated for {user_id}")
    rprint(f"  Overall score: {progress.overall_score:.1f}")
    rprint(f"  Proficiency:   {progress.estimated_proficiency_level.value}")
    rprint(f"  Trajectory:    {progress.learning_trajectory.value}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
