"""
Topic Mastery Tracker.

State machine per (learning progress, topic slug):

    Unknown -> Learning -> Known -> Mastered
    Known/Mastered -> Learning   (regression on a failure signal)

Outcome of one event for one topic:
- failure: the topic is named in the event's weaknesses -> regress
  (an Unknown topic still becomes Learning, it has now been studied)
- success: the topic is named in strengths, or it is the focus area of a
  lesson whose overall score clears the competence threshold -> advance
  one level
- encounter: neither -> Unknown becomes Learning, other levels unchanged

Failure takes precedence over success.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loguru import logger

from src.progress.models import (
    MasteryLevel,
    PerformanceSignal,
    SignalSource,
    TopicProgress,
    topic_slug,
)
from src.progress.repository import ProgressRepository


class TopicOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ENCOUNTER = "encounter"


@dataclass
class TopicUpdate:
    """Result of a topic mastery update."""

    topic_name: str
    old_level: MasteryLevel
    new_level: MasteryLevel
    outcome: TopicOutcome
    score: float | None


class TopicMasteryTracker:
    """Track mastery per topic from completed lessons and assessments."""

    def __init__(self, repository: ProgressRepository, competence_threshold: float = 70.0):
        """
        Initialize tracker.

        Args:
            repository: Progress repository
            competence_threshold: Lesson overall score (0-100) at which the
                lesson's focus area counts as a success
        """
        self.repository = repository
        self.competence_threshold = competence_threshold

    async def update_topic(
        self,
        learning_progress_id: str,
        topic_name: str,
        signal: PerformanceSignal,
        *,
        is_focus_area: bool = False,
        now: datetime,
    ) -> TopicUpdate | None:
        """
        Apply one event to one topic and upsert the record.

        Returns:
            TopicUpdate, or None when the topic name is blank
        """
        display_name = " ".join(topic_name.split())
        if not display_name:
            return None
        key = topic_slug(display_name)

        current = await self.repository.get_topic_progress(learning_progress_id, key)
        if current is None:
            current = TopicProgress(topic_name=key, display_name=display_name)

        old_level = current.mastery_level
        outcome = self.classify_outcome(signal, display_name, is_focus_area)
        new_level = self.next_level(old_level, outcome)

        current.mastery_level = new_level
        current.score = self._blend_score(current.score, signal.effective_overall)
        current.last_studied_at = now
        if signal.source is SignalSource.LESSON:
            _append_unique(current.related_lesson_ids, signal.source_id)
        else:
            _append_unique(current.related_assessment_ids, signal.source_id)

        await self.repository.upsert_topic_progress(learning_progress_id, current.to_fields())

        update = TopicUpdate(
            topic_name=key,
            old_level=old_level,
            new_level=new_level,
            outcome=outcome,
            score=current.score,
        )
        logger.debug(f"Topic '{key}' {outcome.value}: {update.old_level.value} -> {new_level.value}")
        return update

    def classify_outcome(
        self, signal: PerformanceSignal, topic_name: str, is_focus_area: bool
    ) -> TopicOutcome:
        if signal.names_weakness(topic_name):
            return TopicOutcome.FAILURE
        if signal.names_strength(topic_name):
            return TopicOutcome.SUCCESS
        overall = signal.effective_overall
        if (
            is_focus_area
            and signal.source is SignalSource.LESSON
            and overall is not None
            and overall >= self.competence_threshold
        ):
            return TopicOutcome.SUCCESS
        return TopicOutcome.ENCOUNTER

    @staticmethod
    def next_level(current: MasteryLevel, outcome: TopicOutcome) -> MasteryLevel:
        """Transition rule for one outcome."""
        if outcome is TopicOutcome.SUCCESS:
            return current.advance()
        if outcome is TopicOutcome.FAILURE:
            return current.regress().raise_to(MasteryLevel.LEARNING)
        return current.raise_to(MasteryLevel.LEARNING)

    @staticmethod
    def _blend_score(prior: float | None, incoming: float | None) -> float | None:
        if incoming is None:
            return prior
        if prior is None:
            return round(incoming, 2)
        return round((prior + incoming) / 2, 2)


def _append_unique(values: list[str], value: str) -> None:
    if value and value not in values:
        values.append(value)
