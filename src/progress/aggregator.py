"""
Progress Aggregator.

Folds each completed lesson or assessment into the learner's durable
LearningProgress and drives the topic and word mastery trackers.

Per event, repository calls are awaited in this order:
    read prior -> (create default record) -> topic upserts -> word upserts
    -> final progress upsert

Progress bookkeeping is best-effort: update_after_lesson and
update_after_assessment catch every exception, log it with the user and
source identifiers, and return normally so the completion workflow that
triggered them is never failed by this engine.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from config import Settings, get_settings
from src.progress.events import AssessmentLesson, LessonModel
from src.progress.models import (
    LearningProgress,
    LearningTrajectory,
    MasteryLevel,
    PerformanceSignal,
    SignalSource,
    WordProgress,
    clamp_score,
    topic_slug,
)
from src.progress.normalizer import MetricNormalizer, merge_labels
from src.progress.repository import ProgressRepository
from src.progress.topic_tracker import TopicMasteryTracker
from src.progress.word_tracker import WordAttempt, WordMasteryTracker

LESSON_WORD_STEP_TYPES = ("new_word", "practice")
ASSESSMENT_WORD_STEP_TYPES = ("question",)

PRACTICE_LEVELS = (MasteryLevel.UNKNOWN, MasteryLevel.LEARNING, MasteryLevel.KNOWN)


@dataclass
class TopicMention:
    name: str
    is_focus_area: bool = False


@dataclass
class WordOccurrence:
    text: str
    attempt: WordAttempt
    step_id: str | None = None
    translation: str | None = None


class ProgressAggregator:
    """
    Maintain a running model of learner competence.

    Score update: new = prior * prior_weight + signal * signal_weight
    (0.3 / 0.7 by default), skipped when the signal has no overall score.
    """

    def __init__(
        self,
        repository: ProgressRepository,
        settings: Settings | None = None,
        normalizer: MetricNormalizer | None = None,
        topic_tracker: TopicMasteryTracker | None = None,
        word_tracker: WordMasteryTracker | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.normalizer = normalizer or MetricNormalizer()
        self.topic_tracker = topic_tracker or TopicMasteryTracker(
            repository, competence_threshold=self.settings.topic_competence_threshold
        )
        self.word_tracker = word_tracker or WordMasteryTracker(
            repository,
            known_streak=self.settings.word_known_streak,
            mastered_streak=self.settings.word_mastered_streak,
        )
        self._clock = clock or (lambda: datetime.now(UTC))

    # ----- reads --------------------------------------------------------

    async def get_progress(self, user_id: str) -> LearningProgress | None:
        return await self.repository.get_learning_progress(user_id)

    async def get_progress_with_details(self, user_id: str) -> LearningProgress | None:
        """Progress including topic and word records."""
        return await self.repository.get_learning_progress_with_details(user_id)

    async def get_practice_words(self, user_id: str, limit: int = 100) -> list[WordProgress]:
        """Words below Mastered, least recently reviewed first."""
        progress = await self.repository.get_learning_progress(user_id)
        if progress is None or progress.id is None:
            return []
        return await self.repository.get_words_by_mastery(progress.id, PRACTICE_LEVELS, limit=limit)

    # ----- updates ------------------------------------------------------

    async def update_after_lesson(self, user_id: str, lesson: LessonModel) -> None:
        """Update progress after a completed lesson. Never raises."""
        logger.info(f"Updating learning progress after lesson {lesson.id} for user {user_id}")
        try:
            signal = self.normalizer.from_lesson(lesson)
            await self._apply_event(
                user_id,
                signal,
                topics=self.lesson_topics(lesson),
                words=self.lesson_words(lesson),
            )
            logger.info(f"Updated learning progress after lesson {lesson.id} for user {user_id}")
        except Exception as e:  # Intentionally broad - progress must not fail lesson completion
            self._log_failure("lesson", user_id, lesson.id, e)

    async def update_after_assessment(self, user_id: str, assessment: AssessmentLesson) -> None:
        """Update progress after a completed assessment. Never raises."""
        logger.info(f"Updating learning progress after assessment {assessment.id} for user {user_id}")
        try:
            signal = self.normalizer.from_assessment(assessment)
            await self._apply_event(
                user_id,
                signal,
                topics=self.assessment_topics(assessment),
                words=self.assessment_words(assessment),
            )
            logger.info(f"Updated learning progress after assessment {assessment.id} for user {user_id}")
        except Exception as e:  # Intentionally broad - progress must not fail assessment completion
            self._log_failure("assessment", user_id, assessment.id, e)

    async def _apply_event(
        self,
        user_id: str,
        signal: PerformanceSignal,
        topics: list[TopicMention],
        words: list[WordOccurrence],
    ) -> None:
        now = self._clock()

        progress = await self.repository.get_learning_progress(user_id)
        if progress is None:
            progress = await self.repository.upsert_learning_progress(
                user_id, LearningProgress.default_fields(user_id)
            )
        learning_progress_id = progress.id

        for mention in topics:
            await self.topic_tracker.update_topic(
                learning_progress_id,
                mention.name,
                signal,
                is_focus_area=mention.is_focus_area,
                now=now,
            )

        for occurrence in words:
            await self.word_tracker.update_word(
                learning_progress_id,
                occurrence.text,
                occurrence.attempt,
                source=signal.source,
                step_id=occurrence.step_id,
                translation=occurrence.translation,
                now=now,
            )

        fields = self.compute_progress_fields(progress, signal)
        if signal.source is SignalSource.LESSON:
            fields["last_lesson_completed_at"] = now
        else:
            fields["last_assessment_completed_at"] = now
        await self.repository.upsert_learning_progress(user_id, fields)

    # ----- pure computation ----------------------------------------------

    def compute_progress_fields(
        self, progress: LearningProgress, signal: PerformanceSignal
    ) -> dict[str, Any]:
        """
        Compute the updated aggregate fields for one signal.

        Returns a partial-field mapping; overall_score is omitted when the
        signal carries no usable overall score.
        """
        prior_score = clamp_score(progress.overall_score or 0.0)
        fields: dict[str, Any] = {}

        incoming = signal.effective_overall
        new_score = prior_score
        if incoming is not None:
            new_score = clamp_score(
                prior_score * self.settings.progress_prior_weight
                + incoming * self.settings.progress_signal_weight
            )
            fields["overall_score"] = round(new_score, 2)

        trajectory = signal.trajectory
        if trajectory is None:
            if incoming is not None:
                trajectory = LearningTrajectory.from_delta(
                    new_score - prior_score, self.settings.progress_trajectory_threshold
                )
            else:
                trajectory = progress.learning_trajectory
        fields["learning_trajectory"] = trajectory

        fields["estimated_proficiency_level"] = progress.estimated_proficiency_level.raise_to(
            signal.proficiency_level
        )

        cap = self.settings.progress_label_cap
        fields["strengths"] = _recent_labels(progress.strengths, signal.strengths, cap)
        fields["weaknesses"] = _recent_labels(progress.weaknesses, signal.weaknesses, cap)
        return fields

    @staticmethod
    def lesson_topics(lesson: LessonModel) -> list[TopicMention]:
        """Focus area plus target skills, one mention per distinct slug."""
        mentions = [TopicMention(lesson.focus_area, is_focus_area=True)]
        mentions.extend(TopicMention(skill) for skill in lesson.target_skills)
        return _distinct_topics(mentions)

    @staticmethod
    def assessment_topics(assessment: AssessmentLesson) -> list[TopicMention]:
        return _distinct_topics([TopicMention(name) for name in assessment.proposed_topics])

    @staticmethod
    def lesson_words(lesson: LessonModel) -> list[WordOccurrence]:
        occurrences = []
        for step in lesson.steps:
            if step.type not in LESSON_WORD_STEP_TYPES:
                continue
            text = step.expected_answer or step.content
            if not text or not text.strip():
                continue
            occurrences.append(
                WordOccurrence(
                    text=text,
                    attempt=WordAttempt.from_step(step.type, step.correct, step.attempts),
                    step_id=step.id,
                    translation=step.translation,
                )
            )
        return occurrences

    @staticmethod
    def assessment_words(assessment: AssessmentLesson) -> list[WordOccurrence]:
        occurrences = []
        for step in assessment.steps:
            if step.type not in ASSESSMENT_WORD_STEP_TYPES:
                continue
            # The question prompt is not vocabulary; only the expected answer is tracked
            if not step.expected_answer or not step.expected_answer.strip():
                continue
            occurrences.append(
                WordOccurrence(
                    text=step.expected_answer,
                    attempt=WordAttempt.from_step(step.type, step.correct, step.attempts),
                    step_id=step.id,
                    translation=step.translation,
                )
            )
        return occurrences

    @staticmethod
    def _log_failure(kind: str, user_id: str, source_id: str, error: Exception) -> None:
        logger.bind(user_id=user_id, source_id=source_id, error=repr(error)).error(
            f"Error updating learning progress after {kind}: "
            f"user_id={user_id} {kind}_id={source_id} error={error!r}"
        )


def _distinct_topics(mentions: list[TopicMention]) -> list[TopicMention]:
    seen: set[str] = set()
    distinct = []
    for mention in mentions:
        if not mention.name or not mention.name.strip():
            continue
        key = topic_slug(mention.name)
        if key in seen:
            continue
        seen.add(key)
        distinct.append(mention)
    return distinct


def _recent_labels(prior: list[str], incoming: list[str], cap: int) -> list[str]:
    """Merge labels with re-reported ones moved to the newest end, keep the last ``cap``."""
    fresh = merge_labels(incoming)
    fresh_set = set(fresh)
    kept = [label for label in merge_labels(prior) if label not in fresh_set]
    return (kept + fresh)[-cap:]
