"""
Word Mastery Tracker.

Counter-based mastery per word or phrase:
- correct attempt: times_correct += 1, consecutive_correct += 1
- incorrect attempt: times_incorrect += 1, consecutive_correct reset to 0,
  Known/Mastered drop back to Learning
- neutral touch (new_word introduction, or a graded step with no recorded
  answer): no tally change

times_seen counts every occurrence, graded or not.

Levels derive from the streak: Known at ``known_streak`` consecutive
correct attempts, Mastered at ``mastered_streak``. Any occurrence lifts an
Unknown word to Learning. Every occurrence upserts the record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loguru import logger

from src.progress.models import MasteryLevel, SignalSource, WordProgress, normalize_word
from src.progress.repository import ProgressRepository


class WordAttempt(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    NEUTRAL = "neutral"

    @classmethod
    def from_step(cls, step_type: str, correct: bool | None, attempts: int | None) -> WordAttempt:
        """Classify a lesson/assessment step occurrence."""
        if step_type == "new_word" or correct is None or attempts == 0:
            return cls.NEUTRAL
        return cls.CORRECT if correct else cls.INCORRECT


@dataclass
class WordUpdate:
    """Result of a word mastery update."""

    word: str
    attempt: WordAttempt
    old_level: MasteryLevel
    new_level: MasteryLevel
    consecutive_correct: int

    @property
    def became_known(self) -> bool:
        return (
            self.old_level.rank < MasteryLevel.KNOWN.rank
            and self.new_level.rank >= MasteryLevel.KNOWN.rank
        )


class WordMasteryTracker:
    """Track per-word correctness streaks and derive mastery."""

    def __init__(
        self, repository: ProgressRepository, known_streak: int = 3, mastered_streak: int = 6
    ):
        """
        Initialize tracker.

        Args:
            repository: Progress repository
            known_streak: Consecutive correct attempts for Known
            mastered_streak: Consecutive correct attempts for Mastered
        """
        if known_streak <= 0:
            raise ValueError("known_streak must be positive")
        if mastered_streak < known_streak:
            raise ValueError("mastered_streak must be >= known_streak")
        self.repository = repository
        self.known_streak = known_streak
        self.mastered_streak = mastered_streak

    async def update_word(
        self,
        learning_progress_id: str,
        text: str,
        attempt: WordAttempt,
        *,
        source: SignalSource,
        step_id: str | None = None,
        translation: str | None = None,
        now: datetime,
    ) -> WordUpdate | None:
        """
        Apply one occurrence of a word and upsert the record.

        Returns:
            WordUpdate, or None when the text is blank
        """
        display_text = " ".join(text.split())
        if not display_text:
            return None
        key = normalize_word(display_text)

        current = await self.repository.get_word_progress(learning_progress_id, key)
        if current is None:
            current = WordProgress(word=key, display_text=display_text, first_seen_at=now)

        old_level = current.mastery_level
        current.times_seen += 1
        if attempt is WordAttempt.CORRECT:
            current.times_correct += 1
            current.consecutive_correct += 1
        elif attempt is WordAttempt.INCORRECT:
            current.times_incorrect += 1
            current.consecutive_correct = 0
        current.mastery_level = self.next_level(old_level, attempt, current.consecutive_correct)

        if translation:
            current.translation = translation
        current.last_reviewed_at = now
        step_ids = (
            current.related_lesson_step_ids
            if source is SignalSource.LESSON
            else current.related_assessment_step_ids
        )
        if step_id and step_id not in step_ids:
            step_ids.append(step_id)

        await self.repository.upsert_word_progress(learning_progress_id, current.to_fields())

        update = WordUpdate(
            word=key,
            attempt=attempt,
            old_level=old_level,
            new_level=current.mastery_level,
            consecutive_correct=current.consecutive_correct,
        )
        if update.became_known:
            logger.debug(f"Word '{key}' reached {update.new_level.value} after {update.consecutive_correct} correct")
        return update

    def next_level(
        self, current: MasteryLevel, attempt: WordAttempt, consecutive_correct: int
    ) -> MasteryLevel:
        if attempt is WordAttempt.INCORRECT:
            return current.regress().raise_to(MasteryLevel.LEARNING)

        level = current.raise_to(MasteryLevel.LEARNING)
        if attempt is WordAttempt.CORRECT:
            if consecutive_correct >= self.mastered_streak:
                level = level.raise_to(MasteryLevel.MASTERED)
            elif consecutive_correct >= self.known_streak:
                level = level.raise_to(MasteryLevel.KNOWN)
        return level
