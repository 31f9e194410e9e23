"""
Unit tests for WordMasteryTracker.

Tests:
- Step classification into correct/incorrect/neutral attempts
- Streak-based Known/Mastered promotion
- Regression and counters on incorrect attempts
"""

from datetime import UTC, datetime

import pytest

from src.progress.models import MasteryLevel, SignalSource
from src.progress.word_tracker import WordAttempt, WordMasteryTracker

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def tracker(repository):
    return WordMasteryTracker(repository, known_streak=3, mastered_streak=6)


async def answer(tracker, attempt, text="Bahnhof", times=1):
    update = None
    for _ in range(times):
        update = await tracker.update_word(
            "lp-1", text, attempt, source=SignalSource.LESSON, step_id="step-1", now=NOW
        )
    return update


class TestWordAttempt:
    @pytest.mark.parametrize(
        "step_type,correct,attempts,expected",
        [
            ("new_word", None, None, WordAttempt.NEUTRAL),
            ("new_word", True, 1, WordAttempt.NEUTRAL),
            ("practice", True, 1, WordAttempt.CORRECT),
            ("practice", False, 2, WordAttempt.INCORRECT),
            ("practice", None, None, WordAttempt.NEUTRAL),
            ("question", True, 0, WordAttempt.NEUTRAL),
        ],
    )
    def test_from_step(self, step_type, correct, attempts, expected):
        assert WordAttempt.from_step(step_type, correct, attempts) is expected


class TestStreaks:
    def test_invalid_streaks_rejected(self, repository):
        with pytest.raises(ValueError):
            WordMasteryTracker(repository, known_streak=4, mastered_streak=2)

    @pytest.mark.asyncio
    async def test_introduction_makes_word_learning(self, tracker, repository):
        update = await answer(tracker, WordAttempt.NEUTRAL)

        assert update.new_level is MasteryLevel.LEARNING
        stored = await repository.get_word_progress("lp-1", "bahnhof")
        assert stored.times_seen == 1
        assert stored.attempts == 0
        assert stored.first_seen_at == NOW

    @pytest.mark.asyncio
    async def test_known_after_streak(self, tracker):
        update = await answer(tracker, WordAttempt.CORRECT, times=3)

        assert update.new_level is MasteryLevel.KNOWN
        assert update.became_known

    @pytest.mark.asyncio
    async def test_mastered_after_longer_streak(self, tracker):
        update = await answer(tracker, WordAttempt.CORRECT, times=6)
        assert update.new_level is MasteryLevel.MASTERED

    @pytest.mark.asyncio
    async def test_incorrect_resets_streak_and_regresses(self, tracker, repository):
        await answer(tracker, WordAttempt.CORRECT, times=4)
        update = await answer(tracker, WordAttempt.INCORRECT)

        assert update.old_level is MasteryLevel.KNOWN
        assert update.new_level is MasteryLevel.LEARNING
        assert update.consecutive_correct == 0

        stored = await repository.get_word_progress("lp-1", "bahnhof")
        assert stored.times_correct == 4
        assert stored.times_incorrect == 1
        assert stored.times_seen == 5
        assert stored.related_lesson_step_ids == ["step-1"]

    @pytest.mark.asyncio
    async def test_spelling_variants_share_a_record(self, tracker, repository):
        await answer(tracker, WordAttempt.CORRECT, text="Das Buch")
        await answer(tracker, WordAttempt.CORRECT, text="das  buch")

        stored = await repository.get_word_progress("lp-1", "das buch")
        assert stored.times_correct == 2
        assert stored.display_text == "Das Buch"
