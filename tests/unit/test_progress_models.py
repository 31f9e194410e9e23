"""
Unit tests for the progress domain models.

Tests:
- Topic slug and word normalization
- Ordered enums (raise_to, advance, regress)
- Label mapping for proficiency and trajectory
"""

import pytest

from src.progress.models import (
    LearningProgress,
    LearningTrajectory,
    MasteryLevel,
    PerformanceSignal,
    ProficiencyLevel,
    SignalSource,
    TopicProgress,
    clamp_score,
    normalize_word,
    topic_slug,
)


class TestNormalization:
    @pytest.mark.parametrize(
        "name",
        ["Travel Vocabulary", "  travel   vocabulary ", "travel-vocabulary", "TRAVEL\tVocabulary"],
    )
    def test_topic_slug_variants_share_a_key(self, name):
        assert topic_slug(name) == "travel-vocabulary"

    def test_normalize_word_casefolds_and_collapses_spaces(self):
        assert normalize_word("  Wo ist   der Bahnhof? ") == "wo ist der bahnhof?"

    def test_clamp_score(self):
        assert clamp_score(-3) == 0.0
        assert clamp_score(120) == 100.0
        assert clamp_score(55.5) == 55.5


class TestProficiencyLevel:
    def test_raise_to_only_moves_up(self):
        level = ProficiencyLevel.INTERMEDIATE
        assert level.raise_to(ProficiencyLevel.BEGINNER) is ProficiencyLevel.INTERMEDIATE
        assert level.raise_to(ProficiencyLevel.ADVANCED) is ProficiencyLevel.ADVANCED
        assert level.raise_to(None) is ProficiencyLevel.INTERMEDIATE

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("A1", ProficiencyLevel.BEGINNER),
            ("a2", ProficiencyLevel.BEGINNER),
            ("B1", ProficiencyLevel.INTERMEDIATE),
            ("C2", ProficiencyLevel.ADVANCED),
            ("Intermediate", ProficiencyLevel.INTERMEDIATE),
            ("fluent-ish", None),
            (None, None),
        ],
    )
    def test_from_label(self, label, expected):
        assert ProficiencyLevel.from_label(label) is expected


class TestMasteryLevel:
    def test_advance_stops_at_mastered(self):
        assert MasteryLevel.UNKNOWN.advance() is MasteryLevel.LEARNING
        assert MasteryLevel.KNOWN.advance() is MasteryLevel.MASTERED
        assert MasteryLevel.MASTERED.advance() is MasteryLevel.MASTERED

    def test_regress_drops_known_and_mastered_to_learning(self):
        assert MasteryLevel.MASTERED.regress() is MasteryLevel.LEARNING
        assert MasteryLevel.KNOWN.regress() is MasteryLevel.LEARNING
        assert MasteryLevel.LEARNING.regress() is MasteryLevel.LEARNING
        assert MasteryLevel.UNKNOWN.regress() is MasteryLevel.UNKNOWN


class TestLearningTrajectory:
    def test_plateauing_maps_to_steady(self):
        assert LearningTrajectory.from_label("plateauing") is LearningTrajectory.STEADY

    def test_unknown_label_is_ignored(self):
        assert LearningTrajectory.from_label("sideways") is None

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (6.0, LearningTrajectory.ACCELERATING),
            (5.0, LearningTrajectory.STEADY),
            (-5.0, LearningTrajectory.STEADY),
            (-5.1, LearningTrajectory.DECLINING),
        ],
    )
    def test_from_delta(self, delta, expected):
        assert LearningTrajectory.from_delta(delta, 5.0) is expected


class TestPerformanceSignal:
    def test_audio_overall_wins_over_text_overall(self):
        signal = PerformanceSignal(
            source=SignalSource.ASSESSMENT,
            source_id="a",
            overall_score=82,
            audio_overall_performance=81,
        )
        assert signal.effective_overall == 81

    def test_no_overall_without_scores(self):
        signal = PerformanceSignal(source=SignalSource.LESSON, source_id="l", accuracy=90)
        assert signal.has_overall is False

    def test_names_weakness_compares_slugs(self):
        signal = PerformanceSignal(
            source=SignalSource.LESSON, source_id="l", weaknesses=["Verb Conjugation"]
        )
        assert signal.names_weakness("verb-conjugation")
        assert not signal.names_strength("verb-conjugation")


def test_learning_progress_topic_lookup_by_any_spelling():
    progress = LearningProgress(
        user_id="user-1",
        topics=[TopicProgress(topic_name="travel-basics", display_name="Travel Basics")],
    )
    assert progress.topic("Travel  Basics").display_name == "Travel Basics"
    assert progress.topic("Food") is None
