"""
Unit tests for TopicSelectionScorer.

Tests:
- Weighted ranking across assessment, audio, weakness, skill, beginner and purpose sources
- Weak topics visited least recently studied first
- No duplicates, never more than N
- Default fill when candidates run short
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.progress.events import AudioMetrics, OnboardingPreferences
from src.progress.models import (
    LearningProgress,
    MasteryLevel,
    ProficiencyLevel,
    TopicProgress,
    topic_slug,
)
from src.progress.topic_selector import (
    BEGINNER_BASICS,
    DEFAULT_TOPICS,
    TopicSelectionContext,
    TopicSelectionScorer,
    skill_scores,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def scorer():
    return TopicSelectionScorer(default_count=3)


def travel_beginner(**kwargs) -> TopicSelectionContext:
    kwargs.setdefault("assessment_topics", ["Travel Vocabulary", "Basic Grammar"])
    return TopicSelectionContext(
        preferences=OnboardingPreferences(learning_purpose="travel", proficiency_level="beginner"),
        **kwargs,
    )


class TestSelectTopics:
    def test_assessment_topics_then_one_beginner_basic(self, scorer):
        topics = scorer.select_topics("user-1", travel_beginner())

        assert topics[:2] == ["travel-vocabulary", "basic-grammar"]
        basics = {topic_slug(t) for t in BEGINNER_BASICS}
        assert len([t for t in topics if t in basics]) == 1
        assert len(topics) == 3

    def test_audio_suggestions_outrank_assessment(self, scorer):
        topics = scorer.select_topics(
            "user-1", travel_beginner(audio_suggested_topics=["Food"])
        )
        assert topics == ["food", "travel-vocabulary", "basic-grammar"]

    def test_topic_named_by_two_sources_ranks_first(self, scorer):
        topics = scorer.select_topics(
            "user-1", travel_beginner(audio_suggested_topics=["basic grammar"])
        )
        assert topics[0] == "basic-grammar"
        assert len(topics) == len(set(topics))

    @pytest.mark.parametrize("limit", [1, 2, 3, 5, 8])
    def test_never_exceeds_limit_or_repeats(self, scorer, limit):
        context = travel_beginner(
            assessment_topics=["Travel Vocabulary", "travel vocabulary", "Basic Grammar"],
            audio_suggested_topics=["Travel", "Food", "travel"],
        )
        topics = scorer.select_topics("user-1", context, limit=limit)

        assert len(topics) <= limit
        assert len(topics) == len(set(topics))

    def test_zero_limit(self, scorer):
        assert scorer.select_topics("user-1", travel_beginner(), limit=0) == []

    def test_empty_context_fills_from_defaults(self, scorer):
        topics = scorer.select_topics("user-1", TopicSelectionContext())
        assert topics == [topic_slug(t) for t in DEFAULT_TOPICS]

    def test_invalid_default_count(self):
        with pytest.raises(ValueError):
            TopicSelectionScorer(default_count=0)


class TestScoring:
    def test_weak_topics_weighted_by_gap(self, scorer):
        progress = LearningProgress(
            user_id="user-1",
            estimated_proficiency_level=ProficiencyLevel.INTERMEDIATE,
            topics=[
                TopicProgress(topic_name="ordering-food", mastery_level=MasteryLevel.UNKNOWN),
                TopicProgress(topic_name="directions", mastery_level=MasteryLevel.LEARNING),
                TopicProgress(topic_name="greetings", mastery_level=MasteryLevel.MASTERED),
            ],
        )
        scores = {s.slug: s.weight for s in scorer.score_topics(TopicSelectionContext(progress=progress))}

        assert scores == {"ordering-food": 1.0, "directions": 0.5}

    def test_stored_proficiency_overrides_declared(self, scorer):
        context = TopicSelectionContext(
            progress=LearningProgress(
                user_id="user-1", estimated_proficiency_level=ProficiencyLevel.ADVANCED
            ),
            preferences=OnboardingPreferences(proficiency_level="beginner"),
        )
        slugs = {s.slug for s in scorer.score_topics(context)}
        assert "greetings" not in slugs

    def test_unknown_purpose_uses_general_topics(self):
        prefs = OnboardingPreferences(learning_purpose="hobby")
        assert TopicSelectionScorer.purpose_topics(prefs) == (
            "Daily Greetings",
            "Shopping",
            "Directions",
        )

    def test_no_purpose_adds_nothing(self):
        assert TopicSelectionScorer.purpose_topics(OnboardingPreferences()) == ()


class TestStoredWeaknesses:
    def test_first_two_weaknesses_are_candidates(self, scorer):
        progress = LearningProgress(
            user_id="user-1",
            estimated_proficiency_level=ProficiencyLevel.INTERMEDIATE,
            weaknesses=["Past Tense", "Articles", "Word Order"],
        )
        scores = {s.slug: s for s in scorer.score_topics(TopicSelectionContext(progress=progress))}

        assert scores["past-tense"].weight == 2.0
        assert scores["past-tense"].sources == ["weakness"]
        assert "articles" in scores
        assert "word-order" not in scores

    def test_weaknesses_fill_selection_before_defaults(self, scorer):
        progress = LearningProgress(
            user_id="user-1",
            estimated_proficiency_level=ProficiencyLevel.INTERMEDIATE,
            weaknesses=["past tense"],
        )
        topics = scorer.select_topics("user-1", TopicSelectionContext(progress=progress))

        assert topics[0] == "past-tense"
        assert topics[1:] == [topic_slug(t) for t in DEFAULT_TOPICS[:2]]


class TestWeakTopicOrder:
    def test_equal_gaps_rank_least_recently_studied_first(self, scorer):
        progress = LearningProgress(
            user_id="user-1",
            estimated_proficiency_level=ProficiencyLevel.INTERMEDIATE,
            topics=[
                TopicProgress(
                    topic_name="recent", mastery_level=MasteryLevel.LEARNING, last_studied_at=NOW
                ),
                TopicProgress(
                    topic_name="older",
                    mastery_level=MasteryLevel.LEARNING,
                    last_studied_at=NOW - timedelta(days=7),
                ),
                TopicProgress(topic_name="never", mastery_level=MasteryLevel.LEARNING),
            ],
        )
        topics = scorer.select_topics("user-1", TopicSelectionContext(progress=progress), limit=3)

        assert topics == ["never", "older", "recent"]

    def test_gap_still_outweighs_recency(self, scorer):
        progress = LearningProgress(
            user_id="user-1",
            estimated_proficiency_level=ProficiencyLevel.INTERMEDIATE,
            topics=[
                TopicProgress(topic_name="learning", mastery_level=MasteryLevel.LEARNING),
                TopicProgress(
                    topic_name="unknown", mastery_level=MasteryLevel.UNKNOWN, last_studied_at=NOW
                ),
            ],
        )
        topics = scorer.select_topics("user-1", TopicSelectionContext(progress=progress), limit=2)

        assert topics == ["unknown", "learning"]


class TestSkillArea:
    def test_weakest_skill_below_threshold(self):
        scores = {"pronunciation": 80, "grammar": 60, "vocabulary": 70, "fluency": 90}
        assert TopicSelectionScorer.weakest_skill_area(scores) == "Grammar Skills"

    def test_no_skill_area_when_all_at_threshold(self):
        scores = {"pronunciation": 75, "grammar": 80, "vocabulary": 90, "fluency": 76}
        assert TopicSelectionScorer.weakest_skill_area(scores) is None

    def test_no_scores(self):
        assert TopicSelectionScorer.weakest_skill_area({}) is None

    def test_skill_area_is_a_candidate(self, scorer):
        context = TopicSelectionContext(skill_scores={"fluency": 55.0, "vocabulary": 72.0})
        scores = {s.slug: s for s in scorer.score_topics(context)}

        assert list(scores) == ["speaking-fluency"]
        assert scores["speaking-fluency"].sources == ["skill"]

    def test_scores_from_audio_metrics(self):
        audio = AudioMetrics(pronunciation_score=68, grammar_score=82, fluency_score=None)
        assert skill_scores(audio) == {"pronunciation": 68, "grammar": 82}
        assert skill_scores(None) == {}
