"""
Topic Selection for Lesson Generation.

Ranks candidate topics for the next generated lessons. Each source that
suggests a topic adds weight to it:

    audio analysis suggested topics        3.0 each
    latest assessment proposed topics      2.0 each
    stored weaknesses (first two)          2.0 each
    weak topics (below Known)              0.5 per level below Known
    beginner basics (beginner learners)    1.5 each
    weakest skill area (score below 75)    1.0
    learning-purpose topics                1.0 each

Weak topics are visited least recently studied first (never studied
before anything else). Candidates are slug-normalized before weighting,
sorted by weight (descending, ties by first-seen order) and the top N
distinct slugs are returned. When fewer than N candidates exist the list
is filled from DEFAULT_TOPICS. Pure and deterministic: no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from src.progress.events import AudioMetrics, OnboardingPreferences
from src.progress.models import (
    LearningProgress,
    MasteryLevel,
    ProficiencyLevel,
    TopicProgress,
    topic_slug,
)

BEGINNER_BASICS = ("Greetings", "Introductions", "Basic Phrases")

PURPOSE_TOPICS: dict[str, tuple[str, ...]] = {
    "travel": ("Airport Navigation", "Hotel Booking", "Restaurant Ordering"),
    "business": ("Business Meeting", "Email Communication", "Phone Conversations"),
    "academic": ("Classroom Vocabulary", "Academic Writing", "Study Discussions"),
    "general": ("Daily Greetings", "Shopping", "Directions"),
}

SKILL_AREA_TOPICS: dict[str, str] = {
    "pronunciation": "Pronunciation Practice",
    "grammar": "Grammar Skills",
    "vocabulary": "Vocabulary Building",
    "fluency": "Speaking Fluency",
}

WEAK_SKILL_THRESHOLD = 75.0

DEFAULT_TOPICS = ("Daily Conversations", "Practical Vocabulary", "Essential Grammar")


def skill_scores(audio: AudioMetrics | None) -> dict[str, float]:
    """Per-skill scores from audio analysis, skipping the ones it did not report."""
    if audio is None:
        return {}
    reported = {
        "pronunciation": audio.pronunciation_score,
        "grammar": audio.grammar_score,
        "vocabulary": audio.vocabulary_score,
        "fluency": audio.fluency_score,
    }
    return {skill: score for skill, score in reported.items() if score is not None}


@dataclass
class TopicSelectionContext:
    """Inputs for one topic selection."""

    progress: LearningProgress | None = None
    preferences: OnboardingPreferences | None = None
    assessment_topics: list[str] = field(default_factory=list)
    audio_suggested_topics: list[str] = field(default_factory=list)
    skill_scores: dict[str, float] = field(default_factory=dict)

    @property
    def proficiency(self) -> ProficiencyLevel | None:
        """Stored level when progress exists, else the declared onboarding level."""
        if self.progress is not None:
            return self.progress.estimated_proficiency_level
        if self.preferences is not None:
            return ProficiencyLevel.from_label(self.preferences.proficiency_level)
        return None


@dataclass
class TopicScore:
    slug: str
    weight: float
    sources: list[str] = field(default_factory=list)


class TopicSelectionScorer:
    """Weighted, deterministic topic ranking."""

    WEIGHT_AUDIO = 3.0
    WEIGHT_ASSESSMENT = 2.0
    WEIGHT_STORED_WEAKNESS = 2.0
    WEIGHT_WEAK_PER_LEVEL = 0.5
    WEIGHT_BEGINNER_BASICS = 1.5
    WEIGHT_SKILL_AREA = 1.0
    WEIGHT_PURPOSE = 1.0

    STORED_WEAKNESS_COUNT = 2

    def __init__(self, default_count: int = 3):
        if default_count <= 0:
            raise ValueError("default_count must be positive")
        self.default_count = default_count

    def select_topics(
        self, user_id: str, context: TopicSelectionContext, limit: int | None = None
    ) -> list[str]:
        """
        Choose topic slugs for the next lessons.

        Args:
            user_id: Learner identifier (used for logging only)
            context: Progress, preferences and recent topic suggestions
            limit: Number of topics (defaults to default_count)

        Returns:
            Ordered list of at most ``limit`` distinct slugs
        """
        count = limit if limit is not None else self.default_count
        if count <= 0:
            return []

        ranked = self.score_topics(context)
        selected = [score.slug for score in ranked[:count]]

        for topic in DEFAULT_TOPICS:
            if len(selected) >= count:
                break
            slug = topic_slug(topic)
            if slug not in selected:
                selected.append(slug)

        logger.debug(f"Selected topics for user {user_id}: {selected}")
        return selected

    def score_topics(self, context: TopicSelectionContext) -> list[TopicScore]:
        """All candidates with their accumulated weight, best first."""
        scores: dict[str, TopicScore] = {}

        self._add(scores, context.audio_suggested_topics, self.WEIGHT_AUDIO, "audio")
        self._add(scores, context.assessment_topics, self.WEIGHT_ASSESSMENT, "assessment")

        if context.progress is not None:
            self._add(
                scores,
                context.progress.weaknesses[: self.STORED_WEAKNESS_COUNT],
                self.WEIGHT_STORED_WEAKNESS,
                "weakness",
            )
            for topic in _least_recently_studied(context.progress.topics):
                gap = MasteryLevel.KNOWN.rank - topic.mastery_level.rank
                if gap > 0:
                    self._add(scores, [topic.topic_name], self.WEIGHT_WEAK_PER_LEVEL * gap, "weak")

        if context.proficiency is ProficiencyLevel.BEGINNER:
            self._add(scores, BEGINNER_BASICS, self.WEIGHT_BEGINNER_BASICS, "beginner")

        weakest = self.weakest_skill_area(context.skill_scores)
        if weakest is not None:
            self._add(scores, [weakest], self.WEIGHT_SKILL_AREA, "skill")

        self._add(scores, self.purpose_topics(context.preferences), self.WEIGHT_PURPOSE, "purpose")

        # sorted() is stable, so equal weights keep first-seen order
        return sorted(scores.values(), key=lambda s: -s.weight)

    @staticmethod
    def weakest_skill_area(scores: dict[str, float]) -> str | None:
        """Practice topic for the lowest-scoring skill, if it is below the threshold."""
        known = [(score, skill) for skill, score in scores.items() if skill in SKILL_AREA_TOPICS]
        if not known:
            return None
        score, skill = min(known)
        if score >= WEAK_SKILL_THRESHOLD:
            return None
        return SKILL_AREA_TOPICS[skill]

    @staticmethod
    def purpose_topics(preferences: OnboardingPreferences | None) -> tuple[str, ...]:
        """Topics for the declared learning purpose; unknown purposes get the general list."""
        if preferences is None or not preferences.learning_purpose:
            return ()
        purpose = preferences.learning_purpose.strip().lower()
        return PURPOSE_TOPICS.get(purpose, PURPOSE_TOPICS["general"])

    @staticmethod
    def _add(
        scores: dict[str, TopicScore], topics: Iterable[str], weight: float, source: str
    ) -> None:
        seen: set[str] = set()
        for topic in topics:
            if not topic or not topic.strip():
                continue
            slug = topic_slug(topic)
            # a source counts once per topic
            if slug in seen:
                continue
            seen.add(slug)
            entry = scores.setdefault(slug, TopicScore(slug=slug, weight=0.0))
            entry.weight += weight
            if source not in entry.sources:
                entry.sources.append(source)


def _least_recently_studied(topics: list[TopicProgress]) -> list[TopicProgress]:
    # never studied first; sorted() keeps stored order among equals
    return sorted(
        topics,
        key=lambda t: (t.last_studied_at is not None, t.last_studied_at or datetime.min),
    )
