"""
Learning Progress Domain Models.

Canonical in-process representation of a learner's progress:
- ProficiencyLevel / MasteryLevel: totally ordered level enums
- LearningTrajectory: direction of recent score movement
- LearningProgress: per-user aggregate
- TopicProgress / WordProgress: per-topic and per-word mastery state
- PerformanceSignal: normalized summary of one completed lesson or assessment

Ordered enums expose ``rank`` and ``raise_to`` so that "raise if higher"
rules are a single comparison instead of free-form reassignment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def clamp_score(value: float) -> float:
    """Clamp a score to the 0-100 range."""
    return max(0.0, min(100.0, float(value)))


def topic_slug(name: str) -> str:
    """
    Normalize a topic name to its slug key.

    "Travel Vocabulary", " travel   vocabulary" and "travel-vocabulary"
    all map to "travel-vocabulary".
    """
    return _WHITESPACE.sub("-", name.strip().lower())


def normalize_word(text: str) -> str:
    """Normalize word/phrase text to its lookup key (case-folded, single spaces)."""
    return _WHITESPACE.sub(" ", text.strip()).casefold()


class ProficiencyLevel(str, Enum):
    """Overall learner competence, ordered beginner < intermediate < advanced."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return _PROFICIENCY_ORDER.index(self)

    def raise_to(self, other: ProficiencyLevel | None) -> ProficiencyLevel:
        """Return ``other`` if it ranks higher than this level, else this level."""
        if other is not None and other.rank > self.rank:
            return other
        return self

    @classmethod
    def from_label(cls, label: str | None) -> ProficiencyLevel | None:
        """
        Map a CEFR-like or plain proficiency label to the internal level.

        A1/A2 -> beginner, B1/B2 -> intermediate, C1/C2 -> advanced.
        Plain enum values ("Intermediate") are accepted as-is.
        Unrecognized labels map to None.
        """
        if not label:
            return None
        cleaned = label.strip()
        try:
            return cls(cleaned.lower())
        except ValueError:
            pass
        upper = cleaned.upper()
        for prefix, level in _CEFR_PREFIXES.items():
            if upper.startswith(prefix):
                return level
        return None


_PROFICIENCY_ORDER = (
    ProficiencyLevel.BEGINNER,
    ProficiencyLevel.INTERMEDIATE,
    ProficiencyLevel.ADVANCED,
)

_CEFR_PREFIXES = {
    "A1": ProficiencyLevel.BEGINNER,
    "A2": ProficiencyLevel.BEGINNER,
    "B1": ProficiencyLevel.INTERMEDIATE,
    "B2": ProficiencyLevel.INTERMEDIATE,
    "C1": ProficiencyLevel.ADVANCED,
    "C2": ProficiencyLevel.ADVANCED,
}


class MasteryLevel(str, Enum):
    """
    Mastery of a single topic or word.

    Ordered Unknown < Learning < Known < Mastered.
    """

    UNKNOWN = "Unknown"
    LEARNING = "Learning"
    KNOWN = "Known"
    MASTERED = "Mastered"

    @property
    def rank(self) -> int:
        return _MASTERY_ORDER.index(self)

    def advance(self) -> MasteryLevel:
        """Next level up (Mastered stays Mastered)."""
        return _MASTERY_ORDER[min(self.rank + 1, len(_MASTERY_ORDER) - 1)]

    def regress(self) -> MasteryLevel:
        """Known/Mastered fall back to Learning; lower levels are unchanged."""
        if self.rank >= MasteryLevel.KNOWN.rank:
            return MasteryLevel.LEARNING
        return self

    def raise_to(self, other: MasteryLevel) -> MasteryLevel:
        return other if other.rank > self.rank else self

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLevel.UNKNOWN: "dim",
            MasteryLevel.LEARNING: "yellow",
            MasteryLevel.KNOWN: "cyan",
            MasteryLevel.MASTERED: "green",
        }[self]


_MASTERY_ORDER = (
    MasteryLevel.UNKNOWN,
    MasteryLevel.LEARNING,
    MasteryLevel.KNOWN,
    MasteryLevel.MASTERED,
)


class LearningTrajectory(str, Enum):
    """Direction of recent score movement."""

    ACCELERATING = "accelerating"
    STEADY = "steady"
    DECLINING = "declining"

    @classmethod
    def from_label(cls, label: str | None) -> LearningTrajectory | None:
        """
        Map an externally produced trajectory label.

        "plateauing" (emitted by the audio analysis) is treated as steady.
        """
        if not label:
            return None
        cleaned = label.strip().lower()
        if cleaned == "plateauing":
            return cls.STEADY
        try:
            return cls(cleaned)
        except ValueError:
            return None

    @classmethod
    def from_delta(cls, delta: float, threshold: float) -> LearningTrajectory:
        if delta > threshold:
            return cls.ACCELERATING
        if delta < -threshold:
            return cls.DECLINING
        return cls.STEADY


class SignalSource(str, Enum):
    LESSON = "lesson"
    ASSESSMENT = "assessment"


@dataclass
class TopicProgress:
    """Mastery state for one topic of one learner."""

    topic_name: str  # slug key
    display_name: str = ""
    mastery_level: MasteryLevel = MasteryLevel.UNKNOWN
    score: float | None = None
    related_lesson_ids: list[str] = field(default_factory=list)
    related_assessment_ids: list[str] = field(default_factory=list)
    last_studied_at: datetime | None = None
    learning_progress_id: str | None = None
    id: str | None = None

    def to_fields(self) -> dict[str, Any]:
        """Partial-field payload for ``upsert_topic_progress``."""
        return {
            "topic_name": self.topic_name,
            "display_name": self.display_name,
            "mastery_level": self.mastery_level,
            "score": self.score,
            "related_lesson_ids": list(self.related_lesson_ids),
            "related_assessment_ids": list(self.related_assessment_ids),
            "last_studied_at": self.last_studied_at,
        }


@dataclass
class WordProgress:
    """Correctness counters and mastery for one word or phrase."""

    word: str  # normalized key
    display_text: str = ""
    translation: str | None = None
    mastery_level: MasteryLevel = MasteryLevel.UNKNOWN
    times_correct: int = 0
    times_incorrect: int = 0
    times_seen: int = 0
    consecutive_correct: int = 0
    related_lesson_step_ids: list[str] = field(default_factory=list)
    related_assessment_step_ids: list[str] = field(default_factory=list)
    first_seen_at: datetime | None = None
    last_reviewed_at: datetime | None = None
    learning_progress_id: str | None = None
    id: str | None = None

    @property
    def attempts(self) -> int:
        return self.times_correct + self.times_incorrect

    def to_fields(self) -> dict[str, Any]:
        """Partial-field payload for ``upsert_word_progress``."""
        return {
            "word": self.word,
            "display_text": self.display_text,
            "translation": self.translation,
            "mastery_level": self.mastery_level,
            "times_correct": self.times_correct,
            "times_incorrect": self.times_incorrect,
            "times_seen": self.times_seen,
            "consecutive_correct": self.consecutive_correct,
            "related_lesson_step_ids": list(self.related_lesson_step_ids),
            "related_assessment_step_ids": list(self.related_assessment_step_ids),
            "first_seen_at": self.first_seen_at,
            "last_reviewed_at": self.last_reviewed_at,
        }


@dataclass
class LearningProgress:
    """
    Durable per-user progress aggregate.

    ``topics`` and ``words`` are only populated by detailed reads.
    """

    user_id: str
    id: str | None = None
    estimated_proficiency_level: ProficiencyLevel = ProficiencyLevel.BEGINNER
    overall_score: float = 0.0
    learning_trajectory: LearningTrajectory = LearningTrajectory.STEADY
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    last_lesson_completed_at: datetime | None = None
    last_assessment_completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    topics: list[TopicProgress] = field(default_factory=list)
    words: list[WordProgress] = field(default_factory=list)

    @classmethod
    def default_fields(cls, user_id: str) -> dict[str, Any]:
        """Field payload for creating a fresh record."""
        return {
            "user_id": user_id,
            "estimated_proficiency_level": ProficiencyLevel.BEGINNER,
            "overall_score": 0.0,
            "learning_trajectory": LearningTrajectory.STEADY,
            "strengths": [],
            "weaknesses": [],
        }

    def topic(self, name: str) -> TopicProgress | None:
        key = topic_slug(name)
        for topic in self.topics:
            if topic.topic_name == key:
                return topic
        return None


@dataclass
class PerformanceSignal:
    """
    Normalized summary of one completed lesson or assessment.

    Ephemeral: built by MetricNormalizer, consumed by the aggregator and
    trackers, never persisted.
    """

    source: SignalSource
    source_id: str
    accuracy: float | None = None
    pronunciation_score: float | None = None
    grammar_score: float | None = None
    vocabulary_score: float | None = None
    overall_score: float | None = None
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    audio_overall_performance: float | None = None
    audio_proficiency_level: str | None = None
    audio_trajectory: str | None = None
    audio_suggested_topics: list[str] = field(default_factory=list)

    @property
    def effective_overall(self) -> float | None:
        """Audio overall performance when present, else the text overall score."""
        if self.audio_overall_performance is not None:
            return self.audio_overall_performance
        return self.overall_score

    @property
    def has_overall(self) -> bool:
        return self.effective_overall is not None

    @property
    def proficiency_level(self) -> ProficiencyLevel | None:
        return ProficiencyLevel.from_label(self.audio_proficiency_level)

    @property
    def trajectory(self) -> LearningTrajectory | None:
        return LearningTrajectory.from_label(self.audio_trajectory)

    def names_strength(self, topic: str) -> bool:
        key = topic_slug(topic)
        return any(topic_slug(label) == key for label in self.strengths)

    def names_weakness(self, topic: str) -> bool:
        key = topic_slug(topic)
        return any(topic_slug(label) == key for label in self.weaknesses)
