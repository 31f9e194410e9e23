"""
Adaptive Learning Progress & Mastery Engine.

Components:
- MetricNormalizer: lesson/assessment metrics -> PerformanceSignal
- TopicMasteryTracker / WordMasteryTracker: per-entity mastery state
- ProgressAggregator: folds signals into LearningProgress (main service)
- TopicSelectionScorer: ranks topics for the next generated lessons
"""
from src.progress.aggregator import ProgressAggregator
from src.progress.events import (
    AssessmentLesson,
    AssessmentStep,
    AudioMetrics,
    LessonModel,
    LessonStep,
    OnboardingPreferences,
    PerformanceMetrics,
)
from src.progress.models import (
    LearningProgress,
    LearningTrajectory,
    MasteryLevel,
    PerformanceSignal,
    ProficiencyLevel,
    SignalSource,
    TopicProgress,
    WordProgress,
    topic_slug,
)
from src.progress.normalizer import MetricNormalizer
from src.progress.repository import (
    InMemoryProgressRepository,
    MissingKeyError,
    ProgressRepository,
    ProgressRepositoryError,
)
from src.progress.topic_selector import TopicSelectionContext, TopicSelectionScorer
from src.progress.topic_tracker import TopicMasteryTracker
from src.progress.word_tracker import WordAttempt, WordMasteryTracker

__all__ = [
    # Main service
    "ProgressAggregator",
    # Components
    "MetricNormalizer",
    "TopicMasteryTracker",
    "WordMasteryTracker",
    "WordAttempt",
    "TopicSelectionScorer",
    "TopicSelectionContext",
    # Repository
    "ProgressRepository",
    "InMemoryProgressRepository",
    "ProgressRepositoryError",
    "MissingKeyError",
    # Domain models
    "LearningProgress",
    "TopicProgress",
    "WordProgress",
    "PerformanceSignal",
    "topic_slug",
    # Enums
    "ProficiencyLevel",
    "MasteryLevel",
    "LearningTrajectory",
    "SignalSource",
    # Payloads
    "LessonModel",
    "LessonStep",
    "AssessmentLesson",
    "AssessmentStep",
    "AudioMetrics",
    "PerformanceMetrics",
    "OnboardingPreferences",
]
