"""
Completion Event Payloads.

Pydantic models for the records handed to the progress engine by the
lesson, assessment and onboarding services after they have persisted a
completion. Field names are snake_case; camelCase aliases accept the
payloads exactly as those services serialize them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ========================================
# Metrics
# ========================================


class PerformanceMetrics(_Payload):
    """Text-derived metrics attached to a completed lesson or assessment."""

    accuracy: float | None = None
    pronunciation_score: float | None = None
    grammar_score: float | None = None
    vocabulary_score: float | None = None
    overall_score: float | None = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class PronunciationAssessment(_Payload):
    overall_score: float | None = None
    problematic_sounds: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    areas_for_improvement: list[str] = Field(default_factory=list)


class GrammarErrorPattern(_Payload):
    category: str
    description: str | None = None
    frequency: str | None = None
    severity: str | None = None


class GrammarAssessment(_Payload):
    overall_score: float | None = None
    error_patterns: list[GrammarErrorPattern] = Field(default_factory=list)
    grammar_strengths: list[str] = Field(default_factory=list)


class AudioMetrics(_Payload):
    """Metrics produced by the audio (speech) analysis of a lesson or assessment."""

    id: str | None = None
    pronunciation_score: float | None = None
    fluency_score: float | None = None
    grammar_score: float | None = None
    vocabulary_score: float | None = None
    overall_performance: float | None = None
    proficiency_level: str | None = None
    learning_trajectory: str | None = None
    pronunciation_assessment: PronunciationAssessment | None = None
    grammar_assessment: GrammarAssessment | None = None
    suggested_topics: list[str] = Field(default_factory=list)
    grammar_focus_areas: list[str] = Field(default_factory=list)
    vocabulary_domains: list[str] = Field(default_factory=list)


# ========================================
# Steps
# ========================================


class LessonStep(_Payload):
    id: str
    step_number: int = 0
    type: str
    content: str = ""
    translation: str | None = None
    expected_answer: str | None = None
    user_response: str | None = None
    attempts: int | None = None
    correct: bool | None = None
    error_patterns: list[str] = Field(default_factory=list)


class AssessmentStep(_Payload):
    id: str
    step_number: int = 0
    type: str
    content: str = ""
    translation: str | None = None
    expected_answer: str | None = None
    user_response: str | None = None
    attempts: int | None = None
    correct: bool | None = None


# ========================================
# Completion records
# ========================================


class LessonModel(_Payload):
    """A completed generated lesson."""

    id: str
    user_id: str | None = None
    focus_area: str = ""
    target_skills: list[str] = Field(default_factory=list)
    steps: list[LessonStep] = Field(default_factory=list)
    performance_metrics: PerformanceMetrics | None = None
    audio_metrics: AudioMetrics | None = None
    completed: bool = True
    updated_at: datetime | None = None


class AssessmentLesson(_Payload):
    """A completed onboarding assessment."""

    id: str
    user_id: str | None = None
    description: str | None = None
    source_language: str | None = None
    target_language: str | None = None
    proposed_topics: list[str] = Field(default_factory=list)
    steps: list[AssessmentStep] = Field(default_factory=list)
    metrics: PerformanceMetrics | None = None
    audio_metrics: AudioMetrics | None = None
    summary: str | None = None
    completed: bool = True
    updated_at: datetime | None = None


class OnboardingPreferences(_Payload):
    """Preferences captured during onboarding."""

    native_language: str | None = None
    target_language: str | None = None
    learning_purpose: str | None = None
    proficiency_level: str | None = None


def load_lesson(data: dict[str, Any]) -> LessonModel:
    """Validate a lesson payload (raises pydantic.ValidationError)."""
    return LessonModel.model_validate(data)


def load_assessment(data: dict[str, Any]) -> AssessmentLesson:
    """Validate an assessment payload (raises pydantic.ValidationError)."""
    return AssessmentLesson.model_validate(data)
