"""
Metric Normalizer.

Converts heterogeneous completion payloads into one PerformanceSignal so
the rest of the engine never branches on lesson vs. assessment or on
text-only vs. audio-augmented metrics.

Rules:
- Audio overall performance, proficiency label and trajectory are carried
  alongside the text metrics; PerformanceSignal.effective_overall prefers
  the audio value.
- Strengths/weaknesses from text metrics and audio sub-assessments are
  unioned (order kept, exact-text duplicates dropped).
- A missing text overall score is not replaced by accuracy; the signal
  simply has no overall and the aggregator skips its score step.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from src.progress.events import AssessmentLesson, AudioMetrics, LessonModel, PerformanceMetrics
from src.progress.models import PerformanceSignal, SignalSource, clamp_score


def merge_labels(*groups: Iterable[str]) -> list[str]:
    """Ordered union of label groups, deduplicated by exact (stripped) text."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for label in group:
            cleaned = label.strip() if isinstance(label, str) else ""
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                merged.append(cleaned)
    return merged


def _score(value: float | None) -> float | None:
    return None if value is None else clamp_score(value)


class MetricNormalizer:
    """Pure mapping from completion records to PerformanceSignal."""

    def from_lesson(self, lesson: LessonModel) -> PerformanceSignal:
        return self._build(
            SignalSource.LESSON,
            lesson.id,
            lesson.performance_metrics,
            lesson.audio_metrics,
        )

    def from_assessment(self, assessment: AssessmentLesson) -> PerformanceSignal:
        return self._build(
            SignalSource.ASSESSMENT,
            assessment.id,
            assessment.metrics,
            assessment.audio_metrics,
        )

    def _build(
        self,
        source: SignalSource,
        source_id: str,
        metrics: PerformanceMetrics | None,
        audio: AudioMetrics | None,
    ) -> PerformanceSignal:
        metrics = metrics or PerformanceMetrics()

        signal = PerformanceSignal(
            source=source,
            source_id=source_id,
            accuracy=_score(metrics.accuracy),
            pronunciation_score=_score(metrics.pronunciation_score),
            grammar_score=_score(metrics.grammar_score),
            vocabulary_score=_score(metrics.vocabulary_score),
            overall_score=_score(metrics.overall_score),
            strengths=merge_labels(metrics.strengths, self._audio_strengths(audio)),
            weaknesses=merge_labels(metrics.weaknesses, self._audio_weaknesses(audio)),
        )

        if audio is not None:
            signal.audio_overall_performance = _score(audio.overall_performance)
            signal.audio_proficiency_level = audio.proficiency_level
            signal.audio_trajectory = audio.learning_trajectory
            signal.audio_suggested_topics = merge_labels(audio.suggested_topics)

        if not signal.has_overall:
            logger.debug(f"{source.value} {source_id} has no overall score; score update will be skipped")

        return signal

    @staticmethod
    def _audio_strengths(audio: AudioMetrics | None) -> list[str]:
        if audio is None:
            return []
        labels: list[str] = []
        if audio.pronunciation_assessment:
            labels.extend(audio.pronunciation_assessment.strengths)
        if audio.grammar_assessment:
            labels.extend(audio.grammar_assessment.grammar_strengths)
        return labels

    @staticmethod
    def _audio_weaknesses(audio: AudioMetrics | None) -> list[str]:
        if audio is None:
            return []
        labels: list[str] = []
        if audio.pronunciation_assessment:
            labels.extend(audio.pronunciation_assessment.areas_for_improvement)
        if audio.grammar_assessment:
            labels.extend(p.category for p in audio.grammar_assessment.error_patterns)
        return labels
