"""
Learning Progress Models.

SQLAlchemy models backing the progress engine:
- LearningProgressRecord: one row per user (overall score, level, trajectory)
- TopicProgressRecord: per-topic mastery, unique per (progress, topic slug)
- WordProgressRecord: per-word counters, unique per (progress, normalized word)

Label and id lists use the portable JSON type so the same schema runs on
PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LearningProgressRecord(Base):
    """Durable per-user progress aggregate."""

    __tablename__ = "learning_progress"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    estimated_proficiency_level: Mapped[str] = mapped_column(Text, default="beginner")
    overall_score: Mapped[float] = mapped_column(Float, default=0.0)
    learning_trajectory: Mapped[str] = mapped_column(Text, default="steady")
    strengths: Mapped[list] = mapped_column(JSON, default=list)
    weaknesses: Mapped[list] = mapped_column(JSON, default=list)

    last_lesson_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_assessment_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    topics: Mapped[list[TopicProgressRecord]] = relationship(
        back_populates="learning_progress",
        cascade="all, delete-orphan",
        order_by="TopicProgressRecord.topic_name",
    )
    words: Mapped[list[WordProgressRecord]] = relationship(
        back_populates="learning_progress",
        cascade="all, delete-orphan",
        order_by="WordProgressRecord.word",
    )

    def __repr__(self) -> str:
        return f"<LearningProgressRecord user={self.user_id} score={self.overall_score}>"


class TopicProgressRecord(Base):
    """Mastery of one topic for one learner."""

    __tablename__ = "topic_progress"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    learning_progress_id: Mapped[str] = mapped_column(
        ForeignKey("learning_progress.id", ondelete="CASCADE"), nullable=False
    )
    topic_name: Mapped[str] = mapped_column(Text, nullable=False)  # slug
    display_name: Mapped[str] = mapped_column(Text, default="")
    mastery_level: Mapped[str] = mapped_column(Text, default="Unknown")
    score: Mapped[float | None] = mapped_column(Float)
    related_lesson_ids: Mapped[list] = mapped_column(JSON, default=list)
    related_assessment_ids: Mapped[list] = mapped_column(JSON, default=list)
    last_studied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    learning_progress: Mapped[LearningProgressRecord] = relationship(back_populates="topics")

    __table_args__ = (
        UniqueConstraint("learning_progress_id", "topic_name", name="uq_progress_topic"),
        Index("idx_topic_progress_mastery", "learning_progress_id", "mastery_level"),
    )

    def __repr__(self) -> str:
        return f"<TopicProgressRecord topic={self.topic_name} level={self.mastery_level}>"


class WordProgressRecord(Base):
    """Correctness counters for one word or phrase for one learner."""

    __tablename__ = "word_progress"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=_new_id)
    learning_progress_id: Mapped[str] = mapped_column(
        ForeignKey("learning_progress.id", ondelete="CASCADE"), nullable=False
    )
    word: Mapped[str] = mapped_column(Text, nullable=False)  # normalized key
    display_text: Mapped[str] = mapped_column(Text, default="")
    translation: Mapped[str | None] = mapped_column(Text)
    mastery_level: Mapped[str] = mapped_column(Text, default="Unknown")

    times_correct: Mapped[int] = mapped_column(Integer, default=0)
    times_incorrect: Mapped[int] = mapped_column(Integer, default=0)
    times_seen: Mapped[int] = mapped_column(Integer, default=0)
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0)

    related_lesson_step_ids: Mapped[list] = mapped_column(JSON, default=list)
    related_assessment_step_ids: Mapped[list] = mapped_column(JSON, default=list)

    first_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    learning_progress: Mapped[LearningProgressRecord] = relationship(back_populates="words")

    __table_args__ = (
        UniqueConstraint("learning_progress_id", "word", name="uq_progress_word"),
        Index("idx_word_progress_mastery", "learning_progress_id", "mastery_level"),
    )

    def __repr__(self) -> str:
        return f"<WordProgressRecord word={self.word} level={self.mastery_level}>"
