"""
SQLAlchemy Progress Repository.

Async ProgressRepository backed by the learning_progress, topic_progress
and word_progress tables. Every call runs in its own transactional scope;
upserts select by natural key and then insert or update in place.

Rows are converted to the plain dataclasses in src.progress.models so the
engine never holds ORM instances across sessions.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.db.database import async_session_scope, get_session_factory
from src.db.models.progress import LearningProgressRecord, TopicProgressRecord, WordProgressRecord
from src.progress.models import (
    LearningProgress,
    LearningTrajectory,
    MasteryLevel,
    ProficiencyLevel,
    TopicProgress,
    WordProgress,
)
from src.progress.repository import MissingKeyError, ProgressRepositoryError

_PROTECTED = {"id", "learning_progress_id", "user_id", "created_at", "updated_at"}


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return list(value)
    return value


def _assign(record: Any, fields: Mapping[str, Any]) -> None:
    """Copy mapped columns from ``fields`` onto ``record``; unknown keys are ignored."""
    columns = set(record.__table__.columns.keys())
    for key, value in fields.items():
        if key in columns and key not in _PROTECTED:
            setattr(record, key, _column_value(value))


def _topic_from_record(record: TopicProgressRecord) -> TopicProgress:
    return TopicProgress(
        topic_name=record.topic_name,
        display_name=record.display_name or "",
        mastery_level=MasteryLevel(record.mastery_level),
        score=record.score,
        related_lesson_ids=list(record.related_lesson_ids or []),
        related_assessment_ids=list(record.related_assessment_ids or []),
        last_studied_at=_aware(record.last_studied_at),
        learning_progress_id=record.learning_progress_id,
        id=record.id,
    )


def _word_from_record(record: WordProgressRecord) -> WordProgress:
    return WordProgress(
        word=record.word,
        display_text=record.display_text or "",
        translation=record.translation,
        mastery_level=MasteryLevel(record.mastery_level),
        times_correct=record.times_correct or 0,
        times_incorrect=record.times_incorrect or 0,
        times_seen=record.times_seen or 0,
        consecutive_correct=record.consecutive_correct or 0,
        related_lesson_step_ids=list(record.related_lesson_step_ids or []),
        related_assessment_step_ids=list(record.related_assessment_step_ids or []),
        first_seen_at=_aware(record.first_seen_at),
        last_reviewed_at=_aware(record.last_reviewed_at),
        learning_progress_id=record.learning_progress_id,
        id=record.id,
    )


def _progress_from_record(
    record: LearningProgressRecord, with_details: bool = False
) -> LearningProgress:
    progress = LearningProgress(
        user_id=record.user_id,
        id=record.id,
        estimated_proficiency_level=ProficiencyLevel(record.estimated_proficiency_level),
        overall_score=record.overall_score or 0.0,
        learning_trajectory=LearningTrajectory(record.learning_trajectory),
        strengths=list(record.strengths or []),
        weaknesses=list(record.weaknesses or []),
        last_lesson_completed_at=_aware(record.last_lesson_completed_at),
        last_assessment_completed_at=_aware(record.last_assessment_completed_at),
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )
    if with_details:
        progress.topics = [_topic_from_record(t) for t in record.topics]
        progress.words = [_word_from_record(w) for w in record.words]
    return progress


class SqlAlchemyProgressRepository:
    """ProgressRepository over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or get_session_factory()

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with async_session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.warning(f"Progress repository {operation} failed: {e}")
            raise ProgressRepositoryError(f"{operation} failed: {e}") from e

    async def get_learning_progress(self, user_id: str) -> LearningProgress | None:
        async with self._session("get_learning_progress") as session:
            record = await self._progress_record(session, user_id)
            return _progress_from_record(record) if record else None

    async def get_learning_progress_with_details(self, user_id: str) -> LearningProgress | None:
        async with self._session("get_learning_progress_with_details") as session:
            result = await session.execute(
                select(LearningProgressRecord)
                .options(
                    selectinload(LearningProgressRecord.topics),
                    selectinload(LearningProgressRecord.words),
                )
                .where(LearningProgressRecord.user_id == user_id)
            )
            record = result.scalar_one_or_none()
            return _progress_from_record(record, with_details=True) if record else None

    async def upsert_learning_progress(
        self, user_id: str, fields: Mapping[str, Any]
    ) -> LearningProgress:
        async with self._session("upsert_learning_progress") as session:
            record = await self._progress_record(session, user_id)
            if record is None:
                record = LearningProgressRecord(user_id=user_id, strengths=[], weaknesses=[])
                session.add(record)
                logger.debug(f"Creating learning progress for user {user_id}")
            _assign(record, fields)
            await session.flush()
            return _progress_from_record(record)

    async def upsert_topic_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> TopicProgress:
        topic_name = fields.get("topic_name")
        if not topic_name:
            raise MissingKeyError("topic_name is required for upserting TopicProgress")
        async with self._session("upsert_topic_progress") as session:
            record = await self._topic_record(session, learning_progress_id, topic_name)
            if record is None:
                record = TopicProgressRecord(
                    learning_progress_id=learning_progress_id,
                    topic_name=topic_name,
                    related_lesson_ids=[],
                    related_assessment_ids=[],
                )
                session.add(record)
            _assign(record, fields)
            await session.flush()
            return _topic_from_record(record)

    async def upsert_word_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> WordProgress:
        word = fields.get("word")
        if not word:
            raise MissingKeyError("word is required for upserting WordProgress")
        async with self._session("upsert_word_progress") as session:
            record = await self._word_record(session, learning_progress_id, word)
            if record is None:
                record = WordProgressRecord(
                    learning_progress_id=learning_progress_id,
                    word=word,
                    related_lesson_step_ids=[],
                    related_assessment_step_ids=[],
                )
                session.add(record)
            _assign(record, fields)
            await session.flush()
            return _word_from_record(record)

    async def get_topic_progress(
        self, learning_progress_id: str, topic_name: str
    ) -> TopicProgress | None:
        async with self._session("get_topic_progress") as session:
            record = await self._topic_record(session, learning_progress_id, topic_name)
            return _topic_from_record(record) if record else None

    async def get_word_progress(
        self, learning_progress_id: str, word: str
    ) -> WordProgress | None:
        async with self._session("get_word_progress") as session:
            record = await self._word_record(session, learning_progress_id, word)
            return _word_from_record(record) if record else None

    async def get_words_by_mastery(
        self,
        learning_progress_id: str,
        mastery_levels: Iterable[MasteryLevel],
        limit: int = 100,
    ) -> list[WordProgress]:
        levels = [_column_value(level) for level in mastery_levels]
        if not levels:
            return []
        async with self._session("get_words_by_mastery") as session:
            result = await session.execute(
                select(WordProgressRecord)
                .where(
                    WordProgressRecord.learning_progress_id == learning_progress_id,
                    WordProgressRecord.mastery_level.in_(levels),
                )
                # Never-reviewed words first, then least recently reviewed
                .order_by(
                    WordProgressRecord.last_reviewed_at.is_not(None),
                    WordProgressRecord.last_reviewed_at,
                    WordProgressRecord.word,
                )
                .limit(limit)
            )
            return [_word_from_record(r) for r in result.scalars().all()]

    # ----- lookups ------------------------------------------------------

    @staticmethod
    async def _progress_record(session: AsyncSession, user_id: str) -> LearningProgressRecord | None:
        result = await session.execute(
            select(LearningProgressRecord).where(LearningProgressRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _topic_record(
        session: AsyncSession, learning_progress_id: str, topic_name: str
    ) -> TopicProgressRecord | None:
        result = await session.execute(
            select(TopicProgressRecord).where(
                TopicProgressRecord.learning_progress_id == learning_progress_id,
                TopicProgressRecord.topic_name == topic_name,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _word_record(
        session: AsyncSession, learning_progress_id: str, word: str
    ) -> WordProgressRecord | None:
        result = await session.execute(
            select(WordProgressRecord).where(
                WordProgressRecord.learning_progress_id == learning_progress_id,
                WordProgressRecord.word == word,
            )
        )
        return result.scalar_one_or_none()
