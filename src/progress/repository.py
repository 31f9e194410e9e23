"""
Learning Progress Repository.

The engine talks to storage only through ProgressRepository. Two
implementations exist:
- InMemoryProgressRepository (this module): dict-backed, used by tests
- SqlAlchemyProgressRepository (src.db.progress_repository): async SQLAlchemy

Upserts take partial field mappings and are idempotent per key:
learning progress by user_id, topics by (learning_progress_id, topic_name),
words by (learning_progress_id, word).
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import fields as dataclass_fields
from datetime import UTC, datetime
from typing import Any, Protocol

from src.progress.models import LearningProgress, MasteryLevel, TopicProgress, WordProgress


class ProgressRepositoryError(Exception):
    """Base error raised by progress repositories."""


class MissingKeyError(ProgressRepositoryError):
    """A topic or word upsert was issued without its key field."""


class ProgressRepository(Protocol):
    """Storage contract consumed by the progress engine."""

    async def get_learning_progress(self, user_id: str) -> LearningProgress | None: ...

    async def get_learning_progress_with_details(self, user_id: str) -> LearningProgress | None: ...

    async def upsert_learning_progress(
        self, user_id: str, fields: Mapping[str, Any]
    ) -> LearningProgress: ...

    async def upsert_topic_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> TopicProgress: ...

    async def upsert_word_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> WordProgress: ...

    async def get_topic_progress(
        self, learning_progress_id: str, topic_name: str
    ) -> TopicProgress | None: ...

    async def get_word_progress(
        self, learning_progress_id: str, word: str
    ) -> WordProgress | None: ...

    async def get_words_by_mastery(
        self,
        learning_progress_id: str,
        mastery_levels: Iterable[MasteryLevel],
        limit: int = 100,
    ) -> list[WordProgress]: ...


def _apply(target: Any, values: Mapping[str, Any]) -> None:
    """Copy known dataclass fields from ``values`` onto ``target``."""
    allowed = {f.name for f in dataclass_fields(target)}
    for key, value in values.items():
        if key in allowed and key not in ("id", "learning_progress_id"):
            setattr(target, key, copy.deepcopy(value))


class InMemoryProgressRepository:
    """Dict-backed ProgressRepository. Returned objects are copies."""

    def __init__(self) -> None:
        self._progress: dict[str, LearningProgress] = {}
        self._topics: dict[tuple[str, str], TopicProgress] = {}
        self._words: dict[tuple[str, str], WordProgress] = {}

    async def get_learning_progress(self, user_id: str) -> LearningProgress | None:
        progress = self._progress.get(user_id)
        return copy.deepcopy(progress) if progress else None

    async def get_learning_progress_with_details(self, user_id: str) -> LearningProgress | None:
        progress = await self.get_learning_progress(user_id)
        if progress is None:
            return None
        progress.topics = [
            copy.deepcopy(t) for (lp_id, _), t in self._topics.items() if lp_id == progress.id
        ]
        progress.words = [
            copy.deepcopy(w) for (lp_id, _), w in self._words.items() if lp_id == progress.id
        ]
        return progress

    async def upsert_learning_progress(
        self, user_id: str, fields: Mapping[str, Any]
    ) -> LearningProgress:
        now = datetime.now(UTC)
        progress = self._progress.get(user_id)
        if progress is None:
            progress = LearningProgress(user_id=user_id, id=str(uuid.uuid4()), created_at=now)
            self._progress[user_id] = progress
        _apply(progress, {k: v for k, v in fields.items() if k not in ("topics", "words", "user_id")})
        progress.updated_at = now
        return copy.deepcopy(progress)

    async def upsert_topic_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> TopicProgress:
        topic_name = fields.get("topic_name")
        if not topic_name:
            raise MissingKeyError("topic_name is required for upserting TopicProgress")
        key = (learning_progress_id, topic_name)
        topic = self._topics.get(key)
        if topic is None:
            topic = TopicProgress(
                topic_name=topic_name,
                learning_progress_id=learning_progress_id,
                id=str(uuid.uuid4()),
            )
            self._topics[key] = topic
        _apply(topic, fields)
        return copy.deepcopy(topic)

    async def upsert_word_progress(
        self, learning_progress_id: str, fields: Mapping[str, Any]
    ) -> WordProgress:
        word = fields.get("word")
        if not word:
            raise MissingKeyError("word is required for upserting WordProgress")
        key = (learning_progress_id, word)
        record = self._words.get(key)
        if record is None:
            record = WordProgress(
                word=word,
                learning_progress_id=learning_progress_id,
                id=str(uuid.uuid4()),
            )
            self._words[key] = record
        _apply(record, fields)
        return copy.deepcopy(record)

    async def get_topic_progress(
        self, learning_progress_id: str, topic_name: str
    ) -> TopicProgress | None:
        topic = self._topics.get((learning_progress_id, topic_name))
        return copy.deepcopy(topic) if topic else None

    async def get_word_progress(
        self, learning_progress_id: str, word: str
    ) -> WordProgress | None:
        record = self._words.get((learning_progress_id, word))
        return copy.deepcopy(record) if record else None

    async def get_words_by_mastery(
        self,
        learning_progress_id: str,
        mastery_levels: Iterable[MasteryLevel],
        limit: int = 100,
    ) -> list[WordProgress]:
        levels = set(mastery_levels)
        matches = [
            w
            for (lp_id, _), w in self._words.items()
            if lp_id == learning_progress_id and w.mastery_level in levels
        ]
        # Least recently reviewed first; never-reviewed words lead
        matches.sort(key=lambda w: (w.last_reviewed_at is not None, w.last_reviewed_at or datetime.min.replace(tzinfo=UTC)))
        return [copy.deepcopy(w) for w in matches[:limit]]
