"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.progress.repository import InMemoryProgressRepository  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class RecordingRepository(InMemoryProgressRepository):
    """
    In-memory repository that records every call.

    ``fail_on`` names a method that raises RuntimeError when called.
    """

    def __init__(self, fail_on: str | None = None):
        super().__init__()
        self.calls: list[tuple[str, tuple]] = []
        self.fail_on = fail_on

    def _record(self, name: str, *args):
        self.calls.append((name, args))
        if name == self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def get_learning_progress(self, user_id):
        self._record("get_learning_progress", user_id)
        return await super().get_learning_progress(user_id)

    async def get_learning_progress_with_details(self, user_id):
        self._record("get_learning_progress_with_details", user_id)
        return await super().get_learning_progress_with_details(user_id)

    async def upsert_learning_progress(self, user_id, fields):
        self._record("upsert_learning_progress", user_id, dict(fields))
        return await super().upsert_learning_progress(user_id, fields)

    async def upsert_topic_progress(self, learning_progress_id, fields):
        self._record("upsert_topic_progress", learning_progress_id, dict(fields))
        return await super().upsert_topic_progress(learning_progress_id, fields)

    async def upsert_word_progress(self, learning_progress_id, fields):
        self._record("upsert_word_progress", learning_progress_id, dict(fields))
        return await super().upsert_word_progress(learning_progress_id, fields)

    async def get_topic_progress(self, learning_progress_id, topic_name):
        self._record("get_topic_progress", learning_progress_id, topic_name)
        return await super().get_topic_progress(learning_progress_id, topic_name)

    async def get_word_progress(self, learning_progress_id, word):
        self._record("get_word_progress", learning_progress_id, word)
        return await super().get_word_progress(learning_progress_id, word)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings with engine defaults, independent of the environment."""
    return Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def repository():
    """Recording in-memory repository."""
    return RecordingRepository()


@pytest.fixture
def failing_repository():
    """Factory for a recording repository whose named method raises."""
    return lambda method: RecordingRepository(fail_on=method)


@pytest.fixture
def log_messages():
    """Capture loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def sample_lesson():
    """A completed lesson payload as serialized by the lesson service."""
    return {
        "id": "lesson-1",
        "userId": "user-1",
        "focusArea": "Travel Basics",
        "targetSkills": ["asking directions", "ordering food"],
        "steps": [
            {"id": "step-1", "stepNumber": 1, "type": "instruction", "content": "Welcome"},
            {
                "id": "step-2",
                "stepNumber": 2,
                "type": "new_word",
                "content": "Bahnhof",
                "translation": "train station",
            },
            {
                "id": "step-3",
                "stepNumber": 3,
                "type": "practice",
                "content": "Wo ist der Bahnhof?",
                "expectedAnswer": "Wo ist der Bahnhof?",
                "userResponse": "Wo ist der Bahnhof?",
                "attempts": 1,
                "correct": True,
            },
            {
                "id": "step-4",
                "stepNumber": 4,
                "type": "practice",
                "content": "Ich möchte einen Kaffee",
                "expectedAnswer": "Ich möchte einen Kaffee",
                "userResponse": "Ich mochte Kaffee",
                "attempts": 2,
                "correct": False,
            },
        ],
        "performanceMetrics": {
            "accuracy": 75,
            "overallScore": 78,
            "strengths": ["basic vocab"],
            "weaknesses": ["verb conjugation"],
        },
    }


@pytest.fixture
def sample_assessment():
    """A completed onboarding assessment with audio analysis."""
    return {
        "id": "assessment-1",
        "userId": "user-1",
        "proposedTopics": ["Travel Vocabulary", "Basic Grammar"],
        "steps": [
            {
                "id": "a-step-1",
                "stepNumber": 1,
                "type": "question",
                "content": "Translate: the book",
                "expectedAnswer": "Das Buch",
                "userResponse": "Das Buch",
                "attempts": 1,
                "correct": True,
            },
            {
                "id": "a-step-2",
                "stepNumber": 2,
                "type": "question",
                "content": "Translate: I am learning",
                "expectedAnswer": "Ich lerne",
                "userResponse": "Ich lernen",
                "attempts": 1,
                "correct": False,
            },
        ],
        "metrics": {
            "overallScore": 82,
            "strengths": ["comprehension"],
            "weaknesses": ["articles"],
        },
        "audioMetrics": {
            "overallPerformance": 81,
            "proficiencyLevel": "A2",
            "learningTrajectory": "steady",
            "pronunciationAssessment": {
                "strengths": ["vowels"],
                "areasForImprovement": ["ch sound"],
            },
            "grammarAssessment": {
                "grammarStrengths": ["basic word order"],
                "errorPatterns": [{"category": "articles", "description": "der/die/das"}],
            },
            "suggestedTopics": ["Travel", "Food"],
        },
    }
