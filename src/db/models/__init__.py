# SQLAlchemy models
from .base import Base
from .progress import LearningProgressRecord, TopicProgressRecord, WordProgressRecord

__all__ = [
    # Base
    "Base",
    # Learning progress
    "LearningProgressRecord",
    "TopicProgressRecord",
    "WordProgressRecord",
]
