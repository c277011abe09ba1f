"""SQLAlchemy ORM models for the Lexibatch database."""

from backend.models.base import Base
from backend.models.daily_activity import DailyActivity
from backend.models.learner import Learner
from backend.models.word import Word

__all__ = ["Base", "DailyActivity", "Learner", "Word"]
