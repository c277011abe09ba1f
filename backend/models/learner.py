from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin

# words_schema_version values
EMBEDDED_WORDS_SCHEMA = 1  # words stored as a JSON list in legacy_words
NORMALIZED_WORDS_SCHEMA = 2  # words stored as rows in the words table


class Learner(Base, TimestampMixin):
    __tablename__ = "learners"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    learning_language: Mapped[str] = mapped_column(String(50), nullable=False)
    native_language: Mapped[str] = mapped_column(String(50), nullable=False)
    current_level: Mapped[str] = mapped_column(String(10), nullable=False, default="A1")  # CEFR: A1-C2
    current_batch: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_active_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    legacy_words: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array
    words_schema_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=NORMALIZED_WORDS_SCHEMA
    )

    words: Mapped[list["Word"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821
    activities: Mapped[list["DailyActivity"]] = relationship(back_populates="learner")  # type: ignore[name-defined] # noqa: F821
