"""Vocabulary word model, one row per learner-owned word."""

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base, TimestampMixin


class Word(Base, TimestampMixin):
    """A vocabulary item owned by exactly one learner.

    ``batch_number`` is assigned once at creation and never changes.
    """

    __tablename__ = "words"
    __table_args__ = (
        Index(
            "ix_words_partition_batch",
            "learner_id",
            "proficiency_level",
            "learning_language",
            "batch_number",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False)
    original: Mapped[str] = mapped_column(String(500), nullable=False)
    translation: Mapped[str] = mapped_column(String(500), nullable=False)
    learning_language: Mapped[str] = mapped_column(String(50), nullable=False)
    native_language: Mapped[str] = mapped_column(String(50), nullable=False)
    proficiency_level: Mapped[str] = mapped_column(String(10), nullable=False)  # A1-C2
    batch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    learned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    learner: Mapped["Learner"] = relationship(back_populates="words")  # type: ignore[name-defined] # noqa: F821

    def to_dict(self) -> dict:
        """Plain representation used for API responses and cache payloads."""
        return {
            "id": self.id,
            "original": self.original,
            "translation": self.translation,
            "learned": self.learned,
            "proficiency_level": self.proficiency_level,
            "batch_number": self.batch_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
