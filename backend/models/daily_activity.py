from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base


class DailyActivity(Base):
    __tablename__ = "daily_activities"
    __table_args__ = (UniqueConstraint("learner_id", "activity_date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(ForeignKey("learners.id"), nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    words_learned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    learner: Mapped["Learner"] = relationship(back_populates="activities")  # type: ignore[name-defined] # noqa: F821
