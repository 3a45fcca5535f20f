"""
Association between habits and tags.

Composite primary key (habit_id, tag_id). Both foreign keys cascade so
deleting a habit or a tag removes its links.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from devhabit.database import Base
from devhabit.models.habit import utc_now


class HabitTag(Base):
    __tablename__ = "habit_tags"

    habit_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("habits.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<HabitTag(habit_id={self.habit_id}, tag_id={self.tag_id})>"
