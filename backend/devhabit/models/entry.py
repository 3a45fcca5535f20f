"""
DevHabit Backend — Entry SQLAlchemy Model
===========================================

What:  A single logged occurrence of a habit (e.g. "read 30 pages on 2025-03-02").
Why:   Entries are the append-mostly collection served with keyset pagination.
How:   The (user_id, date, id) index backs the cursor query
       WHERE date < :d OR (date = :d AND id <= :id) ORDER BY date DESC, id DESC.
"""

import enum
import uuid
from datetime import date as date_type, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from devhabit.database import Base
from devhabit.models.habit import utc_now


class EntrySource(enum.IntEnum):
    MANUAL = 0
    AUTOMATION = 1
    FILE_IMPORT = 2


def new_entry_id() -> str:
    return f"e_{uuid.uuid4()}"


class Entry(Base):
    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(50), primary_key=True, default=new_entry_id)
    user_id: Mapped[str] = mapped_column(String(500), nullable=False)
    habit_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("habits.id", ondelete="CASCADE"),
        nullable=False,
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    source: Mapped[int] = mapped_column(Integer, nullable=False, default=EntrySource.MANUAL)

    # Identifier assigned by an automation source; unique per source when set
    external_id: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    created_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_entries_user_id_date", "user_id", "date", "id"),
        Index("idx_entries_habit_id", "habit_id"),
    )

    def __repr__(self) -> str:
        return f"<Entry(id={self.id}, habit_id={self.habit_id}, date={self.date})>"
