"""
DevHabit Backend — Habit SQLAlchemy Model
===========================================

What:  ORM model representing the `habits` table.
Why:   A habit is the central aggregate: entries are logged against it and
       tags are attached to it.
How:   Frequency, target and milestone are value objects in the API but are
       flattened into columns here (frequency_type, target_value, ...), so
       the sort mapping registry can address them as plain attributes.

Table Design Rationale:
    - String primary key with an "h_" prefix: the prefix makes IDs
      self-describing in logs and lets validators reject IDs of the wrong kind.
    - user_id on every row: all queries are scoped to the authenticated user.
    - Enum columns stored as integers (HabitType, HabitStatus, FrequencyType).
"""

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from devhabit.database import Base


class HabitType(enum.IntEnum):
    NONE = 0
    BINARY = 1
    MEASURABLE = 2


class HabitStatus(enum.IntEnum):
    NONE = 0
    ONGOING = 1
    COMPLETED = 2


class FrequencyType(enum.IntEnum):
    NONE = 0
    DAILY = 1
    WEEKLY = 2
    MONTHLY = 3


def new_habit_id() -> str:
    return f"h_{uuid.uuid4()}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Habit(Base):
    """
    A habit the user is building or tracking.

    Query Patterns:
        - List a user's habits: WHERE user_id = :uid [AND type/status/search]
          ORDER BY <dynamic sort> OFFSET/LIMIT → idx_habits_user_id
        - Single habit: WHERE id = :id AND user_id = :uid
    """

    __tablename__ = "habits"

    id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        default=new_habit_id,
        comment="Prefixed identifier (h_<uuid>)",
    )
    user_id: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Owner: subject claim of the access token",
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    type: Mapped[int] = mapped_column(Integer, nullable=False, default=HabitType.NONE)

    # ── Frequency ─────────────────────────────────────────────────────────
    frequency_type: Mapped[int] = mapped_column(Integer, nullable=False, default=FrequencyType.NONE)
    frequency_times_per_period: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # ── Target ────────────────────────────────────────────────────────────
    target_value: Mapped[int] = mapped_column(Integer, nullable=False)
    target_unit: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[int] = mapped_column(Integer, nullable=False, default=HabitStatus.ONGOING)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # ── Milestone ─────────────────────────────────────────────────────────
    milestone_target: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    milestone_current: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_completed_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_habits_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Habit(id={self.id}, name='{self.name}', status={self.status})>"
