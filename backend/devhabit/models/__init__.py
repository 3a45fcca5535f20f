"""
ORM models package.

Importing this package registers every table with Base.metadata, which
Alembic autogenerate and the test fixtures' create_all() both depend on.
"""

from devhabit.models.habit import FrequencyType, Habit, HabitStatus, HabitType
from devhabit.models.tag import Tag
from devhabit.models.habit_tag import HabitTag
from devhabit.models.entry import Entry, EntrySource

__all__ = [
    "Entry",
    "EntrySource",
    "FrequencyType",
    "Habit",
    "HabitStatus",
    "HabitTag",
    "HabitType",
    "Tag",
]
