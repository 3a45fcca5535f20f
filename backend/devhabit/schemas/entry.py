"""
DevHabit Backend — Entry Schemas
==================================

What:  DTOs for habit entries, batch creation, statistics and the entry sort
       mapping.
Who:   Used by routes/entries.py and services/entry_service.py.

Validation (create):
    - habitId must be non-empty (existence is checked by the service)
    - value > 0
    - notes at most 1000 characters
    - date must not be in the future (UTC)
"""

from datetime import date as date_type, datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator

from devhabit.models.entry import Entry, EntrySource
from devhabit.schemas.common import CamelModel
from devhabit.services.sorting import SortMapping, SortMappingDefinition

MAX_BATCH_SIZE = 20


class EntryDto(CamelModel):
    id: str
    habit_id: str
    value: int
    notes: Optional[str] = None
    source: EntrySource
    external_id: Optional[str] = None
    is_archived: bool
    date: date_type
    created_at_utc: datetime
    updated_at_utc: Optional[datetime] = None

    @classmethod
    def from_entity(cls, entry: Entry) -> "EntryDto":
        return cls(
            id=entry.id,
            habit_id=entry.habit_id,
            value=entry.value,
            notes=entry.notes,
            source=entry.source,
            external_id=entry.external_id,
            is_archived=entry.is_archived,
            date=entry.date,
            created_at_utc=entry.created_at_utc,
            updated_at_utc=entry.updated_at_utc,
        )


class CreateEntryDto(CamelModel):
    habit_id: str = Field(min_length=1, description="Habit the entry is logged against")
    value: int = Field(gt=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    date: date_type

    @field_validator("habit_id")
    @classmethod
    def validate_habit_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Habit does not exist.")
        return v

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: date_type) -> date_type:
        if v > datetime.now(timezone.utc).date():
            raise ValueError("Date cannot be in the future.")
        return v

    def to_entity(self, user_id: str) -> Entry:
        return Entry(
            user_id=user_id,
            habit_id=self.habit_id,
            value=self.value,
            notes=self.notes,
            source=int(EntrySource.MANUAL),
            is_archived=False,
            date=self.date,
            created_at_utc=datetime.now(timezone.utc),
        )


class CreateEntryBatchDto(CamelModel):
    entries: List[CreateEntryDto] = Field(min_length=1, max_length=MAX_BATCH_SIZE)


class UpdateEntryDto(CamelModel):
    value: int = Field(gt=0)
    notes: Optional[str] = Field(default=None, max_length=1000)

    def apply_to(self, entry: Entry) -> None:
        entry.value = self.value
        entry.notes = self.notes
        entry.updated_at_utc = datetime.now(timezone.utc)


class DailyStatsDto(CamelModel):
    date: date_type
    count: int


class EntryStatsDto(CamelModel):
    daily_stats: List[DailyStatsDto] = Field(default_factory=list)
    total_entries: int = 0
    current_streak: int = 0
    longest_streak: int = 0


ENTRY_SORT_MAPPING = SortMappingDefinition(
    dto_type=EntryDto,
    entity_type=Entry,
    mappings=(
        SortMapping("value", "value"),
        SortMapping("notes", "notes"),
        SortMapping("source", "source"),
        SortMapping("isArchived", "is_archived"),
        SortMapping("date", "date"),
        SortMapping("createdAtUtc", "created_at_utc"),
        SortMapping("updatedAtUtc", "updated_at_utc"),
    ),
)
