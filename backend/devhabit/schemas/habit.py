"""
DevHabit Backend — Habit Schemas
==================================

What:  Request/response DTOs for the habits resource and the habit sort mapping.
Why:   The API contract (camelCase, nested frequency/target/milestone objects)
       differs from the flattened table layout.
How:   `from_entity` classmethods convert ORM rows; create/update DTOs carry
       the validation rules and convert back with `to_entity`/`apply_to`.

Validation rules (create and update):
    - name 3..100 characters, description at most 500
    - type, frequency.type and status must be defined enum values
    - frequency.timesPerPeriod > 0, target.value > 0
    - target.unit is one of ALLOWED_UNITS; binary habits only allow
      BINARY_UNITS
    - endDate, when present, must be in the future
    - milestone.target > 0
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from devhabit.models.habit import FrequencyType, Habit, HabitStatus, HabitType
from devhabit.schemas.common import CamelModel
from devhabit.services.sorting import SortMapping, SortMappingDefinition

ALLOWED_UNITS = frozenset(
    {"minutes", "hours", "steps", "km", "cal", "pages", "books", "tasks", "sessions"}
)
BINARY_UNITS = frozenset({"sessions", "tasks"})


# ══════════════════════════════════════════════════════════════════════════
# Value objects
# ══════════════════════════════════════════════════════════════════════════


class FrequencyDto(CamelModel):
    type: FrequencyType
    times_per_period: int = Field(gt=0, description="How many times per period")


class TargetDto(CamelModel):
    value: int = Field(gt=0)
    unit: str

    @field_validator("unit")
    @classmethod
    def validate_unit(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ALLOWED_UNITS:
            raise ValueError(f"Unit must be one of: {', '.join(sorted(ALLOWED_UNITS))}")
        return normalized


class MilestoneDto(CamelModel):
    target: int
    current: int = 0


class UpdateMilestoneDto(CamelModel):
    target: int = Field(gt=0, description="Milestone target must be greater than 0")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


def _milestone(habit: Habit) -> Optional[MilestoneDto]:
    if habit.milestone_target is None:
        return None
    return MilestoneDto(target=habit.milestone_target, current=habit.milestone_current or 0)


class HabitDto(CamelModel):
    """List representation of a habit. Field order is the shaping order."""

    id: str
    name: str
    description: Optional[str] = None
    type: HabitType
    frequency: FrequencyDto
    target: TargetDto
    status: HabitStatus
    is_archived: bool
    end_date: Optional[date] = None
    milestone: Optional[MilestoneDto] = None
    created_at_utc: datetime
    updated_at_utc: Optional[datetime] = None
    last_completed_at_utc: Optional[datetime] = None

    @classmethod
    def from_entity(cls, habit: Habit) -> "HabitDto":
        return cls(
            id=habit.id,
            name=habit.name,
            description=habit.description,
            type=habit.type,
            frequency=FrequencyDto(
                type=habit.frequency_type,
                times_per_period=habit.frequency_times_per_period,
            ),
            target=TargetDto.model_construct(value=habit.target_value, unit=habit.target_unit),
            status=habit.status,
            is_archived=habit.is_archived,
            end_date=habit.end_date,
            milestone=_milestone(habit),
            created_at_utc=habit.created_at_utc,
            updated_at_utc=habit.updated_at_utc,
            last_completed_at_utc=habit.last_completed_at_utc,
        )


class HabitWithTagsDto(HabitDto):
    """Detail representation (API version 1): the habit plus its tag names."""

    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity_with_tags(cls, habit: Habit, tags: List[str]) -> "HabitWithTagsDto":
        base = HabitDto.from_entity(habit)
        return cls(**dict(base), tags=tags)


class HabitWithTagsDtoV2(CamelModel):
    """Detail representation (API version 2): timestamps drop the Utc suffix."""

    id: str
    name: str
    description: Optional[str] = None
    type: HabitType
    frequency: FrequencyDto
    target: TargetDto
    status: HabitStatus
    is_archived: bool
    end_date: Optional[date] = None
    milestone: Optional[MilestoneDto] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity_with_tags(cls, habit: Habit, tags: List[str]) -> "HabitWithTagsDtoV2":
        base = HabitDto.from_entity(habit)
        return cls(
            id=base.id,
            name=base.name,
            description=base.description,
            type=base.type,
            frequency=base.frequency,
            target=base.target,
            status=base.status,
            is_archived=base.is_archived,
            end_date=base.end_date,
            milestone=base.milestone,
            created_at=base.created_at_utc,
            updated_at=base.updated_at_utc,
            last_completed_at=base.last_completed_at_utc,
            tags=tags,
        )


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class _HabitWriteDto(CamelModel):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    type: HabitType
    frequency: FrequencyDto
    target: TargetDto
    end_date: Optional[date] = None
    milestone: Optional[UpdateMilestoneDto] = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v <= datetime.now(timezone.utc).date():
            raise ValueError("End date must be in the future")
        return v

    @model_validator(mode="after")
    def validate_binary_unit(self):
        if self.type == HabitType.BINARY and self.target.unit not in BINARY_UNITS:
            raise ValueError(
                "Binary habits only support the units: " + ", ".join(sorted(BINARY_UNITS))
            )
        return self


class CreateHabitDto(_HabitWriteDto):
    def to_entity(self, user_id: str) -> Habit:
        return Habit(
            user_id=user_id,
            name=self.name,
            description=self.description,
            type=int(self.type),
            frequency_type=int(self.frequency.type),
            frequency_times_per_period=self.frequency.times_per_period,
            target_value=self.target.value,
            target_unit=self.target.unit,
            status=int(HabitStatus.ONGOING),
            is_archived=False,
            end_date=self.end_date,
            milestone_target=self.milestone.target if self.milestone else None,
            milestone_current=0 if self.milestone else None,
            created_at_utc=datetime.now(timezone.utc),
        )


class UpdateHabitDto(_HabitWriteDto):
    status: HabitStatus = HabitStatus.ONGOING

    def apply_to(self, habit: Habit) -> None:
        habit.name = self.name
        habit.description = self.description
        habit.type = int(self.type)
        habit.frequency_type = int(self.frequency.type)
        habit.frequency_times_per_period = self.frequency.times_per_period
        habit.target_value = self.target.value
        habit.target_unit = self.target.unit
        habit.status = int(self.status)
        habit.end_date = self.end_date
        if self.milestone is None:
            habit.milestone_target = None
            habit.milestone_current = None
        else:
            habit.milestone_target = self.milestone.target
            habit.milestone_current = habit.milestone_current or 0
        habit.updated_at_utc = datetime.now(timezone.utc)


class PatchHabitDto(CamelModel):
    """
    JSON merge patch over the habit's descriptive fields.

    Absent keys are left untouched; `"description": null` clears it.
    """

    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def reject_null_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            raise ValueError("Name cannot be null")
        return v

    def apply_to(self, habit: Habit) -> None:
        changes = self.model_dump(exclude_unset=True)
        if "name" in changes:
            habit.name = changes["name"]
        if "description" in changes:
            habit.description = changes["description"]
        habit.updated_at_utc = datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Sort mapping: logical (API) field -> Habit attribute
# ══════════════════════════════════════════════════════════════════════════

HABIT_SORT_MAPPING = SortMappingDefinition(
    dto_type=HabitDto,
    entity_type=Habit,
    mappings=(
        SortMapping("name", "name"),
        SortMapping("description", "description"),
        SortMapping("type", "type"),
        SortMapping("frequency.type", "frequency_type"),
        SortMapping("frequency.timesPerPeriod", "frequency_times_per_period"),
        SortMapping("target.value", "target_value"),
        SortMapping("target.unit", "target_unit"),
        SortMapping("status", "status"),
        SortMapping("endDate", "end_date"),
        SortMapping("createdAtUtc", "created_at_utc"),
        SortMapping("updatedAtUtc", "updated_at_utc"),
        SortMapping("lastCompletedAtUtc", "last_completed_at_utc"),
    ),
)
