"""
DevHabit Backend — Habit Schema Validation Tests
==================================================

What we test:
    ✅ Valid create payload (camelCase input)
    ✅ Name length, positive frequency/target, allowed units
    ✅ Binary habits restricted to binary units
    ✅ End date must be in the future
    ✅ Merge patch semantics (absent vs null)
    ✅ Entity → DTO projection nests frequency/target/milestone
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from devhabit.models.habit import Habit, HabitStatus, HabitType
from devhabit.schemas.habit import (
    CreateHabitDto,
    HabitDto,
    HabitWithTagsDtoV2,
    PatchHabitDto,
    UpdateHabitDto,
)


def _payload(**overrides):
    payload = {
        "name": "Read books",
        "type": 2,
        "frequency": {"type": 1, "timesPerPeriod": 1},
        "target": {"value": 30, "unit": "pages"},
    }
    payload.update(overrides)
    return payload


class TestCreateHabitDto:
    def test_valid_payload(self):
        dto = CreateHabitDto.model_validate(_payload())
        assert dto.frequency.times_per_period == 1
        assert dto.type == HabitType.MEASURABLE

    def test_unit_is_normalized(self):
        dto = CreateHabitDto.model_validate(_payload(target={"value": 5, "unit": " Pages "}))
        assert dto.target.unit == "pages"

    @pytest.mark.parametrize("name", ["ab", "x" * 101])
    def test_name_length(self, name):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(name=name))

    def test_description_max_length(self):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(description="d" * 501))

    def test_times_per_period_must_be_positive(self):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(frequency={"type": 1, "timesPerPeriod": 0}))

    def test_target_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(target={"value": 0, "unit": "pages"}))

    def test_unknown_unit_rejected(self):
        with pytest.raises(ValidationError, match="Unit must be one of"):
            CreateHabitDto.model_validate(_payload(target={"value": 1, "unit": "parsecs"}))

    def test_undefined_enum_value_rejected(self):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(type=9))

    def test_binary_habit_requires_binary_unit(self):
        """Binary habits count sessions or tasks, not pages."""
        with pytest.raises(ValidationError, match="Binary habits"):
            CreateHabitDto.model_validate(_payload(type=1))
        dto = CreateHabitDto.model_validate(_payload(type=1, target={"value": 1, "unit": "sessions"}))
        assert dto.type == HabitType.BINARY

    def test_end_date_must_be_in_the_future(self):
        today = datetime.now(timezone.utc).date()
        with pytest.raises(ValidationError, match="future"):
            CreateHabitDto.model_validate(_payload(endDate=today.isoformat()))
        dto = CreateHabitDto.model_validate(_payload(endDate=(today + timedelta(days=30)).isoformat()))
        assert dto.end_date == today + timedelta(days=30)

    def test_milestone_target_must_be_positive(self):
        with pytest.raises(ValidationError):
            CreateHabitDto.model_validate(_payload(milestone={"target": 0}))

    def test_to_entity_defaults(self):
        """New habits start ongoing and unarchived, owned by the caller."""
        habit = CreateHabitDto.model_validate(_payload(milestone={"target": 100})).to_entity("u_1")
        assert habit.user_id == "u_1"
        assert habit.status == HabitStatus.ONGOING
        assert habit.is_archived is False
        assert habit.milestone_target == 100
        assert habit.milestone_current == 0


class TestUpdateAndPatch:
    def _habit(self) -> Habit:
        return CreateHabitDto.model_validate(_payload(description="old")).to_entity("u_1")

    def test_update_replaces_every_field(self):
        habit = self._habit()
        UpdateHabitDto.model_validate(
            _payload(name="Run", target={"value": 5, "unit": "km"}, status=2)
        ).apply_to(habit)
        assert habit.name == "Run"
        assert habit.description is None
        assert habit.target_unit == "km"
        assert habit.status == HabitStatus.COMPLETED
        assert habit.updated_at_utc is not None

    def test_patch_only_touches_sent_fields(self):
        """An absent key leaves the field as it was."""
        habit = self._habit()
        PatchHabitDto.model_validate({"name": "Read more"}).apply_to(habit)
        assert habit.name == "Read more"
        assert habit.description == "old"

    def test_patch_null_description_clears_it(self):
        habit = self._habit()
        PatchHabitDto.model_validate({"description": None}).apply_to(habit)
        assert habit.description is None
        assert habit.name == "Read books"

    def test_patch_null_name_rejected(self):
        with pytest.raises(ValidationError, match="Name cannot be null"):
            PatchHabitDto.model_validate({"name": None})


class TestHabitProjection:
    def _entity(self) -> Habit:
        habit = CreateHabitDto.model_validate(_payload(milestone={"target": 10})).to_entity("u_1")
        habit.id = "h_1"
        habit.end_date = date(2030, 1, 1)
        return habit

    def test_dto_nests_value_objects(self):
        data = HabitDto.from_entity(self._entity()).model_dump(by_alias=True, mode="json")
        assert data["frequency"] == {"type": 1, "timesPerPeriod": 1}
        assert data["target"] == {"value": 30, "unit": "pages"}
        assert data["milestone"] == {"target": 10, "current": 0}
        assert data["endDate"] == "2030-01-01"
        assert "createdAtUtc" in data

    def test_v2_drops_utc_suffix(self):
        data = HabitWithTagsDtoV2.from_entity_with_tags(self._entity(), ["health"]).model_dump(by_alias=True)
        assert "createdAt" in data
        assert "createdAtUtc" not in data
        assert data["tags"] == ["health"]
