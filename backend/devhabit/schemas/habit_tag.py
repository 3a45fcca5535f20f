"""Request body for replacing the set of tags attached to a habit."""

from typing import List

from pydantic import Field, field_validator

from devhabit.schemas.common import CamelModel


class UpsertHabitTagsDto(CamelModel):
    tag_ids: List[str] = Field(default_factory=list)

    @field_validator("tag_ids")
    @classmethod
    def validate_tag_ids(cls, v: List[str]) -> List[str]:
        if len(v) != len(set(v)):
            raise ValueError("Duplicate tag IDs are not allowed")
        for tag_id in v:
            if not tag_id or not tag_id.lower().startswith("t_"):
                raise ValueError("Invalid tag ID format")
        return v
