"""
Tag schemas.

Create allows a short description (max 50), update a longer one (max 100);
both require a 3..50 character name.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from devhabit.models.tag import Tag
from devhabit.schemas.common import CamelModel, CollectionResponse


class TagDto(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at_utc: datetime
    updated_at_utc: Optional[datetime] = None

    @classmethod
    def from_entity(cls, tag: Tag) -> "TagDto":
        return cls(
            id=tag.id,
            name=tag.name,
            description=tag.description,
            created_at_utc=tag.created_at_utc,
            updated_at_utc=tag.updated_at_utc,
        )


class TagsCollectionDto(CollectionResponse):
    """All tags of the current user; not paginated."""


class CreateTagDto(CamelModel):
    name: str = Field(min_length=3, max_length=50)
    description: Optional[str] = Field(default=None, max_length=50)

    def to_entity(self, user_id: str) -> Tag:
        return Tag(
            user_id=user_id,
            name=self.name,
            description=self.description,
            created_at_utc=datetime.now(timezone.utc),
        )


class UpdateTagDto(CamelModel):
    name: str = Field(min_length=3, max_length=50)
    description: Optional[str] = Field(default=None, max_length=100)

    def apply_to(self, tag: Tag) -> None:
        tag.name = self.name
        tag.description = self.description
        tag.updated_at_utc = datetime.now(timezone.utc)
