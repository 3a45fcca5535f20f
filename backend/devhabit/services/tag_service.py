"""
DevHabit Backend — Tag Service
================================

What:  Per-user CRUD over tags and the habit ↔ tag association.
Rules:
    - A user owns at most `settings.max_allowed_tags` tags.
    - Tag names are unique per user (409 on duplicates).
    - Replacing a habit's tags with the same set is a no-op.
"""

import logging
from typing import List, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.config import settings
from devhabit.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from devhabit.models.habit import Habit
from devhabit.models.habit_tag import HabitTag
from devhabit.models.tag import Tag
from devhabit.schemas.tag import CreateTagDto, UpdateTagDto

logger = logging.getLogger(__name__)


class TagService:
    async def list_tags(self, db: AsyncSession, user_id: str) -> List[Tag]:
        try:
            result = await db.execute(
                select(Tag).where(Tag.user_id == user_id).order_by(Tag.name)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing tags: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve tags. Please try again.")

    async def count_tags(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(select(func.count(Tag.id)).where(Tag.user_id == user_id))
        return result.scalar() or 0

    async def get_tag(self, db: AsyncSession, user_id: str, tag_id: str) -> Tag:
        try:
            result = await db.execute(
                select(Tag).where(Tag.id == tag_id, Tag.user_id == user_id)
            )
            tag = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching tag %s: %s", tag_id, str(e))
            raise DatabaseError(context={"tag_id": tag_id})
        if tag is None:
            raise NotFoundError(resource="tag", resource_id=tag_id)
        return tag

    async def _ensure_name_available(
        self, db: AsyncSession, user_id: str, name: str, exclude_id: str | None = None
    ) -> None:
        statement = select(Tag.id).where(Tag.user_id == user_id, Tag.name == name)
        if exclude_id is not None:
            statement = statement.where(Tag.id != exclude_id)
        result = await db.execute(statement)
        if result.first() is not None:
            raise ConflictError(message=f"The tag '{name}' already exists", context={"name": name})

    async def create_tag(self, db: AsyncSession, user_id: str, dto: CreateTagDto) -> Tag:
        if await self.count_tags(db, user_id) >= settings.max_allowed_tags:
            raise ValidationError(
                message="Reached the maximum number of allowed tags",
                context={"max_allowed_tags": settings.max_allowed_tags},
            )
        await self._ensure_name_available(db, user_id, dto.name)

        tag = dto.to_entity(user_id)
        db.add(tag)
        await self._flush(db, tag.name)
        logger.info("Tag created: %s", tag.id)
        return tag

    async def update_tag(
        self, db: AsyncSession, user_id: str, tag_id: str, dto: UpdateTagDto
    ) -> Tag:
        tag = await self.get_tag(db, user_id, tag_id)
        await self._ensure_name_available(db, user_id, dto.name, exclude_id=tag.id)
        dto.apply_to(tag)
        await self._flush(db, tag.name)
        return tag

    async def delete_tag(self, db: AsyncSession, user_id: str, tag_id: str) -> None:
        result = await db.execute(delete(Tag).where(Tag.id == tag_id, Tag.user_id == user_id))
        if result.rowcount == 0:
            raise NotFoundError(resource="tag", resource_id=tag_id)
        logger.info("Tag deleted: %s", tag_id)

    @staticmethod
    async def _flush(db: AsyncSession, name: str) -> None:
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same name
            raise ConflictError(message=f"The tag '{name}' already exists", context={"name": name})
        except SQLAlchemyError as e:
            logger.error("Database error saving tag '%s': %s", name, str(e))
            raise DatabaseError(context={"tag": name})

    # ── Habit ↔ Tag association ───────────────────────────────────────────

    async def _ensure_habit(self, db: AsyncSession, user_id: str, habit_id: str) -> None:
        result = await db.execute(
            select(Habit.id).where(Habit.id == habit_id, Habit.user_id == user_id)
        )
        if result.first() is None:
            raise NotFoundError(resource="habit", resource_id=habit_id)

    async def upsert_habit_tags(
        self, db: AsyncSession, user_id: str, habit_id: str, tag_ids: Sequence[str]
    ) -> bool:
        """
        Replace the habit's tag set with `tag_ids`.

        Returns:
            False when the set was already identical (nothing written).

        Raises:
            NotFoundError:   habit does not exist for this user
            ValidationError: one of the tag IDs does not belong to this user
        """
        await self._ensure_habit(db, user_id, habit_id)

        wanted = set(tag_ids)
        current_result = await db.execute(
            select(HabitTag.tag_id).where(HabitTag.habit_id == habit_id)
        )
        current = set(current_result.scalars().all())
        if current == wanted:
            return False

        if wanted:
            owned_result = await db.execute(
                select(Tag.id).where(Tag.id.in_(wanted), Tag.user_id == user_id)
            )
            owned = set(owned_result.scalars().all())
            if owned != wanted:
                raise ValidationError(
                    message="One or more tag IDs is invalid",
                    field="tagIds",
                    context={"unknown": sorted(wanted - owned)},
                )

        removed = current - wanted
        if removed:
            await db.execute(
                delete(HabitTag).where(
                    HabitTag.habit_id == habit_id,
                    HabitTag.tag_id.in_(removed),
                )
            )
        for tag_id in sorted(wanted - current):
            db.add(HabitTag(habit_id=habit_id, tag_id=tag_id))
        await db.flush()
        logger.info("Habit %s tags set to %d tag(s)", habit_id, len(wanted))
        return True

    async def remove_habit_tag(
        self, db: AsyncSession, user_id: str, habit_id: str, tag_id: str
    ) -> None:
        await self._ensure_habit(db, user_id, habit_id)
        result = await db.execute(
            delete(HabitTag).where(HabitTag.habit_id == habit_id, HabitTag.tag_id == tag_id)
        )
        if result.rowcount == 0:
            raise NotFoundError(resource="habit tag", resource_id=tag_id)


# ── Singleton Instance ────────────────────────────────────────────────────
tag_service = TagService()
