"""
DevHabit Backend — Habit Service
==================================

What:  Per-user CRUD over habits plus the filtered/sorted/paged list query.
Why:   Keeps SQL out of the routes; routes deal with HTTP (shaping, links,
       content negotiation) and call into here for data.
How:   Every statement is scoped by user_id. Unexpected SQLAlchemy failures
       are logged and wrapped in DatabaseError; domain errors propagate as-is.

List pipeline (GET /habits):
    validate sort + fields (route, before any DB work)
      → filter (user, search, type, status)
      → ORDER BY (translated sort, then id as tie-breaker)
      → COUNT over the filtered query
      → OFFSET/LIMIT page
      → HabitDto projection
"""

import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.exceptions import DatabaseError, NotFoundError
from devhabit.models.habit import Habit
from devhabit.models.habit_tag import HabitTag
from devhabit.models.tag import Tag
from devhabit.schemas.habit import (
    CreateHabitDto,
    HabitDto,
    PatchHabitDto,
    UpdateHabitDto,
)
from devhabit.services.sorting import SortMapping, apply_sort

logger = logging.getLogger(__name__)


class HabitService:
    """
    Business logic for habits.

    Stateless: the session and the current user are passed into each call.
    """

    # ── Queries ───────────────────────────────────────────────────────────

    @staticmethod
    def _filtered(
        user_id: str,
        search: Optional[str],
        habit_type: Optional[int],
        status: Optional[int],
    ) -> Select:
        statement = select(Habit).where(Habit.user_id == user_id)
        if search and search.strip():
            term = search.strip()
            statement = statement.where(
                or_(
                    Habit.name.icontains(term, autoescape=True),
                    Habit.description.icontains(term, autoescape=True),
                )
            )
        if habit_type is not None:
            statement = statement.where(Habit.type == int(habit_type))
        if status is not None:
            statement = statement.where(Habit.status == int(status))
        return statement

    async def list_habits(
        self,
        db: AsyncSession,
        user_id: str,
        sort_mappings: Sequence[SortMapping],
        page: int,
        page_size: int,
        search: Optional[str] = None,
        habit_type: Optional[int] = None,
        status: Optional[int] = None,
        sort: Optional[str] = None,
    ) -> Tuple[List[HabitDto], int]:
        """
        One page of the user's habits plus the total matching count.

        `sort` must already have passed validate_sort(); this method does not
        re-check it.
        """
        try:
            filtered = self._filtered(user_id, search, habit_type, status)

            count_result = await db.execute(
                select(func.count()).select_from(filtered.subquery())
            )
            total_count = count_result.scalar() or 0

            offset = (page - 1) * page_size
            if offset >= total_count:
                # Past the end; also keeps huge page numbers out of the OFFSET
                return [], total_count

            ordered = apply_sort(filtered, sort, sort_mappings, Habit).order_by(Habit.id)
            result = await db.execute(
                ordered.offset(offset).limit(page_size)
            )
            habits = [HabitDto.from_entity(habit) for habit in result.scalars().all()]
            return habits, total_count

        except SQLAlchemyError as e:
            logger.error("Database error listing habits: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve habits. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_habit(self, db: AsyncSession, user_id: str, habit_id: str) -> Habit:
        try:
            result = await db.execute(
                select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            )
            habit = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching habit %s: %s", habit_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the habit. Please try again.",
                context={"habit_id": habit_id},
            )
        if habit is None:
            raise NotFoundError(resource="habit", resource_id=habit_id)
        return habit

    async def get_habit_with_tags(
        self, db: AsyncSession, user_id: str, habit_id: str
    ) -> Tuple[Habit, List[str]]:
        habit = await self.get_habit(db, user_id, habit_id)
        try:
            result = await db.execute(
                select(Tag.name)
                .join(HabitTag, HabitTag.tag_id == Tag.id)
                .where(HabitTag.habit_id == habit.id)
                .order_by(Tag.name)
            )
            return habit, list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error fetching tags of habit %s: %s", habit_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the habit. Please try again.",
                context={"habit_id": habit_id},
            )

    # ── Commands ──────────────────────────────────────────────────────────

    async def create_habit(self, db: AsyncSession, user_id: str, dto: CreateHabitDto) -> Habit:
        habit = dto.to_entity(user_id)
        try:
            db.add(habit)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating habit: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the habit. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.info("Habit created: %s", habit.id)
        return habit

    async def update_habit(
        self, db: AsyncSession, user_id: str, habit_id: str, dto: UpdateHabitDto
    ) -> Habit:
        habit = await self.get_habit(db, user_id, habit_id)
        dto.apply_to(habit)
        await self._flush(db, "update", habit_id)
        return habit

    async def patch_habit(
        self, db: AsyncSession, user_id: str, habit_id: str, dto: PatchHabitDto
    ) -> Habit:
        habit = await self.get_habit(db, user_id, habit_id)
        dto.apply_to(habit)
        await self._flush(db, "patch", habit_id)
        return habit

    async def delete_habit(self, db: AsyncSession, user_id: str, habit_id: str) -> None:
        try:
            result = await db.execute(
                delete(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
            )
        except SQLAlchemyError as e:
            logger.error("Database error deleting habit %s: %s", habit_id, str(e))
            raise DatabaseError(context={"habit_id": habit_id})
        if result.rowcount == 0:
            raise NotFoundError(resource="habit", resource_id=habit_id)
        logger.info("Habit deleted: %s", habit_id)

    @staticmethod
    async def _flush(db: AsyncSession, action: str, habit_id: str) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error on habit %s (%s): %s", action, habit_id, str(e))
            raise DatabaseError(context={"habit_id": habit_id, "action": action})


# ── Singleton Instance ────────────────────────────────────────────────────
habit_service = HabitService()
