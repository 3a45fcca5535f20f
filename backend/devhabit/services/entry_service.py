"""
DevHabit Backend — Entry Service
==================================

What:  Per-user entries: offset and keyset listing, CRUD, archiving, stats.
Who:   Called by routes/entries.py.

Keyset pagination (GET /entries/cursor):
    ORDER BY date DESC, id DESC and fetch `limit + 1` rows. If the extra row
    exists it is not returned; instead it becomes the next cursor. Given a
    cursor (id, date) the next page starts AT that row:

        WHERE date < :date OR (date = :date AND id <= :id)

    The cursor is taken from the first row of the following page, hence the
    inclusive `<=`.

Streaks (GET /entries/stats):
    current streak  consecutive days ending today (0 if nothing today)
    longest streak  longest run of consecutive days anywhere in history
"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Select, and_, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.exceptions import DatabaseError, NotFoundError, ValidationError
from devhabit.models.entry import Entry
from devhabit.models.habit import Habit
from devhabit.schemas.entry import (
    CreateEntryDto,
    DailyStatsDto,
    EntryDto,
    EntryStatsDto,
    UpdateEntryDto,
)
from devhabit.services.cursor import EntryCursor
from devhabit.services.sorting import SortMapping, apply_sort

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Streak computation (pure functions, unit tested directly)
# ══════════════════════════════════════════════════════════════════════════


def current_streak(dates: Sequence[date], today: date) -> int:
    """Days in the run of consecutive dates ending exactly on `today`."""
    distinct = sorted(set(dates), reverse=True)
    if not distinct or distinct[0] != today:
        return 0
    streak = 1
    for previous, current in zip(distinct, distinct[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def longest_streak(dates: Sequence[date]) -> int:
    distinct = sorted(set(dates))
    if not distinct:
        return 0
    longest = run = 1
    for previous, current in zip(distinct, distinct[1:]):
        run = run + 1 if current - previous == timedelta(days=1) else 1
        longest = max(longest, run)
    return longest


def build_stats(dates: Iterable[date], today: date) -> EntryStatsDto:
    all_dates = list(dates)
    counts = Counter(all_dates)
    return EntryStatsDto(
        daily_stats=[
            DailyStatsDto(date=day, count=counts[day])
            for day in sorted(counts, reverse=True)
        ],
        total_entries=len(all_dates),
        current_streak=current_streak(all_dates, today),
        longest_streak=longest_streak(all_dates),
    )


class EntryService:
    """Stateless; session and user are passed into each call."""

    @staticmethod
    def _filtered(
        user_id: str,
        habit_id: Optional[str],
        from_date: Optional[date],
        to_date: Optional[date],
        source: Optional[int],
        is_archived: Optional[bool],
    ) -> Select:
        statement = select(Entry).where(Entry.user_id == user_id)
        if habit_id:
            statement = statement.where(Entry.habit_id == habit_id)
        if from_date is not None:
            statement = statement.where(Entry.date >= from_date)
        if to_date is not None:
            statement = statement.where(Entry.date <= to_date)
        if source is not None:
            statement = statement.where(Entry.source == int(source))
        if is_archived is not None:
            statement = statement.where(Entry.is_archived == is_archived)
        return statement

    # ── Queries ───────────────────────────────────────────────────────────

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        sort_mappings: Sequence[SortMapping],
        page: int,
        page_size: int,
        habit_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        source: Optional[int] = None,
        is_archived: Optional[bool] = None,
        sort: Optional[str] = None,
    ) -> Tuple[List[EntryDto], int]:
        try:
            filtered = self._filtered(user_id, habit_id, from_date, to_date, source, is_archived)
            count_result = await db.execute(
                select(func.count()).select_from(filtered.subquery())
            )
            total_count = count_result.scalar() or 0
            offset = (page - 1) * page_size
            if offset >= total_count:
                return [], total_count

            ordered = apply_sort(filtered, sort, sort_mappings, Entry)
            if not sort or not sort.strip():
                ordered = ordered.order_by(Entry.date.desc())
            ordered = ordered.order_by(Entry.id.desc())

            result = await db.execute(ordered.offset(offset).limit(page_size))
            return [EntryDto.from_entity(e) for e in result.scalars().all()], total_count
        except SQLAlchemyError as e:
            logger.error("Database error listing entries: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve entries. Please try again.")

    async def list_entries_cursor(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int,
        cursor: Optional[str] = None,
        habit_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        source: Optional[int] = None,
        is_archived: Optional[bool] = None,
    ) -> Tuple[List[EntryDto], Optional[str]]:
        """
        Returns:
            (entries, next_cursor); next_cursor is None on the last page.
            A cursor that fails to decode is ignored (first page).
        """
        statement = self._filtered(user_id, habit_id, from_date, to_date, source, is_archived)

        decoded = EntryCursor.decode(cursor)
        if cursor and decoded is None:
            logger.debug("Ignoring malformed entries cursor")
        if decoded is not None:
            statement = statement.where(
                or_(
                    Entry.date < decoded.date,
                    and_(Entry.date == decoded.date, Entry.id <= decoded.id),
                )
            )

        statement = statement.order_by(Entry.date.desc(), Entry.id.desc()).limit(limit + 1)
        try:
            result = await db.execute(statement)
            rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing entries by cursor: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve entries. Please try again.")

        next_cursor = None
        if len(rows) > limit:
            extra = rows[limit]
            next_cursor = EntryCursor.encode(extra.id, extra.date)
            rows = rows[:limit]
        return [EntryDto.from_entity(e) for e in rows], next_cursor

    async def get_entry(self, db: AsyncSession, user_id: str, entry_id: str) -> Entry:
        result = await db.execute(
            select(Entry).where(Entry.id == entry_id, Entry.user_id == user_id)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError(resource="entry", resource_id=entry_id)
        return entry

    async def get_stats(self, db: AsyncSession, user_id: str) -> EntryStatsDto:
        try:
            result = await db.execute(
                select(Entry.date).where(Entry.user_id == user_id).order_by(Entry.date)
            )
            dates = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error computing entry stats: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not compute statistics. Please try again.")
        return build_stats(dates, datetime.now(timezone.utc).date())

    # ── Commands ──────────────────────────────────────────────────────────

    async def _ensure_habits(self, db: AsyncSession, user_id: str, habit_ids: Iterable[str]) -> None:
        wanted = set(habit_ids)
        result = await db.execute(
            select(Habit.id).where(Habit.id.in_(wanted), Habit.user_id == user_id)
        )
        missing = wanted - set(result.scalars().all())
        if missing:
            raise ValidationError(
                message="Habit does not exist.",
                field="habitId",
                context={"habit_ids": sorted(missing)},
            )

    async def create_entry(self, db: AsyncSession, user_id: str, dto: CreateEntryDto) -> Entry:
        entries = await self.create_entries(db, user_id, [dto])
        return entries[0]

    async def create_entries(
        self, db: AsyncSession, user_id: str, dtos: Sequence[CreateEntryDto]
    ) -> List[Entry]:
        """Creates all entries or none; every referenced habit must exist."""
        await self._ensure_habits(db, user_id, (dto.habit_id for dto in dtos))
        entries = [dto.to_entity(user_id) for dto in dtos]
        try:
            db.add_all(entries)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating entries: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not create the entries. Please try again.")
        logger.info("Created %d entr%s", len(entries), "y" if len(entries) == 1 else "ies")
        return entries

    async def update_entry(
        self, db: AsyncSession, user_id: str, entry_id: str, dto: UpdateEntryDto
    ) -> Entry:
        entry = await self.get_entry(db, user_id, entry_id)
        dto.apply_to(entry)
        await db.flush()
        return entry

    async def set_archived(
        self, db: AsyncSession, user_id: str, entry_id: str, archived: bool
    ) -> Entry:
        entry = await self.get_entry(db, user_id, entry_id)
        entry.is_archived = archived
        entry.updated_at_utc = datetime.now(timezone.utc)
        await db.flush()
        return entry

    async def delete_entry(self, db: AsyncSession, user_id: str, entry_id: str) -> None:
        result = await db.execute(
            delete(Entry).where(Entry.id == entry_id, Entry.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError(resource="entry", resource_id=entry_id)


# ── Singleton Instance ────────────────────────────────────────────────────
entry_service = EntryService()
