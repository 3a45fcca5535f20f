"""
DevHabit Backend — Habit Tag Route Handlers
=============================================

    PUT    /habits/{habit_id}/tags            replace the habit's tag set
    DELETE /habits/{habit_id}/tags/{tag_id}   detach one tag

Both answer 204. Sending the set the habit already has writes nothing.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.auth import get_current_user_id
from devhabit.database import get_db_session
from devhabit.schemas.common import ProblemDetails
from devhabit.schemas.habit_tag import UpsertHabitTagsDto
from devhabit.services.tag_service import tag_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/habits/{habit_id}/tags", tags=["HabitTags"])


@router.put(
    "",
    status_code=204,
    responses={
        400: {"description": "Duplicate or unknown tag IDs", "model": ProblemDetails},
        404: {"description": "Habit not found", "model": ProblemDetails},
    },
    summary="Replace the tags attached to a habit",
)
async def upsert_habit_tags(
    habit_id: str,
    dto: UpsertHabitTagsDto,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    changed = await tag_service.upsert_habit_tags(db, user_id, habit_id, dto.tag_ids)
    if not changed:
        logger.debug("Tags of habit %s unchanged", habit_id)
    return Response(status_code=204)


@router.delete(
    "/{tag_id}",
    status_code=204,
    responses={404: {"description": "Habit or habit tag not found", "model": ProblemDetails}},
    summary="Detach a tag from a habit",
)
async def delete_habit_tag(
    habit_id: str,
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await tag_service.remove_habit_tag(db, user_id, habit_id, tag_id)
    return Response(status_code=204)
