"""
DevHabit Backend — Habit Route Handlers
=========================================

What:  /habits CRUD plus the list endpoint with search, filters, sorting,
       data shaping, pagination and optional HATEOAS links.
Who:   Any authenticated client; every habit is scoped to the token's subject.

Representations (chosen by the Accept header):
    application/json, vnd.dev-habit.v1+json   HabitWithTagsDto
    vnd.dev-habit.v2+json                     HabitWithTagsDtoV2 (detail only)
    vnd.dev-habit.hateoas[.N]+json            same, plus `links`

Example:
    GET /habits?q=read&sort=name,-createdAtUtc&fields=id,name&page=2&pageSize=5
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.auth import get_current_user_id
from devhabit.config import settings
from devhabit.database import get_db_session
from devhabit.dependencies import (
    get_data_shaping,
    get_etag_store,
    get_link_service,
    get_sort_mappings,
)
from devhabit.models.habit import Habit
from devhabit.responses import negotiated_json
from devhabit.routes.params import ensure_valid_fields, ensure_valid_sort
from devhabit.schemas.common import LinkDto, PaginationResult, ProblemDetails
from devhabit.schemas.habit import (
    CreateHabitDto,
    HabitDto,
    HabitWithTagsDto,
    HabitWithTagsDtoV2,
    PatchHabitDto,
    UpdateHabitDto,
)
from devhabit.services.content_negotiation import AcceptHeader, get_accept_header
from devhabit.services.data_shaping import DataShapingService
from devhabit.services.etag_store import InMemoryETagStore
from devhabit.services.habit_service import habit_service
from devhabit.services.links import LinkService
from devhabit.services.sorting import SortMappingProvider

logger = logging.getLogger(__name__)

CONTROLLER = "Habits"

router = APIRouter(prefix="/habits", tags=[CONTROLLER])

_ERRORS = {
    400: {"description": "Invalid input", "model": ProblemDetails},
    401: {"description": "Missing or invalid bearer token", "model": ProblemDetails},
}
_NOT_FOUND = {404: {"description": "Habit not found", "model": ProblemDetails}}


# ── Link builders ─────────────────────────────────────────────────────────


def habit_links(links: LinkService, habit_id: str, fields: Optional[str] = None) -> List[LinkDto]:
    return [
        links.create("get_habit", "self", "GET", {"habit_id": habit_id, "fields": fields}, CONTROLLER),
        links.create("update_habit", "update", "PUT", {"habit_id": habit_id}, CONTROLLER),
        links.create("patch_habit", "partial-update", "PATCH", {"habit_id": habit_id}, CONTROLLER),
        links.create("delete_habit", "delete", "DELETE", {"habit_id": habit_id}, CONTROLLER),
        links.create("upsert_habit_tags", "upsert-tags", "PUT", {"habit_id": habit_id}, "HabitTags"),
    ]


def _collection_links(
    links: LinkService,
    query: Dict[str, Any],
    has_previous_page: bool,
    has_next_page: bool,
) -> List[LinkDto]:
    result = [
        links.create("get_habits", "self", "GET", query, CONTROLLER),
        links.create("create_habit", "create", "POST", controller=CONTROLLER),
    ]
    if has_next_page:
        result.append(
            links.create("get_habits", "next-page", "GET", {**query, "page": query["page"] + 1}, CONTROLLER)
        )
    if has_previous_page:
        result.append(
            links.create("get_habits", "previous-page", "GET", {**query, "page": query["page"] - 1}, CONTROLLER)
        )
    return result


def _detail(habit: Habit, tags: List[str], version: int):
    if version >= 2:
        return HabitWithTagsDtoV2.from_entity_with_tags(habit, tags)
    return HabitWithTagsDto.from_entity_with_tags(habit, tags)


# ══════════════════════════════════════════════════════════════════════════
# Queries
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=PaginationResult[HabitDto],
    responses={**_ERRORS, 406: {"description": "Unsupported Accept", "model": ProblemDetails}},
    summary="List habits",
)
async def get_habits(
    q: Optional[str] = Query(default=None, description="Case-insensitive search in name and description"),
    habit_type: Optional[int] = Query(default=None, alias="type", ge=0),
    status: Optional[int] = Query(default=None, ge=0),
    sort: Optional[str] = Query(default=None, description="e.g. name,-createdAtUtc"),
    fields: Optional[str] = Query(default=None, description="e.g. id,name"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(
        default=settings.default_page_size, alias="pageSize", ge=1, le=settings.max_page_size
    ),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    sort_mappings: SortMappingProvider = Depends(get_sort_mappings),
    links: LinkService = Depends(get_link_service),
) -> Response:
    mappings = sort_mappings.get_mappings(HabitDto, Habit)
    ensure_valid_sort(sort, mappings)
    ensure_valid_fields(shaping, fields, HabitDto)

    habits, total_count = await habit_service.list_habits(
        db=db,
        user_id=user_id,
        sort_mappings=mappings,
        page=page,
        page_size=page_size,
        search=q,
        habit_type=habit_type,
        status=status,
        sort=sort,
    )

    link_factory = (lambda habit_id: habit_links(links, habit_id, fields)) if accept.include_links else None
    records = shaping.shape_many(habits, fields, link_factory)
    result = PaginationResult[Dict[str, Any]].create(
        items=[record.to_dict() for record in records],
        page=page,
        page_size=page_size,
        total_count=total_count,
    )
    if accept.include_links:
        query = {
            "q": q,
            "type": habit_type,
            "status": status,
            "sort": sort,
            "fields": fields,
            "page": page,
            "pageSize": page_size,
        }
        result.links = _collection_links(
            links, query, result.has_previous_page, result.has_next_page
        )
    return negotiated_json(result, accept)


@router.get(
    "/{habit_id}",
    response_model=HabitWithTagsDto,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Get a habit with its tags",
)
async def get_habit(
    habit_id: str,
    fields: Optional[str] = Query(default=None),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    dto_type = HabitWithTagsDtoV2 if accept.version >= 2 else HabitWithTagsDto
    ensure_valid_fields(shaping, fields, dto_type)

    habit, tags = await habit_service.get_habit_with_tags(db, user_id, habit_id)
    record = shaping.shape_one(
        _detail(habit, tags, accept.version),
        fields,
        links=habit_links(links, habit.id, fields) if accept.include_links else None,
    )
    return negotiated_json(record.to_dict(), accept)


# ══════════════════════════════════════════════════════════════════════════
# Commands
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    status_code=201,
    response_model=HabitDto,
    responses=_ERRORS,
    summary="Create a habit",
)
async def create_habit(
    request: Request,
    dto: CreateHabitDto,
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    habit = await habit_service.create_habit(db, user_id, dto)
    record = shaping.shape_one(
        HabitDto.from_entity(habit),
        None,
        links=habit_links(links, habit.id) if accept.include_links else None,
    )
    location = str(request.url_for("get_habit", habit_id=habit.id))
    return negotiated_json(record.to_dict(), accept, status_code=201, headers={"Location": location})


async def _refresh_etag(
    request: Request,
    db: AsyncSession,
    user_id: str,
    habit_id: str,
    shaping: DataShapingService,
    etag_store: InMemoryETagStore,
) -> str:
    # Same representation a plain GET would return, so its ETag stays comparable
    habit, tags = await habit_service.get_habit_with_tags(db, user_id, habit_id)
    representation = shaping.shape_one(HabitWithTagsDto.from_entity_with_tags(habit, tags), None)
    return etag_store.set_etag(request.url.path, representation.to_dict())


@router.put(
    "/{habit_id}",
    status_code=204,
    responses={**_ERRORS, **_NOT_FOUND, 412: {"description": "Stale If-Match", "model": ProblemDetails}},
    summary="Replace a habit",
)
async def update_habit(
    request: Request,
    habit_id: str,
    dto: UpdateHabitDto,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    etag_store: InMemoryETagStore = Depends(get_etag_store),
) -> Response:
    await habit_service.update_habit(db, user_id, habit_id, dto)
    etag = await _refresh_etag(request, db, user_id, habit_id, shaping, etag_store)
    return Response(status_code=204, headers={"ETag": etag})


@router.patch(
    "/{habit_id}",
    status_code=204,
    responses={**_ERRORS, **_NOT_FOUND, 412: {"description": "Stale If-Match", "model": ProblemDetails}},
    summary="Merge-patch a habit's name and description",
)
async def patch_habit(
    request: Request,
    habit_id: str,
    dto: PatchHabitDto = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    etag_store: InMemoryETagStore = Depends(get_etag_store),
) -> Response:
    await habit_service.patch_habit(db, user_id, habit_id, dto)
    etag = await _refresh_etag(request, db, user_id, habit_id, shaping, etag_store)
    return Response(status_code=204, headers={"ETag": etag})


@router.delete(
    "/{habit_id}",
    status_code=204,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Delete a habit and its entries",
)
async def delete_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await habit_service.delete_habit(db, user_id, habit_id)
    return Response(status_code=204)
