"""
DevHabit Backend — Entry Route Handlers
=========================================

What:  Habit entries (one logged value per habit per occasion).

Endpoints:
    GET    /entries                   offset pagination, sortable
    GET    /entries/cursor            keyset pagination (date desc, id desc)
    GET    /entries/stats             daily counts and streaks
    GET    /entries/{id}
    POST   /entries                   idempotent (Idempotency-Key header)
    POST   /entries/batch             idempotent, 1..20 entries, all or none
    PUT    /entries/{id}
    PUT    /entries/{id}/archive
    PUT    /entries/{id}/unarchive
    DELETE /entries/{id}

Static paths (cursor, stats, batch) are declared before /{entry_id} so they
are not captured as IDs.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.auth import get_current_user_id
from devhabit.config import settings
from devhabit.database import get_db_session
from devhabit.dependencies import get_data_shaping, get_link_service, get_sort_mappings
from devhabit.models.entry import Entry
from devhabit.responses import negotiated_json
from devhabit.routes.params import ensure_valid_fields, ensure_valid_sort
from devhabit.schemas.common import (
    CollectionResponse,
    CursorPage,
    LinkDto,
    PaginationResult,
    ProblemDetails,
)
from devhabit.schemas.entry import (
    CreateEntryBatchDto,
    CreateEntryDto,
    EntryDto,
    EntryStatsDto,
    UpdateEntryDto,
)
from devhabit.services.content_negotiation import AcceptHeader, get_accept_header
from devhabit.services.data_shaping import DataShapingService
from devhabit.services.entry_service import entry_service
from devhabit.services.idempotency import idempotent_request
from devhabit.services.links import LinkService
from devhabit.services.sorting import SortMappingProvider

logger = logging.getLogger(__name__)

CONTROLLER = "Entries"

router = APIRouter(prefix="/entries", tags=[CONTROLLER])

_ERRORS = {
    400: {"description": "Invalid input", "model": ProblemDetails},
    401: {"description": "Missing or invalid bearer token", "model": ProblemDetails},
}
_NOT_FOUND = {404: {"description": "Entry not found", "model": ProblemDetails}}
_IDEMPOTENT = {
    **_ERRORS,
    422: {"description": "Idempotency-Key reused with another body", "model": ProblemDetails},
}


# ── Shared query parameters ───────────────────────────────────────────────


class EntryFilters:
    """Filter query parameters shared by the offset and cursor listings."""

    def __init__(
        self,
        habit_id: Optional[str] = Query(default=None, alias="habitId"),
        from_date: Optional[date] = Query(default=None, alias="fromDate"),
        to_date: Optional[date] = Query(default=None, alias="toDate"),
        source: Optional[int] = Query(default=None, ge=0, description="0 manual, 1 automation, 2 file import"),
        is_archived: Optional[bool] = Query(default=None, alias="isArchived"),
    ):
        self.habit_id = habit_id
        self.from_date = from_date
        self.to_date = to_date
        self.source = source
        self.is_archived = is_archived

    def as_kwargs(self) -> Dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "from_date": self.from_date,
            "to_date": self.to_date,
            "source": self.source,
            "is_archived": self.is_archived,
        }

    def as_query(self) -> Dict[str, Any]:
        return {
            "habitId": self.habit_id,
            "fromDate": self.from_date,
            "toDate": self.to_date,
            "source": self.source,
            "isArchived": self.is_archived,
        }


# ── Link builders ─────────────────────────────────────────────────────────


def entry_links(
    links: LinkService, entry_id: str, is_archived: bool, fields: Optional[str] = None
) -> List[LinkDto]:
    result = [
        links.create("get_entry", "self", "GET", {"entry_id": entry_id, "fields": fields}, CONTROLLER),
        links.create("update_entry", "update", "PUT", {"entry_id": entry_id}, CONTROLLER),
    ]
    if is_archived:
        result.append(links.create("unarchive_entry", "unarchive", "PUT", {"entry_id": entry_id}, CONTROLLER))
    else:
        result.append(links.create("archive_entry", "archive", "PUT", {"entry_id": entry_id}, CONTROLLER))
    result.append(links.create("delete_entry", "delete", "DELETE", {"entry_id": entry_id}, CONTROLLER))
    return result


def _shape(
    shaping: DataShapingService,
    links: LinkService,
    entries: List[EntryDto],
    fields: Optional[str],
    include_links: bool,
) -> List[Dict[str, Any]]:
    # Per-item links depend on the archived flag, not only the ID
    return [
        shaping.shape_one(
            entry,
            fields,
            links=entry_links(links, entry.id, entry.is_archived, fields) if include_links else None,
        ).to_dict()
        for entry in entries
    ]


# ══════════════════════════════════════════════════════════════════════════
# Queries
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=PaginationResult[EntryDto],
    responses=_ERRORS,
    summary="List entries (offset pagination)",
)
async def get_entries(
    filters: EntryFilters = Depends(),
    sort: Optional[str] = Query(default=None, description="e.g. -date,value"),
    fields: Optional[str] = Query(default=None),
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
    mappings = sort_mappings.get_mappings(EntryDto, Entry)
    ensure_valid_sort(sort, mappings)
    ensure_valid_fields(shaping, fields, EntryDto)

    entries, total_count = await entry_service.list_entries(
        db=db,
        user_id=user_id,
        sort_mappings=mappings,
        page=page,
        page_size=page_size,
        sort=sort,
        **filters.as_kwargs(),
    )
    result = PaginationResult[Dict[str, Any]].create(
        items=_shape(shaping, links, entries, fields, accept.include_links),
        page=page,
        page_size=page_size,
        total_count=total_count,
    )
    if accept.include_links:
        query = {**filters.as_query(), "sort": sort, "fields": fields, "page": page, "pageSize": page_size}
        result.links = [
            links.create("get_entries", "self", "GET", query, CONTROLLER),
            links.create("create_entry", "create", "POST", controller=CONTROLLER),
        ]
        if result.has_next_page:
            result.links.append(
                links.create("get_entries", "next-page", "GET", {**query, "page": page + 1}, CONTROLLER)
            )
        if result.has_previous_page:
            result.links.append(
                links.create("get_entries", "previous-page", "GET", {**query, "page": page - 1}, CONTROLLER)
            )
    return negotiated_json(result, accept)


@router.get(
    "/cursor",
    response_model=CursorPage[EntryDto],
    responses=_ERRORS,
    summary="List entries (cursor pagination)",
)
async def get_entries_cursor(
    filters: EntryFilters = Depends(),
    fields: Optional[str] = Query(default=None),
    cursor: Optional[str] = Query(default=None, description="nextCursor of the previous page"),
    limit: int = Query(default=settings.default_cursor_limit, ge=1, le=settings.max_page_size),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    ensure_valid_fields(shaping, fields, EntryDto)

    entries, next_cursor = await entry_service.list_entries_cursor(
        db=db,
        user_id=user_id,
        limit=limit,
        cursor=cursor,
        **filters.as_kwargs(),
    )
    result = CursorPage[Dict[str, Any]](
        items=_shape(shaping, links, entries, fields, accept.include_links),
        next_cursor=next_cursor,
    )
    if accept.include_links:
        query = {**filters.as_query(), "fields": fields, "limit": limit}
        result.links = [
            links.create("get_entries_cursor", "self", "GET", {**query, "cursor": cursor}, CONTROLLER),
            links.create("create_entry", "create", "POST", controller=CONTROLLER),
        ]
        if next_cursor is not None:
            result.links.append(
                links.create("get_entries_cursor", "next-page", "GET", {**query, "cursor": next_cursor}, CONTROLLER)
            )
    return negotiated_json(result, accept)


@router.get("/stats", response_model=EntryStatsDto, summary="Entry statistics and streaks")
async def get_entry_stats(
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    stats = await entry_service.get_stats(db, user_id)
    return negotiated_json(stats, accept)


@router.get(
    "/{entry_id}",
    response_model=EntryDto,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Get an entry",
)
async def get_entry(
    entry_id: str,
    fields: Optional[str] = Query(default=None),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    ensure_valid_fields(shaping, fields, EntryDto)

    entry = EntryDto.from_entity(await entry_service.get_entry(db, user_id, entry_id))
    return negotiated_json(_shape(shaping, links, [entry], fields, accept.include_links)[0], accept)


# ══════════════════════════════════════════════════════════════════════════
# Commands
# ══════════════════════════════════════════════════════════════════════════


@router.post(
    "",
    status_code=201,
    response_model=EntryDto,
    responses=_IDEMPOTENT,
    summary="Log an entry",
)
@idempotent_request
async def create_entry(
    request: Request,
    dto: CreateEntryDto,
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    entry = await entry_service.create_entry(db, user_id, dto)
    body = _shape(shaping, links, [EntryDto.from_entity(entry)], None, accept.include_links)[0]
    location = str(request.url_for("get_entry", entry_id=entry.id))
    return negotiated_json(body, accept, status_code=201, headers={"Location": location})


@router.post(
    "/batch",
    status_code=201,
    response_model=CollectionResponse[EntryDto],
    responses=_IDEMPOTENT,
    summary="Log up to 20 entries at once",
)
@idempotent_request
async def create_entry_batch(
    request: Request,
    dto: CreateEntryBatchDto,
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    entries = await entry_service.create_entries(db, user_id, dto.entries)
    result = CollectionResponse[Dict[str, Any]](
        items=_shape(
            shaping, links, [EntryDto.from_entity(e) for e in entries], None, accept.include_links
        )
    )
    if accept.include_links:
        result.links = [links.create("get_entries", "get-entries", "GET", controller=CONTROLLER)]
    return negotiated_json(result, accept, status_code=201)


@router.put(
    "/{entry_id}",
    status_code=204,
    responses={**_ERRORS, **_NOT_FOUND},
    summary="Update an entry's value and notes",
)
async def update_entry(
    entry_id: str,
    dto: UpdateEntryDto,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await entry_service.update_entry(db, user_id, entry_id, dto)
    return Response(status_code=204)


@router.put("/{entry_id}/archive", status_code=204, responses=_NOT_FOUND, summary="Archive an entry")
async def archive_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await entry_service.set_archived(db, user_id, entry_id, archived=True)
    return Response(status_code=204)


@router.put("/{entry_id}/unarchive", status_code=204, responses=_NOT_FOUND, summary="Unarchive an entry")
async def unarchive_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await entry_service.set_archived(db, user_id, entry_id, archived=False)
    return Response(status_code=204)


@router.delete("/{entry_id}", status_code=204, responses=_NOT_FOUND, summary="Delete an entry")
async def delete_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await entry_service.delete_entry(db, user_id, entry_id)
    return Response(status_code=204)
