"""
DevHabit Backend — Tag Route Handlers
=======================================

What:  /tags CRUD. The collection is small (capped per user by
       `settings.max_allowed_tags`) so it is returned whole, not paginated,
       but it still supports `?fields=` shaping and HATEOAS links.

The collection's `create` link is only offered while the user is below the
cap, so a hypermedia client never sees an action that would be refused.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.auth import get_current_user_id
from devhabit.config import settings
from devhabit.database import get_db_session
from devhabit.dependencies import get_data_shaping, get_etag_store, get_link_service
from devhabit.responses import negotiated_json
from devhabit.routes.params import ensure_valid_fields
from devhabit.schemas.common import LinkDto, ProblemDetails
from devhabit.schemas.tag import CreateTagDto, TagDto, TagsCollectionDto, UpdateTagDto
from devhabit.services.content_negotiation import AcceptHeader, get_accept_header
from devhabit.services.data_shaping import DataShapingService
from devhabit.services.etag_store import InMemoryETagStore
from devhabit.services.links import LinkService
from devhabit.services.tag_service import tag_service

logger = logging.getLogger(__name__)

CONTROLLER = "Tags"

router = APIRouter(prefix="/tags", tags=[CONTROLLER])

_NOT_FOUND = {404: {"description": "Tag not found", "model": ProblemDetails}}


def tag_links(links: LinkService, tag_id: str, fields: Optional[str] = None) -> List[LinkDto]:
    return [
        links.create("get_tag", "self", "GET", {"tag_id": tag_id, "fields": fields}, CONTROLLER),
        links.create("update_tag", "update", "PUT", {"tag_id": tag_id}, CONTROLLER),
        links.create("delete_tag", "delete", "DELETE", {"tag_id": tag_id}, CONTROLLER),
    ]


@router.get(
    "",
    response_model=TagsCollectionDto,
    responses={400: {"description": "Invalid fields", "model": ProblemDetails}},
    summary="List all tags",
)
async def get_tags(
    fields: Optional[str] = Query(default=None),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    ensure_valid_fields(shaping, fields, TagDto)

    tags = [TagDto.from_entity(tag) for tag in await tag_service.list_tags(db, user_id)]
    link_factory = (lambda tag_id: tag_links(links, tag_id, fields)) if accept.include_links else None
    result = TagsCollectionDto(
        items=[record.to_dict() for record in shaping.shape_many(tags, fields, link_factory)]
    )
    if accept.include_links:
        result.links = [links.create("get_tags", "self", "GET", {"fields": fields}, CONTROLLER)]
        if len(tags) < settings.max_allowed_tags:
            result.links.append(links.create("create_tag", "create", "POST", controller=CONTROLLER))
    return negotiated_json(result, accept)


@router.get(
    "/{tag_id}",
    response_model=TagDto,
    responses={400: {"description": "Invalid fields", "model": ProblemDetails}, **_NOT_FOUND},
    summary="Get a tag",
)
async def get_tag(
    tag_id: str,
    fields: Optional[str] = Query(default=None),
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    ensure_valid_fields(shaping, fields, TagDto)

    tag = await tag_service.get_tag(db, user_id, tag_id)
    record = shaping.shape_one(
        TagDto.from_entity(tag),
        fields,
        links=tag_links(links, tag.id, fields) if accept.include_links else None,
    )
    return negotiated_json(record.to_dict(), accept)


@router.post(
    "",
    status_code=201,
    response_model=TagDto,
    responses={
        400: {"description": "Invalid input or tag limit reached", "model": ProblemDetails},
        409: {"description": "Tag name already exists", "model": ProblemDetails},
    },
    summary="Create a tag",
)
async def create_tag(
    request: Request,
    dto: CreateTagDto,
    accept: AcceptHeader = Depends(get_accept_header),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    links: LinkService = Depends(get_link_service),
) -> Response:
    tag = await tag_service.create_tag(db, user_id, dto)
    record = shaping.shape_one(
        TagDto.from_entity(tag),
        None,
        links=tag_links(links, tag.id) if accept.include_links else None,
    )
    location = str(request.url_for("get_tag", tag_id=tag.id))
    return negotiated_json(record.to_dict(), accept, status_code=201, headers={"Location": location})


@router.put(
    "/{tag_id}",
    status_code=204,
    responses={
        **_NOT_FOUND,
        409: {"description": "Tag name already exists", "model": ProblemDetails},
        412: {"description": "Stale If-Match", "model": ProblemDetails},
    },
    summary="Update a tag",
)
async def update_tag(
    request: Request,
    tag_id: str,
    dto: UpdateTagDto,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
    shaping: DataShapingService = Depends(get_data_shaping),
    etag_store: InMemoryETagStore = Depends(get_etag_store),
) -> Response:
    tag = await tag_service.update_tag(db, user_id, tag_id, dto)
    etag = etag_store.set_etag(
        request.url.path, shaping.shape_one(TagDto.from_entity(tag), None).to_dict()
    )
    return Response(status_code=204, headers={"ETag": etag})


@router.delete("/{tag_id}", status_code=204, responses=_NOT_FOUND, summary="Delete a tag")
async def delete_tag(
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await tag_service.delete_tag(db, user_id, tag_id)
    return Response(status_code=204)
