"""
DevHabit Backend — Shared Pydantic Schemas
============================================

What:  Building blocks reused by every resource: the camelCase base model,
       hypermedia links, offset and cursor page envelopes, error bodies.
Why:   The API speaks camelCase JSON while the Python code stays snake_case.
How:   CamelModel sets an alias generator; FastAPI serializes response models
       by alias, and populate_by_name lets tests build DTOs with snake_case.

Envelope invariants (PaginationResult):
    has_next_page     == page * page_size < total_count
    has_previous_page == page > 1
    len(items)        <= page_size
"""

import math
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_serializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LinkDto(CamelModel):
    """
    A hypermedia control: where to go (href), why (rel) and how (method).

    Built fresh for every response because it embeds request-specific
    route values; never cached across requests.
    """

    href: str = Field(description="Absolute URI")
    rel: str = Field(description="Relation, e.g. self, update, next-page")
    method: str = Field(description="HTTP verb to use")

    model_config = ConfigDict(frozen=True)


class LinksResponse(CamelModel):
    """
    Envelope with an optional `links` slot.

    `links` is omitted from the JSON entirely (not rendered as null) when the
    client did not negotiate a HATEOAS media type.
    """

    links: Optional[List[LinkDto]] = None

    @model_serializer(mode="wrap")
    def _omit_missing_links(self, handler) -> Dict[str, Any]:
        data = handler(self)
        links = data.pop("links", None)
        if links is not None:
            data["links"] = links
        return data


class CollectionResponse(LinksResponse, Generic[T]):
    """Non-paginated collection (used for a user's tags)."""

    items: List[T] = Field(default_factory=list)


class PaginationResult(LinksResponse, Generic[T]):
    """
    Offset-paginated page of (usually shaped) items.

    The builder never counts or slices: the caller runs one COUNT query and
    one OFFSET/LIMIT query and hands both results in.
    """

    items: List[T] = Field(default_factory=list)
    page: int
    page_size: int
    total_count: int

    @classmethod
    def create(
        cls,
        items: List[Any],
        page: int,
        page_size: int,
        total_count: int,
    ) -> "PaginationResult":
        return cls(
            items=items,
            page=page,
            page_size=page_size,
            total_count=total_count,
        )

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    @computed_field(alias="hasPreviousPage")
    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @computed_field(alias="hasNextPage")
    @property
    def has_next_page(self) -> bool:
        return self.page * self.page_size < self.total_count


class CursorPage(LinksResponse, Generic[T]):
    """Keyset-paginated page: `next_cursor` is null on the last page."""

    items: List[T] = Field(default_factory=list)
    next_cursor: Optional[str] = None


class ProblemDetails(CamelModel):
    """
    Error body returned with `application/problem+json`.

    Example:
        {
            "type": "https://tools.ietf.org/html/rfc9110#section-15.5.1",
            "title": "Bad Request",
            "status": 400,
            "detail": "The provided sort parameter isn't valid: 'foo'",
            "requestId": "a1b2c3d4"
        }
    """

    type: str = "about:blank"
    title: str
    status: int
    detail: Optional[str] = None
    request_id: Optional[str] = None
    errors: Optional[Dict[str, List[str]]] = None


class HealthResponse(BaseModel):
    """Returned by GET /health for container and load balancer probes."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
