"""
DevHabit Backend — Data Shaping Service
=========================================

What:  Projects DTOs into sparse records holding only the fields a client asked
       for (`?fields=id,name`), optionally with per-item HATEOAS links.
Why:   Lets clients trim payloads without one endpoint per view.
How:   A per-type accessor table (public JSON name -> attribute name) is built
       once from the pydantic model's field declarations and reused for every
       request. Shaping reads attributes; it never mutates the source object.

Rules:
    - Field names are matched case-insensitively against the public (camelCase)
      names and must all exist on the DTO, otherwise validate() is False.
    - Empty or whitespace-only input means "all fields".
    - Output preserves the DTO's declaration order, not the request order.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Type

from pydantic import BaseModel

from devhabit.schemas.common import LinkDto

logger = logging.getLogger(__name__)

Accessor = Tuple[str, str]  # (public name, attribute name)
LinkFactory = Callable[[str], List[LinkDto]]


@dataclass(frozen=True)
class ShapedRecord:
    """
    A partial projection of one DTO plus an optional links slot.

    `fields` keeps insertion order equal to the DTO's declaration order.
    """

    fields: Mapping[str, Any]
    links: Optional[List[LinkDto]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.fields)
        if self.links is not None:
            data["links"] = self.links
        return data


@dataclass
class _AccessorCache:
    tables: Dict[type, Tuple[Accessor, ...]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


class DataShapingService:
    """One instance per application; holds the accessor cache."""

    def __init__(self) -> None:
        self._cache = _AccessorCache()

    # ── Accessor table ────────────────────────────────────────────────────

    def accessors(self, dto_type: Type[BaseModel]) -> Tuple[Accessor, ...]:
        table = self._cache.tables.get(dto_type)
        if table is not None:
            return table
        with self._cache.lock:
            table = self._cache.tables.get(dto_type)
            if table is None:
                table = tuple(
                    (info.alias or name, name)
                    for name, info in dto_type.model_fields.items()
                )
                self._cache.tables[dto_type] = table
                logger.debug("Cached %d shaping accessors for %s", len(table), dto_type.__name__)
        return table

    @staticmethod
    def _parse(fields: Optional[str]) -> Set[str]:
        if not fields or not fields.strip():
            return set()
        return {name.strip().lower() for name in fields.split(",") if name.strip()}

    # ── Public API ────────────────────────────────────────────────────────

    def validate(self, fields: Optional[str], dto_type: Type[BaseModel]) -> bool:
        requested = self._parse(fields)
        if not requested:
            return True
        known = {public.lower() for public, _ in self.accessors(dto_type)}
        return requested <= known

    def shape_one(
        self,
        entity: BaseModel,
        fields: Optional[str],
        links: Optional[List[LinkDto]] = None,
    ) -> ShapedRecord:
        requested = self._parse(fields)
        values: Dict[str, Any] = {}
        for public, attribute in self.accessors(type(entity)):
            if requested and public.lower() not in requested:
                continue
            values[public] = getattr(entity, attribute)
        return ShapedRecord(fields=values, links=links)

    def shape_many(
        self,
        entities: Iterable[BaseModel],
        fields: Optional[str],
        link_factory: Optional[LinkFactory] = None,
    ) -> List[ShapedRecord]:
        records = []
        for entity in entities:
            links = link_factory(getattr(entity, "id")) if link_factory else None
            records.append(self.shape_one(entity, fields, links=links))
        return records
