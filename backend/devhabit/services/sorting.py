"""
DevHabit Backend — Sort Mapping Registry & Sort Expression Translator
=======================================================================

What:  Whitelists the sortable fields of each (DTO, entity) pair and turns a
       client sort string such as `name,-createdAtUtc` into ORDER BY clauses.
Why:   Clients sort by public (camelCase, dotted) names; the database sorts
       by ORM attributes. The registry is the only bridge between the two, so
       nothing a client sends ever reaches getattr() unchecked.
How:   Definitions are registered once at startup. Per request, routes call
       validate() before any database work and translate()/apply_sort()
       afterwards.

Sort string grammar:
    sort   := field ("," field)*
    field  := ["-"] logical-name        (leading "-" = descending)

    Matching is case-insensitive and whitespace around tokens is ignored.
    Fields compose as a stable multi-key ordering in the order given. The
    translator never adds a tie-breaker; callers needing a total order (cursor
    pagination) append one themselves.

Invariant:
    translate() must only be called with strings that validate() accepted.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import Select

from devhabit.exceptions import ConfigurationError, SortMappingNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortMapping:
    """
    One sortable field.

    Attributes:
        sort_field:    Public name clients use (e.g. "frequency.type")
        property_name: ORM attribute on the entity (e.g. "frequency_type")
        reverse:       Flip the direction, for columns whose natural order is
                       the opposite of what users expect
    """

    sort_field: str
    property_name: str
    reverse: bool = False


@dataclass(frozen=True)
class SortMappingDefinition:
    dto_type: type
    entity_type: type
    mappings: Tuple[SortMapping, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ParsedSortField:
    storage_path: str
    descending: bool


def _tokens(sort: str) -> List[str]:
    return [token.strip() for token in sort.split(",") if token.strip()]


def _split_direction(token: str) -> Tuple[str, bool]:
    if token.startswith("-"):
        return token[1:].strip(), True
    return token, False


def _find(mappings: Sequence[SortMapping], name: str):
    lowered = name.lower()
    for mapping in mappings:
        if mapping.sort_field.lower() == lowered:
            return mapping
    return None


def validate_sort(sort: str | None, mappings: Sequence[SortMapping]) -> bool:
    """True when every token names a whitelisted field. Empty input is valid."""
    if not sort or not sort.strip():
        return True
    for token in _tokens(sort):
        name, _ = _split_direction(token)
        if not name or _find(mappings, name) is None:
            return False
    return True


def translate_sort(sort: str | None, mappings: Sequence[SortMapping]) -> List[ParsedSortField]:
    """One ParsedSortField per token, in input order."""
    if not sort or not sort.strip():
        return []
    parsed: List[ParsedSortField] = []
    for token in _tokens(sort):
        name, descending = _split_direction(token)
        mapping = _find(mappings, name)
        if mapping is None:
            # validate_sort() guards every caller; reaching this is a bug
            raise ValueError(f"Sort field '{name}' is not mapped")
        parsed.append(
            ParsedSortField(
                storage_path=mapping.property_name,
                descending=descending != mapping.reverse,
            )
        )
    return parsed


def apply_sort(
    statement: Select,
    sort: str | None,
    mappings: Sequence[SortMapping],
    entity: type,
) -> Select:
    """
    Append ORDER BY clauses for `sort` to a SELECT over `entity`.

    An empty sort returns the statement unchanged, so callers can chain a
    default ordering with `.order_by()` themselves.
    """
    for parsed in translate_sort(sort, mappings):
        column = getattr(entity, parsed.storage_path)
        statement = statement.order_by(column.desc() if parsed.descending else column.asc())
    return statement


class SortMappingProvider:
    """
    Registry of sort mapping definitions keyed by (DTO type, entity type).

    Created once per application (app.state.sort_mappings) and read-only
    after startup.
    """

    def __init__(self, definitions: Iterable[SortMappingDefinition] = ()):
        self._definitions: Dict[Tuple[type, type], SortMappingDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: SortMappingDefinition) -> None:
        key = (definition.dto_type, definition.entity_type)
        self._definitions[key] = definition
        logger.debug(
            "Registered %d sort mappings for %s -> %s",
            len(definition.mappings),
            definition.dto_type.__name__,
            definition.entity_type.__name__,
        )

    def get_mappings(self, dto_type: type, entity_type: type) -> Tuple[SortMapping, ...]:
        """
        Raises:
            SortMappingNotFoundError: nothing registered for the pair. This is a
            programming error, surfaced at startup by ensure_registered().
        """
        definition = self._definitions.get((dto_type, entity_type))
        if definition is None:
            raise SortMappingNotFoundError(dto_type, entity_type)
        return definition.mappings

    def validate_mappings(self, dto_type: type, entity_type: type, sort: str | None) -> bool:
        return validate_sort(sort, self.get_mappings(dto_type, entity_type))

    def ensure_registered(self, pairs: Iterable[Tuple[type, type]]) -> None:
        """Fail fast at startup if a route depends on an unregistered pair."""
        for dto_type, entity_type in pairs:
            mappings = self.get_mappings(dto_type, entity_type)
            for mapping in mappings:
                if not hasattr(entity_type, mapping.property_name):
                    raise ConfigurationError(
                        message=(
                            f"Sort field '{mapping.sort_field}' maps to unknown attribute "
                            f"'{entity_type.__name__}.{mapping.property_name}'"
                        ),
                    )
