"""
DevHabit Backend — Shared Query Parameter Checks
==================================================

The list endpoints reject an invalid `sort` or `fields` value with a 400 that
echoes the value back, before any database work happens.
"""

from typing import Optional, Sequence, Type

from pydantic import BaseModel

from devhabit.exceptions import ValidationError
from devhabit.services.data_shaping import DataShapingService
from devhabit.services.sorting import SortMapping, validate_sort


def ensure_valid_sort(sort: Optional[str], mappings: Sequence[SortMapping]) -> None:
    if not validate_sort(sort, mappings):
        raise ValidationError(
            message=f"The provided sort parameter isn't valid: '{sort}'",
            field="sort",
        )


def ensure_valid_fields(
    shaping: DataShapingService, fields: Optional[str], dto_type: Type[BaseModel]
) -> None:
    if not shaping.validate(fields, dto_type):
        raise ValidationError(
            message=f"The provided data shaping fields aren't valid: '{fields}'",
            field="fields",
        )
