"""
DevHabit Backend — Entry Cursor Codec
=======================================

What:  Opaque keyset-pagination cursor for the entries collection.
How:   {"id": ..., "date": "YYYY-MM-DD"} as compact JSON, then base64url
       without padding, so the token is safe in a query string as-is.

Decoding is deliberately permissive: empty input, bad base64 or bad JSON all
decode to None, and callers treat None exactly like "no cursor supplied"
(first page). A tampered cursor therefore degrades to page one instead of a 500.
"""

import base64
import binascii
from datetime import date as date_type
from typing import Optional

from pydantic import BaseModel, ValidationError


class EntryCursor(BaseModel):
    id: str
    date: date_type

    @classmethod
    def encode(cls, id: str, date: date_type) -> str:
        payload = cls(id=id, date=date).model_dump_json().encode("utf-8")
        return base64.urlsafe_b64encode(payload).rstrip(b"=").decode("ascii")

    @classmethod
    def decode(cls, cursor: Optional[str]) -> Optional["EntryCursor"]:
        if not cursor or not cursor.strip():
            return None
        token = cursor.strip()
        try:
            raw = base64.b64decode(
                token + "=" * (-len(token) % 4),
                altchars=b"-_",
                validate=True,
            )
            return cls.model_validate_json(raw)
        except (binascii.Error, ValueError, ValidationError):
            return None
