"""
DevHabit Backend — Content Negotiation
========================================

What:  Parses the Accept header into (media type, include links?, API version).
Why:   One URL serves several representations: plain JSON, JSON with HATEOAS
       links, and versioned shapes (v2 renames the habit timestamps).
How:   Vendor media types carry the options in the subtype:

    application/json                           → v1, no links
    application/vnd.dev-habit.v1+json          → v1, no links
    application/vnd.dev-habit.v2+json          → v2, no links
    application/vnd.dev-habit.hateoas+json     → v1, links
    application/vnd.dev-habit.hateoas.1+json   → v1, links
    application/vnd.dev-habit.hateoas.2+json   → v2, links

    q-values are honoured; */* and application/* (or no header) fall back to
    application/json. Nothing acceptable → NotAcceptableError (406).
    Responses echo the chosen media type as Content-Type.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from fastapi import Header

from devhabit.exceptions import NotAcceptableError

JSON = "application/json"
VND_V1 = "application/vnd.dev-habit.v1+json"
VND_V2 = "application/vnd.dev-habit.v2+json"
HATEOAS = "application/vnd.dev-habit.hateoas+json"
HATEOAS_V1 = "application/vnd.dev-habit.hateoas.1+json"
HATEOAS_V2 = "application/vnd.dev-habit.hateoas.2+json"

SUPPORTED_MEDIA_TYPES = (JSON, VND_V1, VND_V2, HATEOAS, HATEOAS_V1, HATEOAS_V2)

_VERSION_PATTERN = re.compile(r"(?:\.v|\.)(\d+)\+json$")


@dataclass(frozen=True)
class AcceptHeader:
    media_type: str = JSON

    @property
    def include_links(self) -> bool:
        return "hateoas" in self.media_type.split("/", 1)[-1]

    @property
    def version(self) -> int:
        match = _VERSION_PATTERN.search(self.media_type)
        return int(match.group(1)) if match else 1

    @classmethod
    def parse(cls, value: Optional[str]) -> "AcceptHeader":
        if not value or not value.strip():
            return cls()
        candidates = sorted(_parse_ranges(value), key=lambda item: item[1], reverse=True)
        for media_range, quality in candidates:
            if quality <= 0:
                continue
            if media_range in ("*/*", "application/*"):
                return cls(JSON)
            if media_range in SUPPORTED_MEDIA_TYPES:
                return cls(media_range)
        raise NotAcceptableError(value, list(SUPPORTED_MEDIA_TYPES))


def _parse_ranges(value: str) -> List[Tuple[str, float]]:
    ranges = []
    for part in value.split(","):
        pieces = [p.strip() for p in part.split(";")]
        media_range = pieces[0].lower()
        if not media_range:
            continue
        quality = 1.0
        for param in pieces[1:]:
            name, _, raw = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(raw)
                except ValueError:
                    quality = 0.0
        ranges.append((media_range, quality))
    return ranges


def get_accept_header(accept: Optional[str] = Header(default=None)) -> AcceptHeader:
    """FastAPI dependency: negotiated representation for the current request."""
    return AcceptHeader.parse(accept)
