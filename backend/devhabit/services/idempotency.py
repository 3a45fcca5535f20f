"""
DevHabit Backend — Idempotent Request Filter
==============================================

What:  Makes mutating endpoints safe to retry. A client sends
       `Idempotency-Key: <uuid>`; replays of that key within the TTL get the
       first response back without the handler running again.
Why:   Mobile clients and flaky networks retry POSTs. Without a key, a retry
       after a lost response would log the same habit entry twice.

Per-key state machine:
    unseen ──first request──▶ executing ──handler returns, commit ok──▶ cached(response)
       ▲                                                                   │
       └──────────────────────────── TTL elapses ──────────────────────────┘

The request's session is committed before the response is cached. If the
commit fails nothing is cached, so a retry with the same key runs the handler
again instead of replaying a write that never happened.

What is cached:
    The full response (status, body, content headers) plus a SHA-256
    fingerprint of the request body. Replaying a key with a *different* body
    is rejected with 422 instead of returning a response that belongs to
    another payload.

Known gap:
    No lock is held across the handler. Two requests with the same fresh key
    racing each other both execute; the later one overwrites the record.

Usage:
    @router.post("/entries")
    @idempotent_request
    async def create_entry(request: Request, ...):
        ...
    The endpoint must declare a `request: Request` parameter.
"""

import functools
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabit.exceptions import (
    ConfigurationError,
    DatabaseError,
    IdempotencyKeyReuseError,
    ValidationError,
)
from devhabit.services.memory_cache import MemoryCache

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAYED_HEADER = "Idempotent-Replayed"
CACHE_KEY_PREFIX = "idempotence:"

# Response headers worth replaying; hop-by-hop and length headers are rebuilt
_REPLAYED_HEADERS = ("content-type", "location", "etag")


@dataclass(frozen=True)
class IdempotencyRecord:
    key: uuid.UUID
    status_code: int
    request_fingerprint: str
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_response(cls, key: uuid.UUID, response: Response, fingerprint: str) -> "IdempotencyRecord":
        headers = {
            name: response.headers[name]
            for name in _REPLAYED_HEADERS
            if name in response.headers
        }
        return cls(
            key=key,
            status_code=response.status_code,
            request_fingerprint=fingerprint,
            body=bytes(getattr(response, "body", b"") or b""),
            headers=headers,
        )

    def to_response(self) -> Response:
        response = Response(content=self.body, status_code=self.status_code, headers=self.headers)
        response.headers[REPLAYED_HEADER] = "true"
        return response


class IdempotencyCache:
    """TTL-bounded store of IdempotencyRecord, one instance per application."""

    def __init__(self, cache: MemoryCache, ttl: timedelta):
        self._cache = cache
        self._ttl_seconds = ttl.total_seconds()

    @staticmethod
    def _cache_key(key: uuid.UUID) -> str:
        return f"{CACHE_KEY_PREFIX}{key}"

    def get(self, key: uuid.UUID) -> Optional[IdempotencyRecord]:
        return self._cache.get(self._cache_key(key))

    def store(self, record: IdempotencyRecord) -> None:
        self._cache.set(self._cache_key(record.key), record, self._ttl_seconds)


def parse_idempotency_key(request: Request) -> uuid.UUID:
    raw = request.headers.get(IDEMPOTENCY_HEADER, "").strip()
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise ValidationError(
            message="Invalid or missing Idempotency-Key header",
            field=IDEMPOTENCY_HEADER,
        )


async def _commit_session(kwargs: Dict[str, object], key: uuid.UUID) -> None:
    # The session dependency commits again on exit; committing twice is a no-op
    for value in kwargs.values():
        if isinstance(value, AsyncSession):
            try:
                await value.commit()
            except SQLAlchemyError as e:
                logger.error("Commit failed for idempotency key %s: %s", key, str(e))
                raise DatabaseError(context={"idempotency_key": str(key)})


def idempotent_request(handler):
    """Decorator wrapping a FastAPI endpoint with the idempotency filter."""

    @functools.wraps(handler)
    async def wrapper(*args, **kwargs):
        request: Optional[Request] = kwargs.get("request")
        if not isinstance(request, Request):
            raise ConfigurationError(
                message=f"Endpoint '{handler.__name__}' must declare a 'request: Request' parameter",
            )

        key = parse_idempotency_key(request)
        cache: IdempotencyCache = request.app.state.idempotency_cache
        fingerprint = hashlib.sha256(await request.body()).hexdigest()

        cached = cache.get(key)
        if cached is not None:
            if cached.request_fingerprint != fingerprint:
                raise IdempotencyKeyReuseError(
                    message="The Idempotency-Key was already used with a different request body",
                    context={"idempotency_key": str(key)},
                )
            logger.info("Replaying cached response for idempotency key %s", key)
            return cached.to_response()

        result = await handler(*args, **kwargs)

        if isinstance(result, Response):
            await _commit_session(kwargs, key)
            cache.store(IdempotencyRecord.from_response(key, result, fingerprint))
        else:
            logger.warning(
                "Endpoint '%s' returned %s; only Response objects are cached",
                handler.__name__,
                type(result).__name__,
            )
        return result

    return wrapper
