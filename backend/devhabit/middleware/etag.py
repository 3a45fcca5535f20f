"""
DevHabit Backend — ETag Middleware
====================================

What:  Conditional requests on top of InMemoryETagStore.
How:
    200 JSON reply   (GET, PUT or PATCH) Fingerprint the body, store it for
                     the request path and send it as `ETag`. On GET, if the
                     client's `If-None-Match` already equals it, answer 304
                     with no body. Writes answering 204 update the store
                     themselves from the route.
    PUT / PATCH      If `If-Match` is present and a fingerprint is stored for
                     the path, they must be equal (or If-Match is "*");
                     otherwise 412 before the handler runs.
    DELETE 2xx       Forget the path.

    GET requests with a query string (e.g. ?fields=name) still get an `ETag`
    and 304 handling, but are never stored: a partial view must not become
    the precondition for a write, and arbitrary query strings would grow the
    store without bound.
"""

import json
import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from devhabit.exceptions import PreconditionFailedError
from devhabit.responses import problem_response
from devhabit.services.etag_store import InMemoryETagStore, fingerprint, fingerprint_bytes

logger = logging.getLogger(__name__)

_WRITE_METHODS = {"PUT", "PATCH"}
_FINGERPRINTED_METHODS = {"GET", "PUT", "PATCH"}


def _body_etag(body: bytes) -> str:
    try:
        return fingerprint(json.loads(body))
    except ValueError:
        return fingerprint_bytes(body)


class ETagMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        store: InMemoryETagStore = request.app.state.etag_store
        method = request.method

        # ── Preconditions on writes ───────────────────────────────────────
        if method in _WRITE_METHODS:
            if_match = request.headers.get("If-Match", "").strip()
            current = store.get_etag(request.url.path)
            if if_match and if_match != "*" and current is not None and if_match != current:
                logger.info("Rejected stale write to %s", request.url.path)
                # Raised exceptions would bypass the app's handlers from here
                exc = PreconditionFailedError(
                    message="The resource has been modified since it was last retrieved",
                    context={"path": request.url.path},
                )
                return problem_response(
                    exc.status_code, exc.title, exc.message, headers={"ETag": current}
                )

        response = await call_next(request)

        if method == "DELETE" and 200 <= response.status_code < 300:
            store.remove_etag(request.url.path)
            return response

        content_type = response.headers.get("content-type", "")
        if (
            method not in _FINGERPRINTED_METHODS
            or response.status_code != 200
            or "json" not in content_type
        ):
            return response

        # ── Fingerprint successful JSON replies ──────────────────────────
        body = b"".join([chunk async for chunk in response.body_iterator])
        etag = _body_etag(body)
        if not request.url.query:
            store.set_raw(request.url.path, etag)

        headers = dict(response.headers)
        headers["etag"] = etag
        if method == "GET" and request.headers.get("If-None-Match", "").strip() == etag:
            headers.pop("content-length", None)
            headers.pop("content-type", None)
            return Response(status_code=304, headers=headers)
        return Response(content=body, status_code=response.status_code, headers=headers)
