"""
DevHabit Backend — Response Helpers
=====================================

What:  Builders for the two kinds of JSON the API emits.
    problem_response()  RFC 9457 problem details for every error
    negotiated_json()   success bodies with the negotiated vendor media type

Why:   Exception handlers, middleware and routes all need the same error
       envelope; keeping it here avoids three slightly different copies.
"""

from typing import Any, Dict, List, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from devhabit.middleware.request_id import request_id_var
from devhabit.services.content_negotiation import AcceptHeader

PROBLEM_MEDIA_TYPE = "application/problem+json"

_PROBLEM_TYPES = {
    400: "https://tools.ietf.org/html/rfc9110#section-15.5.1",
    401: "https://tools.ietf.org/html/rfc9110#section-15.5.2",
    404: "https://tools.ietf.org/html/rfc9110#section-15.5.5",
    406: "https://tools.ietf.org/html/rfc9110#section-15.5.7",
    409: "https://tools.ietf.org/html/rfc9110#section-15.5.10",
    412: "https://tools.ietf.org/html/rfc9110#section-15.5.13",
    422: "https://tools.ietf.org/html/rfc9110#section-15.5.21",
    500: "https://tools.ietf.org/html/rfc9110#section-15.6.1",
}


def problem_response(
    status_code: int,
    title: str,
    detail: Optional[str] = None,
    errors: Optional[Dict[str, List[str]]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "type": _PROBLEM_TYPES.get(status_code, "about:blank"),
        "title": title,
        "status": status_code,
    }
    if detail:
        content["detail"] = detail
    rid = request_id_var.get("")
    if rid:
        content["requestId"] = rid
    if errors:
        content["errors"] = errors
    return JSONResponse(
        status_code=status_code,
        content=content,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=dict(headers) if headers else None,
    )


def negotiated_json(
    content: Any,
    accept: AcceptHeader,
    status_code: int = 200,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Serialize `content` (camelCase) and echo the negotiated media type."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        media_type=accept.media_type,
        headers=dict(headers) if headers else None,
    )
