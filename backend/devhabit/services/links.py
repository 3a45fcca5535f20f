"""
DevHabit Backend — HATEOAS Link Service
=========================================

What:  Builds absolute hypermedia links from an endpoint name plus route values.
Why:   Responses describe what the client can do next (update, delete,
       next-page, ...) without the client hard-coding URL templates.
How:   Two resolution strategies, tried in order:

    1. Action-based: find the route whose endpoint *function* is named
       `endpoint_name`, optionally restricted to routes tagged `controller`
       (the router tag, e.g. "Habits"). Covers every plain @router.get(...).
    2. Name-based: find the route registered under `name=endpoint_name`
       and resolve it with request.url_for(). Covers routes given an explicit
       name that differs from their function.

    Route values that match a path parameter fill the path; the remaining
    values become the query string (None and "" dropped).

Failure to resolve is a programming error (a broken link definition), so it
raises LinkGenerationError instead of silently omitting the link.
"""

import enum
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import urlencode

from fastapi import Request
from fastapi.routing import APIRoute
from starlette.routing import NoMatchFound

from devhabit.exceptions import LinkGenerationError
from devhabit.schemas.common import LinkDto

logger = logging.getLogger(__name__)


def _render(value: Any) -> str:
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


class LinkService:
    """Request-scoped: links are absolute, so they depend on the request's base URL."""

    def __init__(self, request: Request):
        self._request = request

    # ── Public API ────────────────────────────────────────────────────────

    def create(
        self,
        endpoint_name: str,
        rel: str,
        method: str,
        values: Optional[Mapping[str, Any]] = None,
        controller: Optional[str] = None,
    ) -> LinkDto:
        route_values = {
            key: value for key, value in (values or {}).items() if value is not None and value != ""
        }
        href = self._resolve_by_action(endpoint_name, route_values, controller)
        if href is None:
            href = self._resolve_by_name(endpoint_name, route_values)
        if href is None:
            logger.error(
                "Link generation failed for endpoint '%s' (controller=%s, values=%s)",
                endpoint_name,
                controller,
                sorted(route_values),
            )
            raise LinkGenerationError(endpoint_name, controller)
        return LinkDto(href=href, rel=rel, method=method)

    # ── Resolution strategies ─────────────────────────────────────────────

    def _api_routes(self) -> Iterable[APIRoute]:
        return (route for route in self._request.app.routes if isinstance(route, APIRoute))

    def _resolve_by_action(
        self,
        endpoint_name: str,
        values: Dict[str, Any],
        controller: Optional[str],
    ) -> Optional[str]:
        for route in self._api_routes():
            if getattr(route.endpoint, "__name__", None) != endpoint_name:
                continue
            if controller is not None and controller not in route.tags:
                continue
            href = self._build(route, values)
            if href is not None:
                return href
        return None

    def _resolve_by_name(self, endpoint_name: str, values: Dict[str, Any]) -> Optional[str]:
        for route in self._api_routes():
            if route.name != endpoint_name:
                continue
            path_values, query_values = self._split(route, values)
            try:
                url = self._request.url_for(endpoint_name, **path_values)
            except NoMatchFound:
                continue
            return self._with_query(str(url), query_values)
        return None

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _split(route: APIRoute, values: Dict[str, Any]) -> Tuple[Dict[str, str], Dict[str, Any]]:
        path_names = set(route.param_convertors)
        path_values = {k: _render(v) for k, v in values.items() if k in path_names}
        query_values = {k: v for k, v in values.items() if k not in path_names}
        return path_values, query_values

    def _build(self, route: APIRoute, values: Dict[str, Any]) -> Optional[str]:
        path_values, query_values = self._split(route, values)
        try:
            path = route.url_path_for(route.name, **path_values)
        except NoMatchFound:
            return None
        url = path.make_absolute_url(base_url=self._request.base_url)
        return self._with_query(str(url), query_values)

    @staticmethod
    def _with_query(url: str, query_values: Dict[str, Any]) -> str:
        if not query_values:
            return url
        return f"{url}?{urlencode({k: _render(v) for k, v in query_values.items()})}"
