"""
DevHabit Backend — Request Dependencies
=========================================

Providers for the process-wide components created in main.create_app() and
stored on `app.state`. Routes receive them through Depends() instead of
importing module globals, so tests can build an app with fresh instances.
"""

from fastapi import Request

from devhabit.services.data_shaping import DataShapingService
from devhabit.services.etag_store import InMemoryETagStore
from devhabit.services.links import LinkService
from devhabit.services.sorting import SortMappingProvider


def get_link_service(request: Request) -> LinkService:
    return LinkService(request)


def get_data_shaping(request: Request) -> DataShapingService:
    return request.app.state.data_shaping


def get_sort_mappings(request: Request) -> SortMappingProvider:
    return request.app.state.sort_mappings


def get_etag_store(request: Request) -> InMemoryETagStore:
    return request.app.state.etag_store
