"""
DevHabit Backend — Pagination Envelope Unit Tests
===================================================

What we test:
    ✅ hasNextPage / hasPreviousPage / totalPages arithmetic
    ✅ camelCase serialization of the envelope
    ✅ `links` omitted (not null) when not set, present when set
    ✅ Cursor page nextCursor semantics
"""

from typing import Any, Dict

import pytest

from devhabit.schemas.common import CursorPage, LinkDto, PaginationResult


def _page(page: int, page_size: int, total_count: int) -> PaginationResult:
    items = [{"id": str(i)} for i in range(min(page_size, max(total_count - (page - 1) * page_size, 0)))]
    return PaginationResult[Dict[str, Any]].create(
        items=items, page=page, page_size=page_size, total_count=total_count
    )


class TestPaginationResult:
    @pytest.mark.parametrize(
        "page,page_size,total,has_next,has_previous,total_pages",
        [
            (1, 10, 0, False, False, 0),
            (1, 10, 10, False, False, 1),
            (1, 10, 11, True, False, 2),
            (2, 10, 11, False, True, 2),
            (2, 5, 20, True, True, 4),
            (4, 5, 20, False, True, 4),
        ],
    )
    def test_page_flags(self, page, page_size, total, has_next, has_previous, total_pages):
        """Flags derive only from page, pageSize and totalCount."""
        result = _page(page, page_size, total)
        assert result.has_next_page is has_next
        assert result.has_previous_page is has_previous
        assert result.total_pages == total_pages
        assert len(result.items) <= page_size

    def test_page_beyond_end_is_empty(self):
        """Asking past the last page returns no items, not an error."""
        result = _page(5, 10, 12)
        assert result.items == []
        assert result.has_next_page is False
        assert result.has_previous_page is True

    def test_serializes_camel_case_without_links(self):
        """Computed flags use camelCase; `links` is absent when not negotiated."""
        data = _page(1, 2, 3).model_dump(by_alias=True)
        assert data["pageSize"] == 2
        assert data["totalCount"] == 3
        assert data["hasNextPage"] is True
        assert data["hasPreviousPage"] is False
        assert data["totalPages"] == 2
        assert "links" not in data

    def test_links_serialized_when_present(self):
        result = _page(1, 2, 3)
        result.links = [LinkDto(href="http://test/habits", rel="self", method="GET")]
        data = result.model_dump(by_alias=True)
        assert data["links"] == [{"href": "http://test/habits", "rel": "self", "method": "GET"}]


class TestCursorPage:
    def test_last_page_has_null_cursor(self):
        """nextCursor is explicitly null on the last page."""
        data = CursorPage[Dict[str, Any]](items=[{"id": "e_1"}]).model_dump(by_alias=True)
        assert data["nextCursor"] is None
        assert "links" not in data

    def test_next_cursor_alias(self):
        data = CursorPage[Dict[str, Any]](items=[], next_cursor="abc").model_dump(by_alias=True)
        assert data["nextCursor"] == "abc"
