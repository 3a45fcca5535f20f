"""
DevHabit Backend — Entry Cursor Codec Unit Tests
==================================================

What we test:
    ✅ Encoded cursors are URL-safe and unpadded
    ✅ Decoding recovers the (id, date) pair
    ✅ Empty, garbage and wrong-shape cursors decode to None (never raise)
"""

import base64
from datetime import date

import pytest

from devhabit.services.cursor import EntryCursor


class TestEntryCursor:
    def test_encode_is_url_safe(self):
        """No '+', '/' or '=' so the cursor can go in a query string as-is."""
        cursor = EntryCursor.encode("e_0195f4a2-7c1b-7f00-8000-000000000000", date(2024, 3, 2))
        assert not set(cursor) & {"+", "/", "="}

    def test_decode_returns_position(self):
        cursor = EntryCursor.encode("e_42", date(2024, 3, 2))
        decoded = EntryCursor.decode(cursor)
        assert decoded == EntryCursor(id="e_42", date=date(2024, 3, 2))

    def test_payload_is_json_with_iso_date(self):
        """The token is base64url over {"id", "date"} JSON."""
        cursor = EntryCursor.encode("e_1", date(2024, 1, 31))
        raw = base64.urlsafe_b64decode(cursor + "=" * (-len(cursor) % 4))
        assert raw == b'{"id":"e_1","date":"2024-01-31"}'

    @pytest.mark.parametrize("cursor", [None, "", "   "])
    def test_empty_cursor_is_none(self, cursor):
        assert EntryCursor.decode(cursor) is None

    @pytest.mark.parametrize(
        "cursor",
        [
            "not base64!",
            base64.urlsafe_b64encode(b"not json").decode(),
            base64.urlsafe_b64encode(b'{"id": "e_1"}').decode(),
            base64.urlsafe_b64encode(b'{"id": "e_1", "date": "yesterday"}').decode(),
            base64.urlsafe_b64encode(b"[1, 2]").decode(),
        ],
    )
    def test_malformed_cursor_is_none(self, cursor):
        """Tampered cursors degrade to 'first page' instead of an error."""
        assert EntryCursor.decode(cursor) is None
