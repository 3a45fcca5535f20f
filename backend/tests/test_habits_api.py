"""
DevHabit Backend — Habits API Tests
=====================================

What:  End-to-end tests for /habits through the full middleware stack.
How:   HTTPX AsyncClient over ASGITransport against a SQLite database that is
       recreated for every test (see conftest.py).

What we test:
    ✅ Authentication (missing, expired, wrong audience)
    ✅ Create / get / replace / patch / delete
    ✅ Per-user isolation
    ✅ Search, filters, sorting, shaping and pagination on the list
    ✅ Problem details for invalid sort/fields and body validation
    ✅ Content negotiation: HATEOAS links, v2 shape, 406
    ✅ Conditional requests: 304 on If-None-Match, 412 on stale If-Match
"""

from datetime import timedelta

import pytest

from devhabit.services.content_negotiation import HATEOAS, HATEOAS_V2, VND_V2


async def _create(client, headers, payload, **overrides):
    body = {**payload, **overrides}
    response = await client.post("/habits", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ══════════════════════════════════════════════════════════════════════════
# Authentication
# ══════════════════════════════════════════════════════════════════════════


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        """No bearer token → 401 problem details with a challenge."""
        response = await client.get("/habits")
        assert response.status_code == 401
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["title"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_expired_token(self, client, token_factory):
        token = token_factory(expires_in=timedelta(minutes=-5))
        response = await client.get("/habits", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "The access token has expired"

    @pytest.mark.asyncio
    async def test_wrong_audience(self, client, token_factory):
        token = token_factory(aud="someone-else")
        response = await client.get("/habits", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "The access token is invalid"


# ══════════════════════════════════════════════════════════════════════════
# CRUD
# ══════════════════════════════════════════════════════════════════════════


class TestHabitCrud:
    @pytest.mark.asyncio
    async def test_create_returns_location_and_body(self, client, auth_headers, habit_payload):
        response = await client.post("/habits", json=habit_payload, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["id"].startswith("h_")
        assert body["name"] == "Read books"
        assert body["frequency"] == {"type": 1, "timesPerPeriod": 1}
        assert body["status"] == 1
        assert body["isArchived"] is False
        assert "links" not in body
        assert response.headers["location"] == f"http://test/habits/{body['id']}"

    @pytest.mark.asyncio
    async def test_create_validation_errors(self, client, auth_headers, habit_payload):
        """Body validation failures are 400 with a field → messages map."""
        response = await client.post(
            "/habits",
            json={**habit_payload, "name": "ab", "target": {"value": 1, "unit": "parsecs"}},
            headers=auth_headers,
        )
        assert response.status_code == 400
        errors = response.json()["errors"]
        assert "name" in errors
        assert any("Unit must be one of" in m for m in errors["target.unit"])

    @pytest.mark.asyncio
    async def test_get_includes_tags(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        response = await client.get(f"/habits/{habit['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["tags"] == []
        assert response.headers["content-type"].startswith("application/json")

    @pytest.mark.asyncio
    async def test_get_unknown_habit(self, client, auth_headers):
        response = await client.get("/habits/h_missing", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Habit with ID 'h_missing' was not found"

    @pytest.mark.asyncio
    async def test_other_user_cannot_see_habit(self, client, auth_headers, other_auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)

        assert (await client.get(f"/habits/{habit['id']}", headers=other_auth_headers)).status_code == 404
        listing = await client.get("/habits", headers=other_auth_headers)
        assert listing.json()["totalCount"] == 0

    @pytest.mark.asyncio
    async def test_replace(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        replacement = {k: v for k, v in habit_payload.items() if k != "description"}
        response = await client.put(
            f"/habits/{habit['id']}",
            json={**replacement, "name": "Run", "target": {"value": 5, "unit": "km"}, "status": 2},
            headers=auth_headers,
        )
        assert response.status_code == 204
        assert response.headers["etag"].startswith('"')

        body = (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()
        assert body["name"] == "Run"
        assert body["target"] == {"value": 5, "unit": "km"}
        assert body["status"] == 2
        assert body["description"] is None

    @pytest.mark.asyncio
    async def test_patch_merges(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        response = await client.patch(
            f"/habits/{habit['id']}", json={"name": "Read papers"}, headers=auth_headers
        )
        assert response.status_code == 204

        body = (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()
        assert body["name"] == "Read papers"
        assert body["description"] == "Read every evening"

    @pytest.mark.asyncio
    async def test_delete(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)

        assert (await client.delete(f"/habits/{habit['id']}", headers=auth_headers)).status_code == 204
        assert (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).status_code == 404
        assert (await client.delete(f"/habits/{habit['id']}", headers=auth_headers)).status_code == 404


# ══════════════════════════════════════════════════════════════════════════
# List pipeline
# ══════════════════════════════════════════════════════════════════════════


class TestHabitList:
    @pytest.fixture
    def names(self):
        return ["Alpha read", "Beta run", "Gamma swim"]

    async def _seed(self, client, auth_headers, habit_payload, names):
        for name in names:
            await _create(client, auth_headers, habit_payload, name=name, description=None)

    @pytest.mark.asyncio
    async def test_pagination(self, client, auth_headers, habit_payload, names):
        await self._seed(client, auth_headers, habit_payload, names)
        body = (await client.get("/habits?sort=name&page=1&pageSize=2", headers=auth_headers)).json()

        assert [h["name"] for h in body["items"]] == ["Alpha read", "Beta run"]
        assert body["page"] == 1
        assert body["pageSize"] == 2
        assert body["totalCount"] == 3
        assert body["totalPages"] == 2
        assert body["hasNextPage"] is True
        assert body["hasPreviousPage"] is False
        assert "links" not in body

        last = (await client.get("/habits?sort=name&page=2&pageSize=2", headers=auth_headers)).json()
        assert [h["name"] for h in last["items"]] == ["Gamma swim"]
        assert last["hasNextPage"] is False

    @pytest.mark.asyncio
    async def test_sort_descending(self, client, auth_headers, habit_payload, names):
        await self._seed(client, auth_headers, habit_payload, names)
        body = (await client.get("/habits?sort=-name", headers=auth_headers)).json()
        assert [h["name"] for h in body["items"]] == ["Gamma swim", "Beta run", "Alpha read"]

    @pytest.mark.asyncio
    async def test_search(self, client, auth_headers, habit_payload, names):
        await self._seed(client, auth_headers, habit_payload, names)
        body = (await client.get("/habits?q=RUN", headers=auth_headers)).json()
        assert [h["name"] for h in body["items"]] == ["Beta run"]

    @pytest.mark.asyncio
    async def test_type_filter(self, client, auth_headers, habit_payload):
        await _create(client, auth_headers, habit_payload)
        await _create(
            client, auth_headers, habit_payload,
            name="Meditate", type=1, target={"value": 1, "unit": "sessions"},
        )
        body = (await client.get("/habits?type=1", headers=auth_headers)).json()
        assert [h["name"] for h in body["items"]] == ["Meditate"]

    @pytest.mark.asyncio
    async def test_fields_shaping(self, client, auth_headers, habit_payload, names):
        await self._seed(client, auth_headers, habit_payload, names)
        body = (await client.get("/habits?fields=name,id&sort=name", headers=auth_headers)).json()
        assert list(body["items"][0]) == ["id", "name"]

    @pytest.mark.asyncio
    async def test_invalid_sort(self, client, auth_headers):
        response = await client.get("/habits?sort=password", headers=auth_headers)
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "The provided sort parameter isn't valid: 'password'"
        assert "sort" in body["errors"]

    @pytest.mark.asyncio
    async def test_invalid_fields(self, client, auth_headers):
        response = await client.get("/habits?fields=id,secret", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "The provided data shaping fields aren't valid: 'id,secret'"

    @pytest.mark.asyncio
    async def test_page_past_the_end_is_empty(self, client, auth_headers, habit_payload, names):
        await self._seed(client, auth_headers, habit_payload, names)
        for page in (5, 10**20):
            response = await client.get(f"/habits?page={page}&pageSize=2", headers=auth_headers)
            assert response.status_code == 200
            body = response.json()
            assert body["items"] == []
            assert body["totalCount"] == 3
            assert body["hasNextPage"] is False

    @pytest.mark.asyncio
    async def test_page_size_limit(self, client, auth_headers):
        response = await client.get("/habits?pageSize=1000", headers=auth_headers)
        assert response.status_code == 400
        assert "pageSize" in response.json()["errors"]


# ══════════════════════════════════════════════════════════════════════════
# Content negotiation
# ══════════════════════════════════════════════════════════════════════════


class TestNegotiation:
    @pytest.mark.asyncio
    async def test_hateoas_list_links(self, client, auth_headers, habit_payload):
        for name in ("Alpha read", "Beta run"):
            await _create(client, auth_headers, habit_payload, name=name)
        response = await client.get(
            "/habits?pageSize=1&sort=name", headers={**auth_headers, "Accept": HATEOAS}
        )

        assert response.headers["content-type"].startswith(HATEOAS)
        body = response.json()
        rels = {link["rel"]: link for link in body["links"]}
        assert set(rels) == {"self", "create", "next-page"}
        assert rels["next-page"]["href"] == "http://test/habits?sort=name&page=2&pageSize=1"
        assert rels["create"]["method"] == "POST"

        item = body["items"][0]
        item_rels = [link["rel"] for link in item["links"]]
        assert item_rels == ["self", "update", "partial-update", "delete", "upsert-tags"]
        assert item["links"][0]["href"] == f"http://test/habits/{item['id']}"
        assert item["links"][4]["href"] == f"http://test/habits/{item['id']}/tags"

    @pytest.mark.asyncio
    async def test_hateoas_detail_and_create(self, client, habit_payload, auth_headers):
        headers = {**auth_headers, "Accept": HATEOAS}
        created = await client.post("/habits", json=habit_payload, headers=headers)
        assert [link["rel"] for link in created.json()["links"]][0] == "self"

        detail = await client.get(f"/habits/{created.json()['id']}", headers=headers)
        assert len(detail.json()["links"]) == 5

    @pytest.mark.asyncio
    async def test_v2_detail(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        response = await client.get(f"/habits/{habit['id']}", headers={**auth_headers, "Accept": VND_V2})

        assert response.headers["content-type"].startswith(VND_V2)
        body = response.json()
        assert "createdAt" in body
        assert "createdAtUtc" not in body
        assert "links" not in body

    @pytest.mark.asyncio
    async def test_v2_fields_validated_against_v2_shape(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        ok = await client.get(
            f"/habits/{habit['id']}?fields=id,createdAt", headers={**auth_headers, "Accept": HATEOAS_V2}
        )
        assert ok.status_code == 200
        assert list(ok.json()) == ["id", "createdAt", "links"]

        bad = await client.get(
            f"/habits/{habit['id']}?fields=createdAtUtc", headers={**auth_headers, "Accept": VND_V2}
        )
        assert bad.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_accept(self, client, auth_headers):
        response = await client.get("/habits", headers={**auth_headers, "Accept": "text/csv"})
        assert response.status_code == 406


# ══════════════════════════════════════════════════════════════════════════
# Conditional requests
# ══════════════════════════════════════════════════════════════════════════


class TestETags:
    @pytest.mark.asyncio
    async def test_if_none_match_returns_304(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        first = await client.get(f"/habits/{habit['id']}", headers=auth_headers)
        etag = first.headers["etag"]

        second = await client.get(
            f"/habits/{habit['id']}", headers={**auth_headers, "If-None-Match": etag}
        )
        assert second.status_code == 304
        assert second.content == b""
        assert second.headers["etag"] == etag

    @pytest.mark.asyncio
    async def test_stale_if_match_returns_412(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        path = f"/habits/{habit['id']}"
        etag = (await client.get(path, headers=auth_headers)).headers["etag"]

        stale = await client.patch(
            path, json={"name": "Changed"}, headers={**auth_headers, "If-Match": '"stale"'}
        )
        assert stale.status_code == 412
        assert stale.headers["etag"] == etag
        assert stale.json()["title"] == "Precondition Failed"

        fresh = await client.patch(path, json={"name": "Changed"}, headers={**auth_headers, "If-Match": etag})
        assert fresh.status_code == 204
        assert fresh.headers["etag"] != etag

        # The first ETag is now out of date
        again = await client.patch(path, json={"name": "Again"}, headers={**auth_headers, "If-Match": etag})
        assert again.status_code == 412

    @pytest.mark.asyncio
    async def test_wildcard_if_match(self, client, auth_headers, habit_payload):
        habit = await _create(client, auth_headers, habit_payload)
        path = f"/habits/{habit['id']}"
        await client.get(path, headers=auth_headers)

        response = await client.patch(path, json={"name": "Any"}, headers={**auth_headers, "If-Match": "*"})
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_query_strings_do_not_grow_the_store(self, app, client, auth_headers, habit_payload):
        """Views with a query string get an ETag but are not remembered."""
        await _create(client, auth_headers, habit_payload)
        store = app.state.etag_store
        await client.get("/habits", headers=auth_headers)
        size = len(store)

        for i in range(50):
            response = await client.get(f"/habits?junk={i}", headers=auth_headers)
            assert "etag" in response.headers
        assert len(store) == size

        etag = response.headers["etag"]
        cached = await client.get("/habits?junk=49", headers={**auth_headers, "If-None-Match": etag})
        assert cached.status_code == 304


# ══════════════════════════════════════════════════════════════════════════
# Ambient
# ══════════════════════════════════════════════════════════════════════════


class TestAmbient:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client, auth_headers):
        response = await client.get("/habits/h_missing", headers={**auth_headers, "X-Request-ID": "abc123"})
        assert response.headers["x-request-id"] == "abc123"
        assert response.json()["requestId"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["x-request-id"]) == 12
