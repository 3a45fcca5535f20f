"""
DevHabit Backend — Tags & Habit Tags API Tests
================================================

What we test:
    ✅ Tag CRUD with Location and ETag headers
    ✅ Duplicate names → 409, per-user (another user may reuse a name)
    ✅ Tag cap → 400, and the `create` link disappears at the cap
    ✅ Replacing and detaching a habit's tags
"""

import pytest

from devhabit.config import settings
from devhabit.services.content_negotiation import HATEOAS


async def _tag(client, headers, name, description=None):
    response = await client.post("/tags", json={"name": name, "description": description}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestTagsApi:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client, auth_headers):
        tag = await _tag(client, auth_headers, "health", "Body")
        assert tag["id"].startswith("t_")

        response = await client.get(f"/tags/{tag['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "health"
        assert response.json()["description"] == "Body"

    @pytest.mark.asyncio
    async def test_location_header(self, client, auth_headers):
        response = await client.post("/tags", json={"name": "work"}, headers=auth_headers)
        assert response.headers["location"] == f"http://test/tags/{response.json()['id']}"

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, client, auth_headers):
        await _tag(client, auth_headers, "health")
        response = await client.post("/tags", json={"name": "health"}, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "The tag 'health' already exists"

    @pytest.mark.asyncio
    async def test_same_name_for_another_user(self, client, auth_headers, other_auth_headers):
        """Uniqueness is per user."""
        await _tag(client, auth_headers, "health")
        await _tag(client, other_auth_headers, "health")

    @pytest.mark.asyncio
    async def test_name_length_validation(self, client, auth_headers):
        response = await client.post("/tags", json={"name": "ab"}, headers=auth_headers)
        assert response.status_code == 400
        assert "name" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_list_sorted_and_shaped(self, client, auth_headers):
        for name in ("work", "health"):
            await _tag(client, auth_headers, name)
        body = (await client.get("/tags?fields=name", headers=auth_headers)).json()

        assert body["items"] == [{"name": "health"}, {"name": "work"}]
        assert "links" not in body

    @pytest.mark.asyncio
    async def test_cap_enforced(self, client, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "max_allowed_tags", 2)
        await _tag(client, auth_headers, "health")

        headers = {**auth_headers, "Accept": HATEOAS}
        below = (await client.get("/tags", headers=headers)).json()
        assert [link["rel"] for link in below["links"]] == ["self", "create"]

        await _tag(client, auth_headers, "work")
        response = await client.post("/tags", json={"name": "sport"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Reached the maximum number of allowed tags"

        at_cap = (await client.get("/tags", headers=headers)).json()
        assert [link["rel"] for link in at_cap["links"]] == ["self"]
        assert [link["rel"] for link in at_cap["items"][0]["links"]] == ["self", "update", "delete"]

    @pytest.mark.asyncio
    async def test_update_returns_etag(self, client, auth_headers):
        tag = await _tag(client, auth_headers, "health")
        response = await client.put(
            f"/tags/{tag['id']}", json={"name": "wellbeing", "description": "Longer text"}, headers=auth_headers
        )

        assert response.status_code == 204
        assert response.headers["etag"].startswith('"')
        assert (await client.get(f"/tags/{tag['id']}", headers=auth_headers)).json()["name"] == "wellbeing"

    @pytest.mark.asyncio
    async def test_update_to_existing_name_conflicts(self, client, auth_headers):
        await _tag(client, auth_headers, "health")
        work = await _tag(client, auth_headers, "work")
        response = await client.put(f"/tags/{work['id']}", json={"name": "health"}, headers=auth_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete(self, client, auth_headers):
        tag = await _tag(client, auth_headers, "health")
        assert (await client.delete(f"/tags/{tag['id']}", headers=auth_headers)).status_code == 204
        assert (await client.get(f"/tags/{tag['id']}", headers=auth_headers)).status_code == 404


class TestHabitTagsApi:
    @pytest.mark.asyncio
    async def test_replace_and_detach(self, client, auth_headers, habit_payload):
        habit = (await client.post("/habits", json=habit_payload, headers=auth_headers)).json()
        health = await _tag(client, auth_headers, "health")
        work = await _tag(client, auth_headers, "work")
        path = f"/habits/{habit['id']}/tags"

        response = await client.put(path, json={"tagIds": [work["id"], health["id"]]}, headers=auth_headers)
        assert response.status_code == 204
        detail = (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()
        assert detail["tags"] == ["health", "work"]

        # Same set again is accepted and changes nothing
        assert (await client.put(path, json={"tagIds": [health["id"], work["id"]]}, headers=auth_headers)).status_code == 204

        assert (await client.delete(f"{path}/{work['id']}", headers=auth_headers)).status_code == 204
        detail = (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()
        assert detail["tags"] == ["health"]
        assert (await client.delete(f"{path}/{work['id']}", headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_empty_set_clears(self, client, auth_headers, habit_payload):
        habit = (await client.post("/habits", json=habit_payload, headers=auth_headers)).json()
        tag = await _tag(client, auth_headers, "health")
        path = f"/habits/{habit['id']}/tags"

        await client.put(path, json={"tagIds": [tag["id"]]}, headers=auth_headers)
        await client.put(path, json={"tagIds": []}, headers=auth_headers)
        assert (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()["tags"] == []

    @pytest.mark.asyncio
    async def test_malformed_and_duplicate_ids(self, client, auth_headers, habit_payload):
        habit = (await client.post("/habits", json=habit_payload, headers=auth_headers)).json()
        path = f"/habits/{habit['id']}/tags"

        malformed = await client.put(path, json={"tagIds": ["h_123"]}, headers=auth_headers)
        assert malformed.status_code == 400
        duplicate = await client.put(path, json={"tagIds": ["t_1", "t_1"]}, headers=auth_headers)
        assert duplicate.status_code == 400

    @pytest.mark.asyncio
    async def test_foreign_tag_rejected(self, client, auth_headers, other_auth_headers, habit_payload):
        habit = (await client.post("/habits", json=habit_payload, headers=auth_headers)).json()
        foreign = await _tag(client, other_auth_headers, "health")

        response = await client.put(
            f"/habits/{habit['id']}/tags", json={"tagIds": [foreign["id"]]}, headers=auth_headers
        )
        assert response.status_code == 400
        assert "tagIds" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_unknown_habit(self, client, auth_headers):
        response = await client.put("/habits/h_missing/tags", json={"tagIds": []}, headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_deleting_tag_detaches_it(self, client, auth_headers, habit_payload):
        habit = (await client.post("/habits", json=habit_payload, headers=auth_headers)).json()
        tag = await _tag(client, auth_headers, "health")
        await client.put(f"/habits/{habit['id']}/tags", json={"tagIds": [tag["id"]]}, headers=auth_headers)

        await client.delete(f"/tags/{tag['id']}", headers=auth_headers)
        assert (await client.get(f"/habits/{habit['id']}", headers=auth_headers)).json()["tags"] == []
