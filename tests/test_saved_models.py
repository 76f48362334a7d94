"""Tests for the saved model repository and endpoints."""

import asyncio
from uuid import uuid4

import pytest

from modelsmith.models.saved_model import SavedModel
from modelsmith.repositories.saved_model import SavedModelRepository

PAYLOAD = {
    "name": "Bronze owl",
    "prompt": "a weathered bronze owl",
    "model_url": "/api/relay?url=https%3A%2F%2Fcdn.test%2Ffiles%2Fmodel.glb",
}


class TestSavedModelRepository:
    @pytest.mark.asyncio
    async def test_add_and_get(self):
        repo = SavedModelRepository()
        model = await repo.add(SavedModel(name="Owl", prompt="owl", model_url="https://x/a.glb"))

        assert await repo.get_by_id(model.id) == model
        assert await repo.get_by_id(uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_newest_first_with_pagination(self):
        repo = SavedModelRepository()
        for index in range(3):
            await repo.add(SavedModel(name=f"m{index}", prompt="p", model_url="u"))
            await asyncio.sleep(0.001)

        listed = await repo.list_all()
        assert [m.name for m in listed] == ["m2", "m1", "m0"]

        page = await repo.list_all(limit=1, offset=1)
        assert [m.name for m in page] == ["m1"]

    @pytest.mark.asyncio
    async def test_delete(self):
        repo = SavedModelRepository()
        model = await repo.add(SavedModel(name="Owl", prompt="owl", model_url="u"))

        assert await repo.delete(model.id) is True
        assert await repo.delete(model.id) is False
        assert await repo.list_all() == []


class TestSavedModelRoutes:
    @pytest.mark.asyncio
    async def test_save_and_fetch(self, api_client):
        response = await api_client.post("/api/models", json=PAYLOAD)

        assert response.status_code == 201
        created = response.json()
        assert created["name"] == "Bronze owl"
        assert created["model_url"] == PAYLOAD["model_url"]

        fetched = await api_client.get(f"/api/models/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json() == created

    @pytest.mark.asyncio
    async def test_fields_are_trimmed(self, api_client):
        response = await api_client.post(
            "/api/models", json={**PAYLOAD, "name": "  Bronze owl  "}
        )

        assert response.status_code == 201
        assert response.json()["name"] == "Bronze owl"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "prompt", "model_url"])
    async def test_blank_field_rejected(self, api_client, field):
        response = await api_client.post("/api/models", json={**PAYLOAD, field: "   "})

        assert response.status_code == 422
        assert "All fields are required" in response.text

    @pytest.mark.asyncio
    async def test_missing_field_rejected(self, api_client):
        payload = {key: value for key, value in PAYLOAD.items() if key != "prompt"}

        response = await api_client.post("/api/models", json=payload)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list(self, api_client):
        for name in ("first", "second"):
            await api_client.post("/api/models", json={**PAYLOAD, "name": name})
            await asyncio.sleep(0.001)

        response = await api_client.get("/api/models")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert [m["name"] for m in body["models"]] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_delete(self, api_client):
        created = (await api_client.post("/api/models", json=PAYLOAD)).json()

        response = await api_client.delete(f"/api/models/{created['id']}")
        assert response.status_code == 204

        missing = await api_client.get(f"/api/models/{created['id']}")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Model not found"

    @pytest.mark.asyncio
    async def test_delete_unknown(self, api_client):
        response = await api_client.delete(f"/api/models/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_id(self, api_client):
        response = await api_client.get("/api/models/not-a-uuid")

        assert response.status_code == 422
