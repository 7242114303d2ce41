import pytest

from conftest import PROFILE_ID


@pytest.mark.asyncio
async def test_create_profile(api_client):
    response = await api_client.post(
        "/api/v1/profiles",
        json={"user_id": "user-new", "display_name": "Sam"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user_id"] == "user-new"
    assert data["display_name"] == "Sam"
    assert data["onboarding_step"] == 1
    assert data["photo_blur_enabled"] is False


@pytest.mark.asyncio
async def test_create_profile_is_idempotent_per_user(api_client):
    first = await api_client.post("/api/v1/profiles", json={"user_id": "user-new"})
    second = await api_client.post("/api/v1/profiles", json={"user_id": "user-new", "display_name": "Other"})

    assert second.json()["data"]["id"] == first.json()["data"]["id"]


@pytest.mark.asyncio
async def test_get_profile(api_client, profile):
    response = await api_client.get(f"/api/v1/profiles/{PROFILE_ID}")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == PROFILE_ID


@pytest.mark.asyncio
async def test_get_unknown_profile(api_client):
    response = await api_client.get("/api/v1/profiles/nonexistent")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_profile_blur(api_client, profile):
    response = await api_client.patch(
        f"/api/v1/profiles/{PROFILE_ID}",
        json={"photo_blur_enabled": True},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["photo_blur_enabled"] is True
    assert data["display_name"] == "Test"
