"""Account settings API — own profile edits and avatar uploads."""

from __future__ import annotations

import uuid

from sqlalchemy import select

from workdesk.account.service import avatar_path
from workdesk.store import models
from tests.conftest import TestSessionFactory


async def _stored_profile(profile_id) -> models.Profile:
    async with TestSessionFactory() as session:
        return (
            await session.execute(select(models.Profile).where(models.Profile.id == profile_id))
        ).scalar_one()


async def test_update_profile_saves_and_refreshes_the_session_user(client, employee, employee_headers):
    resp = await client.patch(
        "/api/v1/account/profile",
        json={"name": "Eve Engineer", "department": "Platform"},
        headers=employee_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["name"] == "Eve Engineer"
    stored = await _stored_profile(employee["id"])
    assert (stored.name, stored.department) == ("Eve Engineer", "Platform")
    me = await client.get("/api/v1/auth/me", headers=employee_headers)
    assert me.json()["department"] == "Platform"
    toast = (await client.get("/api/v1/notifications", headers=employee_headers)).json()["data"][0]
    assert toast["title"] == "Profile updated"


async def test_blank_name_is_rejected(client, employee, employee_headers):
    resp = await client.patch("/api/v1/account/profile", json={"name": ""}, headers=employee_headers)
    assert resp.status_code == 422


async def test_empty_update_is_rejected(client, employee, employee_headers):
    resp = await client.patch("/api/v1/account/profile", json={}, headers=employee_headers)
    assert resp.status_code == 422


async def test_avatar_upload_stores_image_and_points_profile_at_it(
    client, backend, employee, employee_headers,
):
    resp = await client.post(
        "/api/v1/account/avatar",
        files={"file": ("me.JPG", b"\xff\xd8\xff", "image/jpeg")},
        headers=employee_headers,
    )

    assert resp.status_code == 200
    [path] = backend.uploads
    assert path.startswith(f"/storage/v1/object/avatars/{employee['id']}-")
    assert path.endswith(".jpg")
    avatar = resp.json()["avatar"]
    assert avatar.startswith("http://backend.test/storage/v1/object/public/avatars/")
    assert (await _stored_profile(employee["id"])).avatar_url == avatar


async def test_failed_upload_leaves_profile_untouched(client, backend, employee, employee_headers):
    backend.storage_error = "Bucket not found"

    resp = await client.post(
        "/api/v1/account/avatar",
        files={"file": ("me.png", b"\x89PNG", "image/png")},
        headers=employee_headers,
    )

    assert resp.status_code == 502
    assert resp.json()["detail"] == "Bucket not found"
    assert (await _stored_profile(employee["id"])).avatar_url is None
    toast = (await client.get("/api/v1/notifications", headers=employee_headers)).json()["data"][0]
    assert (toast["title"], toast["variant"]) == ("Upload failed", "destructive")


async def test_non_image_upload_is_rejected(client, backend, employee, employee_headers):
    resp = await client.post(
        "/api/v1/account/avatar",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=employee_headers,
    )

    assert resp.status_code == 422
    assert backend.uploads == {}


def test_avatar_path_is_unique_per_upload():
    user_id = uuid.uuid4()
    first, second = avatar_path(user_id, "face.PNG"), avatar_path(user_id, "face.PNG")

    assert first != second
    assert first.startswith(f"{user_id}-") and first.endswith(".png")
    assert avatar_path(user_id, "").endswith(".png")
