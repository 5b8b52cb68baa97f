"""
权限目录 API 测试
"""
import pytest
from httpx import AsyncClient

from app.constants.permissions import PERMISSION_REGISTRY


def _headers(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


@pytest.mark.asyncio
async def test_sync_then_list(client: AsyncClient, seed):
    admin = await seed.super_admin()
    headers = _headers(admin)

    response = await client.post("/api/v1/admin/permissions/sync", headers=headers)
    assert response.status_code == 200
    assert response.json()["created_permissions"] == len(PERMISSION_REGISTRY)

    response = await client.get("/api/v1/admin/permissions", headers=headers)
    assert response.status_code == 200
    modules = response.json()
    assert [m["module"] for m in modules] == ["core", "groups"]
    core_resources = [r["resource"] for r in modules[0]["resources"]]
    assert core_resources == ["dashboard", "permissions", "roles", "users"]


@pytest.mark.asyncio
async def test_create_rename_delete(client: AsyncClient, seed):
    admin = await seed.super_admin()
    headers = _headers(admin)

    response = await client.post(
        "/api/v1/admin/permissions",
        headers=headers,
        json={"name": "reports.report.view"},
    )
    assert response.status_code == 201
    permission_id = response.json()["id"]

    response = await client.patch(
        f"/api/v1/admin/permissions/{permission_id}",
        headers=headers,
        json={"name": "reports.report.read"},
    )
    assert response.status_code == 200
    assert response.json()["name"] == "reports.report.read"

    response = await client.delete(f"/api/v1/admin/permissions/{permission_id}", headers=headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_invalid_permission_name(client: AsyncClient, seed):
    admin = await seed.super_admin()

    response = await client.post(
        "/api/v1/admin/permissions",
        headers=_headers(admin),
        json={"name": "no spaces allowed"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_renamed_permission_stops_matching(client: AsyncClient, seed):
    admin = await seed.super_admin()
    user = await seed.user()
    await seed.group("viewers", members=[user], permissions=["core.permissions.view"])
    permission = await seed.permission("core.permissions.view")

    response = await client.get("/api/v1/admin/permissions", headers=_headers(user))
    assert response.status_code == 200

    await client.patch(
        f"/api/v1/admin/permissions/{permission.id}",
        headers=_headers(admin),
        json={"name": "core.permissions.read"},
    )

    response = await client.get("/api/v1/admin/permissions", headers=_headers(user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manage_requires_manage_permission(client: AsyncClient, seed):
    user = await seed.user()
    await seed.group("viewers", members=[user], permissions=["core.permissions.view"])

    response = await client.post("/api/v1/admin/permissions/sync", headers=_headers(user))

    assert response.status_code == 403
    assert response.json()["detail"] == "Missing permissions: core.permissions.manage"
