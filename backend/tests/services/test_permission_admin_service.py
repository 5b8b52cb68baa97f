from uuid import uuid4

import pytest
from fastapi import HTTPException

from app.constants.permissions import PERMISSION_REGISTRY
from app.repositories import RoleRepository
from app.schemas.permission import PermissionCreate, PermissionUpdate
from app.services.permissions import PermissionAdminService


class TestSyncRegistry:
    @pytest.mark.asyncio
    async def test_first_sync_creates_catalog_roles_and_grants(self, db_session, recorder):
        result = await PermissionAdminService(db_session, recorder.invalidator).sync_registry()

        assert result.created_permissions == len(PERMISSION_REGISTRY)
        assert result.created_roles == 5
        assert result.granted > 0

        admin = await RoleRepository(db_session).get_by_name("Administrator")
        names = await RoleRepository(db_session).permission_names_of_role(admin.id)
        # 通配展开为全部 core.* 与 groups.group.*
        assert "core.users.delete" in names
        assert "groups.group.transfer-members" in names
        assert "groups.dashboard.view" in names

        assert recorder.events("commit", "invalidate_all")[0] == ("commit",)
        assert {e[1] for e in recorder.events("invalidate_all")} == {"group_perm", "role_perm"}

    @pytest.mark.asyncio
    async def test_sync_is_idempotent(self, db_session, recorder):
        service = PermissionAdminService(db_session, recorder.invalidator)
        await service.sync_registry()
        recorder.reset()

        again = await service.sync_registry()

        assert again.created_permissions == 0
        assert again.created_roles == 0
        assert again.granted == 0
        assert recorder.events("invalidate_all") == []

    @pytest.mark.asyncio
    async def test_super_admin_gets_no_grants(self, db_session):
        await PermissionAdminService(db_session).sync_registry()

        repo = RoleRepository(db_session)
        super_admin = await repo.get_by_name("Super Admin")
        assert await repo.permission_names_of_role(super_admin.id) == set()


class TestCatalog:
    @pytest.mark.asyncio
    async def test_list_grouped_by_module_and_resource(self, db_session, seed):
        for name in ["groups.group.view", "core.users.view", "core.roles.view", "legacy"]:
            await seed.permission(name)

        modules = await PermissionAdminService(db_session).list_grouped()

        assert [m.module for m in modules] == ["core", "groups", "legacy"]
        core = modules[0]
        assert [r.resource for r in core.resources] == ["roles", "users"]
        assert modules[2].resources[0].resource == "other"

    @pytest.mark.asyncio
    async def test_create_permission_does_not_invalidate(self, db_session, recorder):
        created = await PermissionAdminService(db_session, recorder.invalidator).create_permission(
            PermissionCreate(name="reports.report.view", description="看报表")
        )

        assert created.name == "reports.report.view"
        assert recorder.events("invalidate", "invalidate_all") == []

    @pytest.mark.asyncio
    async def test_duplicate_permission_conflicts(self, db_session, seed):
        await seed.permission("reports.report.view")

        with pytest.raises(HTTPException) as exc:
            await PermissionAdminService(db_session).create_permission(
                PermissionCreate(name="reports.report.view")
            )
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_rename_clears_everything(self, db_session, seed, recorder):
        permission = await seed.permission("reports.report.view")
        recorder.reset()

        renamed = await PermissionAdminService(db_session, recorder.invalidator).update_permission(
            permission.id, PermissionUpdate(name="reports.report.read")
        )

        assert renamed.name == "reports.report.read"
        assert {e[1] for e in recorder.events("invalidate_all")} == {"group_perm", "role_perm"}

    @pytest.mark.asyncio
    async def test_description_change_does_not_invalidate(self, db_session, seed, recorder):
        permission = await seed.permission("reports.report.view")
        recorder.reset()

        await PermissionAdminService(db_session, recorder.invalidator).update_permission(
            permission.id, PermissionUpdate(description="new text")
        )

        assert recorder.events("invalidate_all") == []

    @pytest.mark.asyncio
    async def test_delete_clears_everything_after_commit(self, db_session, seed, recorder):
        permission = await seed.permission("reports.report.view")
        recorder.reset()

        await PermissionAdminService(db_session, recorder.invalidator).delete_permission(permission.id)

        assert recorder.log[0] == ("commit",)
        assert {e[1] for e in recorder.events("invalidate_all")} == {"group_perm", "role_perm"}

    @pytest.mark.asyncio
    async def test_delete_missing_permission_is_404(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await PermissionAdminService(db_session).delete_permission(uuid4())
        assert exc.value.status_code == 404
