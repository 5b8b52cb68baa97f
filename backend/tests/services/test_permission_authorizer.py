"""
权限判定测试

测试场景:
- 用户组来源的判定与通配
- 缓存命中/回填、缓存故障降级
- 超级管理员放行（仅直接角色）
- 各类关系变更后的即时生效
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.core.permission_cache import group_permission_cache
from app.services.authz import PermissionAuthorizer
from app.services.groups import GroupAdminService, GroupMemberService
from app.services.permissions import PermissionAdminService
from app.services.roles import RoleAdminService


class TestAuthorize:
    """用户组来源判定"""

    @pytest.mark.asyncio
    async def test_direct_group_permission(self, db_session, seed):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(user.id, "posts.post.view") is True
        assert await authorizer.authorize(user.id, "posts.post.edit") is False

    @pytest.mark.asyncio
    async def test_permission_via_group_role(self, db_session, seed):
        user = await seed.user()
        editor = await seed.role("Editor", ["posts.post.edit"])
        await seed.group("Editors", members=[user], roles=[editor])

        assert await PermissionAuthorizer(db_session).authorize(user.id, "posts.post.edit") is True

    @pytest.mark.asyncio
    async def test_wildcard_request(self, db_session, seed):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["categories.view"])
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(user.id, "categories.*") is True
        assert await authorizer.authorize(user.id, "categoriesx.*") is False
        assert await authorizer.authorize(user.id, "posts.*") is False

    @pytest.mark.asyncio
    async def test_wildcard_does_not_match_bare_prefix(self, db_session, seed):
        user = await seed.user()
        await seed.group("Odd", members=[user], permissions=["categories", "categoriesx.view"])

        assert await PermissionAuthorizer(db_session).authorize(user.id, "categories.*") is False

    @pytest.mark.asyncio
    async def test_direct_roles_do_not_count_for_authorize(self, db_session, seed):
        user = await seed.user()
        role = await seed.role("Direct", ["posts.post.view"])
        await seed.assign_role(user, role)
        await seed.group("Empty", members=[user])
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(user.id, "posts.post.view") is False
        assert await authorizer.has_permission(user.id, "posts.post.view") is True

    @pytest.mark.asyncio
    async def test_no_groups_denies_without_touching_cache(self, db_session, seed, dummy_redis):
        user = await seed.user()
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(user.id, "posts.post.view") is False
        assert not any("group_perm" in key for key in dummy_redis.store)

    @pytest.mark.asyncio
    async def test_repeated_checks_are_identical(self, db_session, seed, monkeypatch):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)

        calls = 0
        original = authorizer.resolver.resolve

        async def counting_resolve(user_id):
            nonlocal calls
            calls += 1
            return await original(user_id)

        monkeypatch.setattr(authorizer.resolver, "resolve", counting_resolve)

        results = [await authorizer.authorize(user.id, "posts.post.view") for _ in range(3)]

        assert results == [True, True, True]
        assert calls == 1

    @pytest.mark.asyncio
    async def test_miss_fills_cache(self, db_session, seed):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])

        await PermissionAuthorizer(db_session).authorize(user.id, "posts.post.view")

        assert await group_permission_cache.get(user.id) == {"posts.post.view"}


class TestSuperAdminBypass:
    """超级管理员放行"""

    @pytest.mark.asyncio
    async def test_direct_super_admin_passes_everything(self, db_session, seed, dummy_redis):
        admin = await seed.super_admin()
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(admin.id, "anything.at.all") is True
        assert await authorizer.has_permission(admin.id, "x.*") is True
        assert await authorizer.missing_permissions(admin.id, {"a.b.c", "d.e.f"}) == set()

    @pytest.mark.asyncio
    async def test_bypass_skips_resolver_and_cache(self, db_session, seed, monkeypatch, dummy_redis):
        admin = await seed.super_admin()
        await seed.group("Readers", members=[admin], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)

        async def forbidden(*args, **kwargs):
            raise AssertionError("resolver must not run for super admin")

        monkeypatch.setattr(authorizer.resolver, "resolve", forbidden)

        assert await authorizer.authorize(admin.id, "posts.post.delete") is True
        assert not any("group_perm" in key for key in dummy_redis.store)

    @pytest.mark.asyncio
    async def test_missing_permissions_checks_bypass_once(self, db_session, seed, monkeypatch, dummy_redis):
        admin = await seed.super_admin()
        authorizer = PermissionAuthorizer(db_session)
        calls = []
        original = authorizer.bypass.is_bypassed

        async def counting(user_id):
            calls.append(user_id)
            return await original(user_id)

        async def forbidden(*args, **kwargs):
            raise AssertionError("permission sets must not load for super admin")

        monkeypatch.setattr(authorizer.bypass, "is_bypassed", counting)
        monkeypatch.setattr(authorizer, "role_permissions", forbidden)
        monkeypatch.setattr(authorizer, "group_permissions", forbidden)

        assert await authorizer.missing_permissions(admin.id, {"core.users.delete"}) == set()
        assert calls == [admin.id]
        assert not any("_perm" in key for key in dummy_redis.store)

    @pytest.mark.asyncio
    async def test_super_admin_role_via_group_does_not_bypass(self, db_session, seed):
        user = await seed.user()
        super_role = await seed.role("Super Admin")
        # 直接写关联表，绕过服务层的过滤
        await seed.group("Sneaky", members=[user], roles=[super_role])
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.is_super_admin(user.id) is False
        assert await authorizer.authorize(user.id, "core.users.view") is False


class TestInvalidationEffects:
    """关系变更后的判定结果"""

    @pytest.mark.asyncio
    async def test_detaching_permission_revokes_immediately(self, db_session, seed):
        user = await seed.user()
        group = await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)
        assert await authorizer.authorize(user.id, "posts.post.view") is True

        await GroupAdminService(db_session).sync_permissions(group.id, [])

        assert await authorizer.authorize(user.id, "posts.post.view") is False

    @pytest.mark.asyncio
    async def test_role_attach_reaches_every_member(self, db_session, seed):
        members = [await seed.user() for _ in range(50)]
        outsider = await seed.user()
        group = await seed.group("Big", members=members, permissions=["posts.post.view"])
        role = await seed.role("Publisher", ["posts.post.publish"])
        authorizer = PermissionAuthorizer(db_session)
        for member in members:
            assert await authorizer.authorize(member.id, "posts.post.publish") is False

        await GroupAdminService(db_session).sync_roles(group.id, [role.id])

        for member in members:
            assert await authorizer.authorize(member.id, "posts.post.publish") is True
        assert await authorizer.authorize(outsider.id, "posts.post.publish") is False

    @pytest.mark.asyncio
    async def test_role_permission_change_reaches_group_members(self, db_session, seed):
        user = await seed.user()
        role = await seed.role("Editor", ["posts.post.view"])
        await seed.group("Editors", members=[user], roles=[role])
        extra = await seed.permission("posts.post.edit")
        view = await seed.permission("posts.post.view")
        authorizer = PermissionAuthorizer(db_session)
        assert await authorizer.authorize(user.id, "posts.post.edit") is False

        await RoleAdminService(db_session).sync_permissions(role.id, [view.id, extra.id])

        assert await authorizer.authorize(user.id, "posts.post.edit") is True

    @pytest.mark.asyncio
    async def test_permission_deletion_revokes(self, db_session, seed):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        permission = await seed.permission("posts.post.view")
        authorizer = PermissionAuthorizer(db_session)
        assert await authorizer.authorize(user.id, "posts.post.view") is True

        await PermissionAdminService(db_session).delete_permission(permission.id)

        assert await authorizer.authorize(user.id, "posts.post.view") is False

    @pytest.mark.asyncio
    async def test_group_deletion_revokes_for_former_members(self, db_session, seed):
        users = [await seed.user() for _ in range(3)]
        group = await seed.group("Temp", members=users, permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)
        for user in users:
            assert await authorizer.authorize(user.id, "posts.post.view") is True

        await GroupAdminService(db_session).delete_group(group.id)

        for user in users:
            assert await authorizer.authorize(user.id, "posts.post.view") is False

    @pytest.mark.asyncio
    async def test_member_removal_revokes(self, db_session, seed):
        user = await seed.user()
        group = await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)
        assert await authorizer.authorize(user.id, "posts.post.view") is True

        await GroupMemberService(db_session).remove_members(group.id, [user.id])

        assert await authorizer.authorize(user.id, "posts.post.view") is False

    @pytest.mark.asyncio
    async def test_direct_role_assignment_takes_effect(self, db_session, seed):
        user = await seed.user()
        role = await seed.role("Viewer", ["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)
        assert await authorizer.has_permission(user.id, "posts.post.view") is False

        await RoleAdminService(db_session).assign_roles(user.id, [role.id])
        assert await authorizer.has_permission(user.id, "posts.post.view") is True

        await RoleAdminService(db_session).remove_roles(user.id, [role.id])
        assert await authorizer.has_permission(user.id, "posts.post.view") is False


class TestFailureModes:
    """缓存与存储故障"""

    @pytest.mark.asyncio
    async def test_cache_failure_falls_back_to_live_resolution(self, db_session, seed, failing_redis):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)

        assert await authorizer.authorize(user.id, "posts.post.view") is True
        assert await authorizer.authorize(user.id, "posts.post.edit") is False

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, db_session, seed, monkeypatch):
        user = await seed.user()
        await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        authorizer = PermissionAuthorizer(db_session)

        async def broken(user_id):
            raise OperationalError("SELECT", {}, Exception("database is down"))

        monkeypatch.setattr(authorizer.resolver, "resolve", broken)

        with pytest.raises(OperationalError):
            await authorizer.authorize(user.id, "posts.post.view")

    @pytest.mark.asyncio
    async def test_stale_entry_written_during_invalidation_is_ignored(self, db_session, seed):
        """旧值在失效之后才写回也不会被读到"""
        user = await seed.user()
        group = await seed.group("Readers", members=[user], permissions=["posts.post.view"])
        version = await group_permission_cache.current_version(user.id)

        await GroupAdminService(db_session).sync_permissions(group.id, [])
        await group_permission_cache.put(user.id, {"posts.post.view"}, version=version)

        assert await PermissionAuthorizer(db_session).authorize(user.id, "posts.post.view") is False


@pytest.mark.asyncio
async def test_missing_permissions_combines_sources(db_session, seed):
    user = await seed.user()
    role = await seed.role("Direct", ["core.users.view"])
    await seed.assign_role(user, role)
    await seed.group("Readers", members=[user], permissions=["groups.group.view"])

    missing = await PermissionAuthorizer(db_session).missing_permissions(
        user.id, {"core.users.view", "groups.group.view", "groups.group.edit"}
    )

    assert missing == {"groups.group.edit"}
