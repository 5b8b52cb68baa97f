"""
权限判定入口

判定链路: 超级管理员放行 -> 权限集合缓存（未命中则解析并回填）-> 通配/精确匹配

- authorize / has_group_permission 只看用户组来源（组直接权限 + 组挂载角色）
- has_permission 额外叠加用户直接角色的权限，供 HTTP 层的 require_permissions 使用
- 缓存出错等同未命中；数据库异常向上抛出，由调用方拒绝请求
"""
from collections.abc import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.core.permission_cache import (
    PermissionSetCache,
    group_permission_cache,
    role_permission_cache,
)
from app.repositories import GroupRepository, UserRepository

from .bypass import SuperAdminBypass, super_admin_bypass
from .matcher import permission_matches
from .resolver import GroupPermissionResolver


class PermissionAuthorizer:
    def __init__(
        self,
        db: AsyncSession,
        group_cache: PermissionSetCache | None = None,
        role_cache: PermissionSetCache | None = None,
        bypass: SuperAdminBypass | None = None,
    ):
        self.db = db
        self.group_repo = GroupRepository(db)
        self.user_repo = UserRepository(db)
        self.resolver = GroupPermissionResolver(self.group_repo)
        self.group_cache = group_cache or group_permission_cache
        self.role_cache = role_cache or role_permission_cache
        self.bypass = bypass or SuperAdminBypass(self.user_repo)

    @super_admin_bypass
    async def authorize(self, user_id: UUID, permission: str) -> bool:
        """是否经由用户组拥有 permission（支持 "xxx.*" 通配）"""
        return await self.has_group_permission(user_id, permission)

    async def has_group_permission(self, user_id: UUID, permission: str) -> bool:
        # 没有任何用户组时直接拒绝，不访问缓存
        if not await self.group_repo.has_groups(user_id):
            return False
        granted = await self.group_permissions(user_id)
        return permission_matches(permission, granted)

    @super_admin_bypass
    async def has_permission(self, user_id: UUID, permission: str) -> bool:
        """用户组来源或直接角色来源任一命中即通过"""
        if await self.has_group_permission(user_id, permission):
            return True
        return permission_matches(permission, await self.role_permissions(user_id))

    @super_admin_bypass(on_bypass=set)
    async def missing_permissions(self, user_id: UUID, permissions: set[str]) -> set[str]:
        """
        返回 permissions 中未被授予的部分。
        两个来源的集合各取一次。
        """
        if not permissions:
            return set()
        granted = await self.role_permissions(user_id)
        if await self.group_repo.has_groups(user_id):
            granted = granted | await self.group_permissions(user_id)
        return {p for p in permissions if not permission_matches(p, granted)}

    async def group_permissions(self, user_id: UUID) -> set[str]:
        """用户组来源的权限集合（带缓存）"""
        return await self._load(self.group_cache, user_id, self.resolver.resolve, "group_permission")

    async def role_permissions(self, user_id: UUID) -> set[str]:
        """直接角色来源的权限集合（带缓存）"""
        return await self._load(
            self.role_cache, user_id, self.user_repo.direct_role_permission_names, "role_permission"
        )

    async def is_super_admin(self, user_id: UUID) -> bool:
        return await self.bypass.is_bypassed(user_id)

    @staticmethod
    async def _load(
        cache: PermissionSetCache,
        user_id: UUID,
        compute: Callable[[UUID], Awaitable[set[str]]],
        kind: str,
    ) -> set[str]:
        cached = await cache.get(user_id)
        if cached is not None:
            return cached

        # 代际令牌必须在计算前读取
        version = await cache.current_version(user_id)
        permissions = await compute(user_id)
        if version is not None:
            await cache.put(user_id, permissions, version=version)
        logger.debug(
            f"{kind}_cache_miss",
            extra={"user_id": str(user_id), "permissions": len(permissions)},
        )
        return permissions
