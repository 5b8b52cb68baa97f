"""
权限目录服务：注册表同步、按模块分组展示、权限的新增/重命名/删除

权限重命名或删除会影响所有持有者，而库里没有 权限 -> 持有者 的反向索引，
因此这两类变更一律全量失效。
"""
from collections import defaultdict
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.permissions import DEFAULT_ROLE_GRANTS, DEFAULT_ROLES, PERMISSION_REGISTRY
from app.core.cache_invalidation import PermissionCacheInvalidator, invalidator as default_invalidator
from app.core.logging import logger
from app.models import Permission
from app.repositories import PermissionRepository, RoleRepository
from app.schemas.permission import (
    PermissionCreate,
    PermissionModule,
    PermissionRead,
    PermissionResource,
    PermissionSyncResult,
    PermissionUpdate,
)
from app.services.authz.matcher import expand_permission_patterns


class PermissionAdminService:
    """权限目录服务"""

    def __init__(
        self,
        db: AsyncSession,
        invalidator: PermissionCacheInvalidator | None = None,
    ):
        self.db = db
        self.permission_repo = PermissionRepository(db)
        self.role_repo = RoleRepository(db)
        self.invalidator = invalidator or default_invalidator

    async def sync_registry(self) -> PermissionSyncResult:
        """
        把代码中的权限注册表同步到数据库（可重复执行）

        - 只新建缺失的权限与默认角色，已存在的不动
        - 默认授权中的通配按当前目录展开，只追加不回收
        """
        created_permissions = 0
        for item in PERMISSION_REGISTRY:
            if await self.permission_repo.get_by_name(item.name) is None:
                await self.permission_repo.create({"name": item.name, "description": item.description})
                created_permissions += 1

        created_roles = 0
        roles = {}
        for name, description in DEFAULT_ROLES.items():
            role = await self.role_repo.get_by_name(name)
            if role is None:
                role = await self.role_repo.create({"name": name, "description": description})
                created_roles += 1
            roles[name] = role

        catalog = await self.permission_repo.all_names()
        granted = 0
        for role_name, patterns in DEFAULT_ROLE_GRANTS.items():
            names = expand_permission_patterns(patterns, catalog)
            ids = await self.permission_repo.ids_by_names(names)
            granted += await self.role_repo.grant_permissions(roles[role_name].id, list(ids.values()))

        await self.db.commit()
        if granted:
            await self.invalidator.on_role_permissions_changed()

        logger.info(
            "permission_registry_synced",
            extra={
                "created_permissions": created_permissions,
                "created_roles": created_roles,
                "granted": granted,
            },
        )
        return PermissionSyncResult(
            created_permissions=created_permissions,
            created_roles=created_roles,
            granted=granted,
        )

    async def list_grouped(self) -> list[PermissionModule]:
        """
        按 module -> resource 分组，二者均按字母序；
        段数不足的权限名归入 "other"。
        """
        grouped: dict[str, dict[str, list[PermissionRead]]] = defaultdict(lambda: defaultdict(list))
        for permission in await self.permission_repo.list_all():
            parts = permission.name.split(".")
            module = parts[0] if parts else "other"
            resource = parts[1] if len(parts) > 1 else "other"
            grouped[module][resource].append(PermissionRead.model_validate(permission))

        return [
            PermissionModule(
                module=module,
                resources=[
                    PermissionResource(resource=resource, permissions=grouped[module][resource])
                    for resource in sorted(grouped[module])
                ],
            )
            for module in sorted(grouped)
        ]

    async def create_permission(self, request: PermissionCreate) -> PermissionRead:
        """新建权限不属于任何持有者，不需要失效"""
        if await self.permission_repo.get_by_name(request.name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Permission already exists",
            )
        permission = await self.permission_repo.create(
            {"name": request.name, "description": request.description}
        )
        await self._commit()
        logger.info("permission_created", extra={"permission": permission.name})
        return PermissionRead.model_validate(permission)

    async def update_permission(self, permission_id: UUID, request: PermissionUpdate) -> PermissionRead:
        permission = await self._get_permission_or_404(permission_id)
        update_data = request.model_dump(exclude_unset=True)
        if update_data.get("name") is None:
            update_data.pop("name", None)

        old_name = permission.name
        renamed = "name" in update_data and update_data["name"] != old_name
        if renamed and await self.permission_repo.get_by_name(update_data["name"]):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Permission already exists",
            )

        if update_data:
            permission = await self.permission_repo.update(permission, update_data)
            await self._commit()

        if renamed:
            await self.invalidator.on_permission_changed()
            logger.info(
                "permission_renamed",
                extra={"old": old_name, "new": permission.name},
            )
        return PermissionRead.model_validate(permission)

    async def delete_permission(self, permission_id: UUID) -> None:
        """删除权限及其全部授权，提交后全量失效"""
        permission = await self._get_permission_or_404(permission_id)
        name = permission.name

        await self.permission_repo.delete_permission(permission)
        await self._commit()
        await self.invalidator.on_permission_changed()

        logger.info("permission_deleted", extra={"permission": name})

    async def _get_permission_or_404(self, permission_id: UUID) -> Permission:
        permission = await self.permission_repo.get(permission_id)
        if not permission:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Permission not found",
            )
        return permission

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Permission already exists",
            )
