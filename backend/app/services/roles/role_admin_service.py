"""
角色管理服务：角色增删改、角色权限同步、用户直接角色分配

- 角色权限变更 / 角色删除：角色可能经由任意用户组或直接分配被任何人持有，全量失效
- 用户直接角色变更：只失效该用户的直接角色权限集合
- 超级管理员角色不可删除
"""
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache_invalidation import PermissionCacheInvalidator, invalidator as default_invalidator
from app.core.config import settings
from app.core.logging import logger
from app.models import Role
from app.repositories import PermissionRepository, RoleRepository, UserRepository
from app.schemas.role import RoleCreate, RoleUpdate, RoleWithPermissions


class RoleAdminService:
    """角色管理服务"""

    def __init__(
        self,
        db: AsyncSession,
        invalidator: PermissionCacheInvalidator | None = None,
    ):
        self.db = db
        self.role_repo = RoleRepository(db)
        self.permission_repo = PermissionRepository(db)
        self.user_repo = UserRepository(db)
        self.invalidator = invalidator or default_invalidator

    async def list_roles(self) -> list[RoleWithPermissions]:
        return [self._to_read(role) for role in await self.role_repo.list_roles()]

    async def get_role(self, role_id: UUID) -> RoleWithPermissions:
        role = await self.role_repo.get_with_permissions(role_id)
        if not role:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Role not found",
            )
        return self._to_read(role)

    async def create_role(self, request: RoleCreate) -> RoleWithPermissions:
        """新角色尚无持有者，带初始权限也不需要失效"""
        if await self.role_repo.get_by_name(request.name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Role already exists",
            )
        permission_ids = await self._resolve_permission_ids(request.permission_ids)

        role = await self.role_repo.create({"name": request.name, "description": request.description})
        if permission_ids:
            await self.role_repo.grant_permissions(role.id, permission_ids)
        await self._commit()

        logger.info("role_created", extra={"role_id": str(role.id), "name": role.name})
        return await self.get_role(role.id)

    async def update_role(self, role_id: UUID, request: RoleUpdate) -> RoleWithPermissions:
        """改名/改描述不改变任何权限集合"""
        role = await self._get_role_or_404(role_id)
        update_data = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None or k == "description"}

        if "name" in update_data and update_data["name"] != role.name:
            if role.name == settings.SUPER_ADMIN_ROLE:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Super Admin role cannot be renamed",
                )
            if await self.role_repo.get_by_name(update_data["name"]):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Role already exists",
                )

        if update_data:
            await self.role_repo.update(role, update_data)
            await self._commit()
            logger.info("role_updated", extra={"role_id": str(role_id), "fields": sorted(update_data)})
        return await self.get_role(role_id)

    async def sync_permissions(self, role_id: UUID, permission_ids: list[UUID]) -> RoleWithPermissions:
        role = await self._get_role_or_404(role_id)
        resolved = await self._resolve_permission_ids(permission_ids)

        changed = await self.role_repo.set_permissions(role.id, resolved)
        await self._commit()

        if changed:
            await self.invalidator.on_role_permissions_changed()
            logger.info(
                "role_permissions_synced",
                extra={"role_id": str(role_id), "permissions": len(resolved)},
            )
        return await self.get_role(role_id)

    async def delete_role(self, role_id: UUID) -> None:
        role = await self._get_role_or_404(role_id)
        if role.name == settings.SUPER_ADMIN_ROLE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Super Admin role cannot be deleted",
            )
        name = role.name

        await self.role_repo.delete_role(role)
        await self._commit()
        await self.invalidator.on_role_permissions_changed()

        logger.info("role_deleted", extra={"role_id": str(role_id), "name": name})

    async def assign_roles(self, user_id: UUID, role_ids: list[UUID]) -> None:
        """分配用户直接角色"""
        await self._get_user_or_404(user_id)
        await self._ensure_roles_exist(role_ids)

        added = await self.user_repo.assign_roles(user_id, role_ids)
        await self._commit()
        if added:
            await self.invalidator.on_user_roles_changed(user_id)

        logger.info(
            "admin_role_change",
            extra={
                "user_id": str(user_id),
                "action": "add",
                "role_ids": [str(r) for r in added],
            },
        )

    async def remove_roles(self, user_id: UUID, role_ids: list[UUID]) -> None:
        """移除用户直接角色"""
        await self._get_user_or_404(user_id)

        removed = await self.user_repo.remove_roles(user_id, role_ids)
        await self._commit()
        if removed:
            await self.invalidator.on_user_roles_changed(user_id)

        logger.info(
            "admin_role_change",
            extra={
                "user_id": str(user_id),
                "action": "remove",
                "role_ids": [str(r) for r in removed],
            },
        )

    # ===== 内部工具 =====

    async def _get_role_or_404(self, role_id: UUID) -> Role:
        role = await self.role_repo.get(role_id)
        if not role:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Role not found",
            )
        return role

    async def _get_user_or_404(self, user_id: UUID) -> None:
        if not await self.user_repo.get_by_id(user_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )

    async def _ensure_roles_exist(self, role_ids: list[UUID]) -> None:
        found = {r.id for r in await self.role_repo.get_many(role_ids)}
        missing = set(role_ids) - found
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown role ids: {', '.join(sorted(str(m) for m in missing))}",
            )

    async def _resolve_permission_ids(self, permission_ids: list[UUID]) -> list[UUID]:
        ids = list(dict.fromkeys(permission_ids))
        found = {p.id for p in await self.permission_repo.get_many(ids)}
        missing = set(ids) - found
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown permission ids: {', '.join(sorted(str(m) for m in missing))}",
            )
        return ids

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Role already exists",
            )

    @staticmethod
    def _to_read(role: Role) -> RoleWithPermissions:
        return RoleWithPermissions(
            id=role.id,
            name=role.name,
            description=role.description,
            permissions=sorted(p.name for p in role.permissions),
        )
