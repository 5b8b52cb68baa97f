from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload

from app.models import GroupRole, Permission, Role, RolePermission, UserRole

from .base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    model = Role

    async def get_by_name(self, name: str) -> Role | None:
        result = await self.session.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_with_permissions(self, role_id: UUID) -> Role | None:
        stmt = (
            select(Role)
            .where(Role.id == role_id)
            .options(selectinload(Role.permissions))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_roles(self) -> list[Role]:
        """获取所有角色（含权限）"""
        stmt = (
            select(Role)
            .options(selectinload(Role.permissions))
            .order_by(Role.name)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def permission_names_of_role(self, role_id: UUID) -> set[str]:
        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
        )
        return set((await self.session.execute(stmt)).scalars().all())

    async def permission_ids_of_role(self, role_id: UUID) -> set[UUID]:
        stmt = select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def grant_permissions(self, role_id: UUID, permission_ids: list[UUID]) -> int:
        """追加授权（已有的跳过），返回新增数量"""
        existing = await self.permission_ids_of_role(role_id)
        added = 0
        for permission_id in dict.fromkeys(permission_ids):
            if permission_id in existing:
                continue
            self.session.add(RolePermission(role_id=role_id, permission_id=permission_id))
            added += 1
        await self.session.flush()
        return added

    async def set_permissions(self, role_id: UUID, permission_ids: list[UUID]) -> bool:
        """整体同步角色权限，返回是否有变化"""
        existing = await self.permission_ids_of_role(role_id)
        target = set(permission_ids)
        if existing == target:
            return False
        stale = existing - target
        if stale:
            await self.session.execute(
                delete(RolePermission).where(
                    RolePermission.role_id == role_id,
                    RolePermission.permission_id.in_(stale),
                )
            )
        await self.grant_permissions(role_id, list(target - existing))
        return True

    async def delete_role(self, role: Role) -> None:
        """删除角色及其在用户、用户组、权限上的关联"""
        await self.session.execute(delete(UserRole).where(UserRole.role_id == role.id))
        await self.session.execute(delete(GroupRole).where(GroupRole.role_id == role.id))
        await self.session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await self.session.execute(delete(Role).where(Role.id == role.id))
        await self.session.flush()
