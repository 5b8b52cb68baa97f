from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select

from app.models import GroupPermission, Permission, RolePermission

from .base import BaseRepository


class PermissionRepository(BaseRepository[Permission]):
    model = Permission

    async def get_by_name(self, name: str) -> Permission | None:
        result = await self.session.execute(select(Permission).where(Permission.name == name))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Permission]:
        result = await self.session.execute(select(Permission).order_by(Permission.name))
        return list(result.scalars().all())

    async def all_names(self) -> set[str]:
        return set((await self.session.execute(select(Permission.name))).scalars().all())

    async def ids_by_names(self, names: Iterable[str]) -> dict[str, UUID]:
        names = set(names)
        if not names:
            return {}
        stmt = select(Permission.name, Permission.id).where(Permission.name.in_(names))
        return {name: pid for name, pid in (await self.session.execute(stmt)).all()}

    async def delete_permission(self, permission: Permission) -> None:
        """删除权限及其在角色、用户组上的全部授权"""
        await self.session.execute(delete(RolePermission).where(RolePermission.permission_id == permission.id))
        await self.session.execute(delete(GroupPermission).where(GroupPermission.permission_id == permission.id))
        await self.session.execute(delete(Permission).where(Permission.id == permission.id))
        await self.session.flush()
