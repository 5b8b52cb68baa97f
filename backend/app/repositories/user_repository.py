from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Permission, Role, RolePermission, User, UserRole


class UserRepository:
    """
    用户及直接角色相关的仓库封装，避免在业务层直接写 SQL/ORM。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def create_user(
        self,
        email: str,
        username: str | None = None,
        is_active: bool = True,
    ) -> User:
        user = User(email=email, username=username, is_active=is_active)
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def existing_ids(self, user_ids: list[UUID]) -> set[UUID]:
        """过滤出真实存在的用户 ID"""
        if not user_ids:
            return set()
        stmt = select(User.id).where(User.id.in_(set(user_ids)))
        return set((await self.session.execute(stmt)).scalars().all())

    async def has_direct_role(self, user_id: UUID, role_name: str) -> bool:
        """
        是否直接（user_role）持有指定角色。
        经由用户组获得的角色不计入。
        """
        stmt = (
            select(func.count())
            .select_from(UserRole)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id, Role.name == role_name)
        )
        return bool((await self.session.execute(stmt)).scalar())

    async def direct_role_permission_names(self, user_id: UUID) -> set[str]:
        """直接角色授予的权限名集合"""
        stmt = (
            select(Permission.name)
            .select_from(UserRole)
            .join(RolePermission, RolePermission.role_id == UserRole.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(UserRole.user_id == user_id)
            .distinct()
        )
        res = await self.session.execute(stmt)
        return set(res.scalars().all())

    async def role_ids_of_user(self, user_id: UUID) -> set[UUID]:
        stmt = select(UserRole.role_id).where(UserRole.user_id == user_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def assign_roles(self, user_id: UUID, role_ids: list[UUID]) -> list[UUID]:
        """为用户分配角色（去重，避免违反唯一约束），返回实际新增的角色"""
        existing = await self.role_ids_of_user(user_id)

        added: list[UUID] = []
        for role_id in dict.fromkeys(role_ids):
            if role_id in existing:
                continue
            self.session.add(UserRole(user_id=user_id, role_id=role_id))
            added.append(role_id)
        await self.session.flush()
        return added

    async def remove_roles(self, user_id: UUID, role_ids: list[UUID]) -> list[UUID]:
        """移除用户角色，返回实际移除的角色"""
        existing = await self.role_ids_of_user(user_id)
        removed = [rid for rid in dict.fromkeys(role_ids) if rid in existing]
        if removed:
            stmt = delete(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.role_id.in_(removed)
            )
            await self.session.execute(stmt)
            await self.session.flush()
        return removed
