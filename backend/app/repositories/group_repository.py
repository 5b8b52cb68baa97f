"""
用户组仓库：用户组本身及 成员 / 权限 / 角色 三张关联表的读写。

权限解析只走 group_permission_names_for_user 的单条 UNION 查询，
不要在上层按组、按角色逐个取权限。
"""
from uuid import UUID

from sqlalchemy import delete, func, or_, select, union
from sqlalchemy.orm import selectinload

from app.models import (
    Group,
    GroupPermission,
    GroupRole,
    GroupUser,
    Permission,
    RolePermission,
)

from .base import BaseRepository


class GroupRepository(BaseRepository[Group]):
    model = Group

    # ===== 用户组 =====

    async def get_with_relations(self, group_id: UUID) -> Group | None:
        stmt = (
            select(Group)
            .where(Group.id == group_id)
            .options(
                selectinload(Group.users),
                selectinload(Group.permissions),
                selectinload(Group.roles),
            )
            # 关系写入走关联表，已在会话中的集合需要刷新
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def slug_exists(self, slug: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(func.count()).select_from(Group).where(Group.slug == slug)
        if exclude_id is not None:
            stmt = stmt.where(Group.id != exclude_id)
        return bool((await self.session.execute(stmt)).scalar())

    async def list_groups(
        self,
        skip: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> tuple[list[tuple[Group, int]], int]:
        """分页列出用户组及成员数"""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Group.name.ilike(pattern), Group.slug.ilike(pattern)))

        count_stmt = select(func.count(Group.id))
        if conditions:
            count_stmt = count_stmt.where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        member_count = (
            select(GroupUser.group_id, func.count(GroupUser.user_id).label("members"))
            .group_by(GroupUser.group_id)
            .subquery()
        )
        list_stmt = (
            select(Group, func.coalesce(member_count.c.members, 0))
            .outerjoin(member_count, member_count.c.group_id == Group.id)
            .order_by(Group.name.asc())
            .offset(skip)
            .limit(limit)
        )
        if conditions:
            list_stmt = list_stmt.where(*conditions)
        rows = (await self.session.execute(list_stmt)).all()
        return [(group, int(members)) for group, members in rows], total

    async def delete_group(self, group: Group) -> None:
        """删除用户组及全部关联行"""
        for pivot in (GroupUser, GroupPermission, GroupRole):
            await self.session.execute(delete(pivot).where(pivot.group_id == group.id))
        await self.session.execute(delete(Group).where(Group.id == group.id))
        await self.session.flush()

    async def statistics(self, largest_limit: int = 5) -> dict:
        """用户组概览：组数、去重成员数、成员关系数、挂有权限/角色的组数、最大的若干组"""
        total_groups = (await self.session.execute(select(func.count(Group.id)))).scalar() or 0
        memberships = (
            await self.session.execute(select(func.count()).select_from(GroupUser))
        ).scalar() or 0
        distinct_members = (
            await self.session.execute(select(func.count(func.distinct(GroupUser.user_id))))
        ).scalar() or 0
        with_permissions = (
            await self.session.execute(select(func.count(func.distinct(GroupPermission.group_id))))
        ).scalar() or 0
        with_roles = (
            await self.session.execute(select(func.count(func.distinct(GroupRole.group_id))))
        ).scalar() or 0

        members = func.count(GroupUser.user_id).label("members")
        largest_stmt = (
            select(Group, members)
            .outerjoin(GroupUser, GroupUser.group_id == Group.id)
            .group_by(Group.id)
            .order_by(members.desc(), Group.name.asc())
            .limit(largest_limit)
        )
        largest = [(group, int(count)) for group, count in (await self.session.execute(largest_stmt)).all()]
        return {
            "total_groups": total_groups,
            "memberships": memberships,
            "distinct_members": distinct_members,
            "with_permissions": with_permissions,
            "with_roles": with_roles,
            "largest": largest,
        }

    # ===== 关系图读取 =====

    async def group_ids_of_user(self, user_id: UUID) -> set[UUID]:
        stmt = select(GroupUser.group_id).where(GroupUser.user_id == user_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def has_groups(self, user_id: UUID) -> bool:
        stmt = select(GroupUser.group_id).where(GroupUser.user_id == user_id).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    async def member_ids_of_group(self, group_id: UUID) -> list[UUID]:
        stmt = select(GroupUser.user_id).where(GroupUser.group_id == group_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def member_count(self, group_id: UUID) -> int:
        stmt = select(func.count()).select_from(GroupUser).where(GroupUser.group_id == group_id)
        return (await self.session.execute(stmt)).scalar() or 0

    async def permission_names_of_group(self, group_id: UUID) -> set[str]:
        stmt = (
            select(Permission.name)
            .join(GroupPermission, GroupPermission.permission_id == Permission.id)
            .where(GroupPermission.group_id == group_id)
        )
        return set((await self.session.execute(stmt)).scalars().all())

    async def permission_ids_of_group(self, group_id: UUID) -> set[UUID]:
        stmt = select(GroupPermission.permission_id).where(GroupPermission.group_id == group_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def role_ids_of_group(self, group_id: UUID) -> set[UUID]:
        stmt = select(GroupRole.role_id).where(GroupRole.group_id == group_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def group_permission_names_for_user(self, user_id: UUID) -> set[str]:
        """
        用户经由用户组获得的全部权限名：
        组直接权限 UNION 组挂载角色的权限，一次往返，重复项由 UNION 去除。
        """
        memberships = select(GroupUser.group_id).where(GroupUser.user_id == user_id)
        direct = (
            select(Permission.name)
            .join(GroupPermission, GroupPermission.permission_id == Permission.id)
            .where(GroupPermission.group_id.in_(memberships))
        )
        via_roles = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(GroupRole, GroupRole.role_id == RolePermission.role_id)
            .where(GroupRole.group_id.in_(memberships))
        )
        result = await self.session.execute(union(direct, via_roles))
        return set(result.scalars().all())

    # ===== 关系写入 =====

    async def add_members(self, group_id: UUID, user_ids: list[UUID]) -> list[UUID]:
        """添加成员，已在组内的跳过，返回实际新增的用户"""
        existing = set(await self.member_ids_of_group(group_id))
        added: list[UUID] = []
        for user_id in dict.fromkeys(user_ids):
            if user_id in existing:
                continue
            self.session.add(GroupUser(group_id=group_id, user_id=user_id))
            added.append(user_id)
        await self.session.flush()
        return added

    async def remove_members(self, group_id: UUID, user_ids: list[UUID]) -> list[UUID]:
        """移除成员，只处理确实在组内的用户，返回实际移除的用户"""
        existing = set(await self.member_ids_of_group(group_id))
        removed = [uid for uid in dict.fromkeys(user_ids) if uid in existing]
        if removed:
            await self.session.execute(
                delete(GroupUser).where(
                    GroupUser.group_id == group_id,
                    GroupUser.user_id.in_(removed),
                )
            )
            await self.session.flush()
        return removed

    async def set_members(self, group_id: UUID, user_ids: list[UUID]) -> tuple[list[UUID], list[UUID]]:
        """整体同步成员，返回 (新增, 移除)"""
        existing = set(await self.member_ids_of_group(group_id))
        target = set(user_ids)
        removed = await self.remove_members(group_id, list(existing - target))
        added = await self.add_members(group_id, [uid for uid in user_ids if uid not in existing])
        return added, removed

    async def set_permissions(self, group_id: UUID, permission_ids: list[UUID]) -> bool:
        """整体同步组直接权限，返回是否有变化"""
        existing = await self.permission_ids_of_group(group_id)
        target = set(permission_ids)
        if existing == target:
            return False
        stale = existing - target
        if stale:
            await self.session.execute(
                delete(GroupPermission).where(
                    GroupPermission.group_id == group_id,
                    GroupPermission.permission_id.in_(stale),
                )
            )
        for permission_id in target - existing:
            self.session.add(GroupPermission(group_id=group_id, permission_id=permission_id))
        await self.session.flush()
        return True

    async def set_roles(self, group_id: UUID, role_ids: list[UUID]) -> bool:
        """整体同步组挂载角色，返回是否有变化"""
        existing = await self.role_ids_of_group(group_id)
        target = set(role_ids)
        if existing == target:
            return False
        stale = existing - target
        if stale:
            await self.session.execute(
                delete(GroupRole).where(
                    GroupRole.group_id == group_id,
                    GroupRole.role_id.in_(stale),
                )
            )
        for role_id in target - existing:
            self.session.add(GroupRole(group_id=group_id, role_id=role_id))
        await self.session.flush()
        return True
