"""
用户组管理服务：用户组增删改查，以及成员 / 直接权限 / 挂载角色的整体同步

约定:
- Service 负责业务逻辑并掌控事务，业务异常抛出 HTTPException
- 每个写操作都是 “提交 -> 触发缓存失效”，失效永远在提交之后
- 超级管理员角色不能挂到用户组上，同步时静默剔除
"""
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache_invalidation import PermissionCacheInvalidator
from app.core.config import settings
from app.core.logging import logger
from app.models import Group
from app.repositories import PermissionRepository, RoleRepository
from app.schemas.group import (
    GroupCreate,
    GroupDetail,
    GroupListResponse,
    GroupRead,
    GroupSizeItem,
    GroupStats,
    GroupUpdate,
)
from app.schemas.permission import PermissionRead
from app.schemas.role import RoleRead
from app.schemas.user import UserBrief
from app.services.groups.base import GroupServiceBase, member_summary, plural, slugify


class GroupAdminService(GroupServiceBase):
    """用户组管理服务"""

    def __init__(
        self,
        db: AsyncSession,
        invalidator: PermissionCacheInvalidator | None = None,
    ):
        super().__init__(db, invalidator)
        self.permission_repo = PermissionRepository(db)
        self.role_repo = RoleRepository(db)

    async def list_groups(
        self,
        skip: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> GroupListResponse:
        rows, total = await self.group_repo.list_groups(skip=skip, limit=limit, search=search)
        return GroupListResponse(
            items=[self._to_read(group, members) for group, members in rows],
            total=total,
            skip=skip,
            limit=limit,
        )

    async def get_stats(self) -> GroupStats:
        data = await self.group_repo.statistics()
        total_groups = data["total_groups"]
        average = round(data["memberships"] / total_groups, 1) if total_groups else 0.0
        return GroupStats(
            total_groups=total_groups,
            total_members=data["distinct_members"],
            average_members_per_group=average,
            groups_with_permissions=data["with_permissions"],
            groups_with_roles=data["with_roles"],
            largest_groups=[
                GroupSizeItem(id=group.id, name=group.name, description=group.description, members=members)
                for group, members in data["largest"]
            ],
        )

    async def get_group(self, group_id: UUID) -> GroupDetail:
        group = await self.group_repo.get_with_relations(group_id)
        if not group:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Group not found",
            )
        return self._to_detail(group)

    async def create_group(self, request: GroupCreate) -> GroupDetail:
        """
        创建用户组

        - slug 缺省时由组名派生，之后改名不再重新生成
        - 带初始成员时只失效这些成员；无成员的新组不影响任何缓存
        """
        slug = request.slug or slugify(request.name)
        await self._ensure_slug_available(slug)

        member_ids = await self._ensure_users_exist(request.member_ids)
        permission_ids = await self._resolve_permission_ids(request.permission_ids)
        role_ids = await self._resolve_role_ids(request.role_ids)

        group = await self.group_repo.create(
            {"name": request.name, "slug": slug, "description": request.description}
        )
        if member_ids:
            await self.group_repo.add_members(group.id, member_ids)
        if permission_ids:
            await self.group_repo.set_permissions(group.id, permission_ids)
        if role_ids:
            await self.group_repo.set_roles(group.id, role_ids)
        await self._commit()

        if member_ids:
            await self.invalidator.on_group_membership_changed(member_ids)

        logger.info(
            "group_created",
            extra={"group_id": str(group.id), "slug": slug, "members": len(member_ids)},
        )
        return await self.get_group(group.id)

    async def update_group(self, group_id: UUID, request: GroupUpdate) -> GroupDetail:
        """
        更新用户组

        - 名称/描述变更不影响权限，不做失效
        - permission_ids / role_ids 给出时整体同步，并失效全部成员
        """
        group = await self._get_group_or_404(group_id)
        update_data = request.model_dump(exclude_unset=True, exclude={"permission_ids", "role_ids"})
        update_data = {k: v for k, v in update_data.items() if v is not None or k == "description"}

        if "slug" in update_data and update_data["slug"] != group.slug:
            await self._ensure_slug_available(update_data["slug"], exclude_id=group.id)

        permissions_changed = roles_changed = False
        if request.permission_ids is not None:
            permission_ids = await self._resolve_permission_ids(request.permission_ids)
            permissions_changed = await self.group_repo.set_permissions(group.id, permission_ids)
        if request.role_ids is not None:
            role_ids = await self._resolve_role_ids(request.role_ids)
            roles_changed = await self.group_repo.set_roles(group.id, role_ids)
        if update_data:
            await self.group_repo.update(group, update_data)
        await self._commit()

        if permissions_changed or roles_changed:
            member_ids = await self.group_repo.member_ids_of_group(group.id)
            if permissions_changed:
                await self.invalidator.on_group_permissions_changed(member_ids)
            if roles_changed:
                await self.invalidator.on_group_roles_changed(member_ids)

        logger.info(
            "group_updated",
            extra={
                "group_id": str(group.id),
                "fields": sorted(update_data),
                "permissions_changed": permissions_changed,
                "roles_changed": roles_changed,
            },
        )
        return await self.get_group(group.id)

    async def delete_group(self, group_id: UUID) -> None:
        """
        删除用户组

        成员列表必须在删除前捕获，级联删除之后关联行已不存在。
        """
        group = await self._get_group_or_404(group_id)
        member_ids = await self.group_repo.member_ids_of_group(group.id)

        if member_ids and settings.GROUPS_BLOCK_DELETE_WITH_MEMBERS:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f"Cannot delete group. It has {plural(len(member_ids), 'member')}. "
                    "Please transfer or remove all members first."
                ),
            )

        await self.group_repo.delete_group(group)
        await self._commit()
        await self.invalidator.on_group_deleted(member_ids)

        logger.info(
            "group_deleted",
            extra={"group_id": str(group_id), "members": member_summary(member_ids, len(member_ids))},
        )

    async def sync_members(self, group_id: UUID, user_ids: list[UUID]) -> GroupDetail:
        """整体同步成员；新旧成员的并集全部失效"""
        group = await self._get_group_or_404(group_id)
        target = await self._ensure_users_exist(user_ids)
        previous = await self.group_repo.member_ids_of_group(group.id)

        added, removed = await self.group_repo.set_members(group.id, target)
        await self._commit()

        if added or removed:
            await self.invalidator.on_group_membership_changed(list(dict.fromkeys([*previous, *target])))
            logger.info(
                "group_members_synced",
                extra={
                    "group_id": str(group.id),
                    "added": len(added),
                    "removed": len(removed),
                    "members": member_summary(target, len(target)),
                },
            )
        return await self.get_group(group.id)

    async def sync_permissions(self, group_id: UUID, permission_ids: list[UUID]) -> GroupDetail:
        group = await self._get_group_or_404(group_id)
        resolved = await self._resolve_permission_ids(permission_ids)

        changed = await self.group_repo.set_permissions(group.id, resolved)
        await self._commit()

        if changed:
            member_ids = await self.group_repo.member_ids_of_group(group.id)
            await self.invalidator.on_group_permissions_changed(member_ids)
            logger.info(
                "group_permissions_synced",
                extra={"group_id": str(group.id), "permissions": len(resolved), "members": len(member_ids)},
            )
        return await self.get_group(group.id)

    async def sync_roles(self, group_id: UUID, role_ids: list[UUID]) -> GroupDetail:
        group = await self._get_group_or_404(group_id)
        resolved = await self._resolve_role_ids(role_ids)

        changed = await self.group_repo.set_roles(group.id, resolved)
        await self._commit()

        if changed:
            member_ids = await self.group_repo.member_ids_of_group(group.id)
            await self.invalidator.on_group_roles_changed(member_ids)
            logger.info(
                "group_roles_synced",
                extra={"group_id": str(group.id), "roles": len(resolved), "members": len(member_ids)},
            )
        return await self.get_group(group.id)

    # ===== 内部工具 =====

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Group slug already exists",
            )

    async def _ensure_slug_available(self, slug: str, exclude_id: UUID | None = None) -> None:
        if await self.group_repo.slug_exists(slug, exclude_id=exclude_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Group slug already exists",
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

    async def _resolve_role_ids(self, role_ids: list[UUID]) -> list[UUID]:
        ids = list(dict.fromkeys(role_ids))
        roles = {r.id: r for r in await self.role_repo.get_many(ids)}
        missing = set(ids) - set(roles)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown role ids: {', '.join(sorted(str(m) for m in missing))}",
            )
        return [rid for rid in ids if roles[rid].name != settings.SUPER_ADMIN_ROLE]

    @staticmethod
    def _to_read(group: Group, member_count: int) -> GroupRead:
        return GroupRead(
            id=group.id,
            name=group.name,
            slug=group.slug,
            description=group.description,
            member_count=member_count,
            created_at=group.created_at,
            updated_at=group.updated_at,
        )

    @staticmethod
    def _to_detail(group: Group) -> GroupDetail:
        return GroupDetail(
            id=group.id,
            name=group.name,
            slug=group.slug,
            description=group.description,
            member_count=len(group.users),
            created_at=group.created_at,
            updated_at=group.updated_at,
            members=[UserBrief.model_validate(u) for u in sorted(group.users, key=lambda u: u.email)],
            permissions=[PermissionRead.model_validate(p) for p in sorted(group.permissions, key=lambda p: p.name)],
            roles=[RoleRead.model_validate(r) for r in sorted(group.roles, key=lambda r: r.name)],
        )
