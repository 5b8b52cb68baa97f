"""
用户组成员服务：批量添加、移除、跨组转移

每个操作单事务提交，提交后只失效受影响用户的用户组权限集合。
"""
from uuid import UUID

from fastapi import HTTPException, status

from app.core.config import settings
from app.core.logging import logger
from app.schemas.group import MemberChangeResult
from app.services.groups.base import GroupServiceBase, member_summary, plural


class GroupMemberService(GroupServiceBase):
    """用户组成员服务"""

    async def add_members(self, group_id: UUID, user_ids: list[UUID]) -> MemberChangeResult:
        """添加成员，已在组内的用户跳过"""
        group = await self._get_group_or_404(group_id)
        requested = await self._ensure_users_exist(user_ids)

        added = await self.group_repo.add_members(group.id, requested)
        if not added:
            return MemberChangeResult(
                count=0,
                skipped=len(requested),
                message="All selected users are already members of this group.",
            )

        await self.db.commit()
        await self.invalidator.on_group_membership_changed(added)

        count = len(added)
        skipped = len(requested) - count
        message = f"{plural(count, 'member')} added successfully."
        if skipped > 0:
            message += f" {skipped} {'was' if skipped == 1 else 'were'} already a member of this group."

        await self._log_change("group_members_added", group.id, added)
        return MemberChangeResult(count=count, skipped=skipped, message=message)

    async def remove_members(self, group_id: UUID, user_ids: list[UUID]) -> MemberChangeResult:
        """移除成员，只处理确实在组内的用户"""
        group = await self._get_group_or_404(group_id)
        requested = list(dict.fromkeys(user_ids))

        removed = await self.group_repo.remove_members(group.id, requested)
        if not removed:
            return MemberChangeResult(
                count=0,
                skipped=len(requested),
                message="None of the selected users are members of this group.",
            )

        await self.db.commit()
        await self.invalidator.on_group_membership_changed(removed)

        count = len(removed)
        await self._log_change("group_members_removed", group.id, removed)
        return MemberChangeResult(
            count=count,
            skipped=len(requested) - count,
            message=f"{plural(count, 'member')} removed successfully.",
        )

    async def transfer_members(
        self,
        group_id: UUID,
        target_group_id: UUID,
        user_ids: list[UUID],
    ) -> MemberChangeResult:
        """
        把用户从当前组转移到目标组

        - 只接受源组的现有成员
        - 目标组已有的用户只从源组移除
        - skipped 为目标组中已存在的人数
        - 所有涉及的用户都失效
        """
        if group_id == target_group_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Target group must be different from the source group",
            )
        source = await self._get_group_or_404(group_id)
        target = await self._get_group_or_404(target_group_id)
        requested = await self._ensure_users_exist(user_ids)

        current = set(await self.group_repo.member_ids_of_group(source.id))
        outsiders = [uid for uid in requested if uid not in current]
        if outsiders:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    "One or more selected users are not members of this group: "
                    + ", ".join(sorted(str(uid) for uid in outsiders))
                ),
            )

        await self.group_repo.remove_members(source.id, requested)
        added = await self.group_repo.add_members(target.id, requested)
        await self.db.commit()
        await self.invalidator.on_group_membership_changed(requested)

        count = len(requested)
        already_in_target = count - len(added)
        message = f"{plural(count, 'member')} transferred successfully."
        if already_in_target > 0:
            message += (
                f" {already_in_target} {'was' if already_in_target == 1 else 'were'}"
                " already in the target group."
            )

        await self._log_change("group_members_transferred_out", source.id, requested)
        if added:
            await self._log_change("group_members_transferred_in", target.id, added)
        return MemberChangeResult(count=count, skipped=already_in_target, message=message)

    async def _log_change(self, event: str, group_id: UUID, user_ids: list[UUID]) -> None:
        # 大组不加载成员列表，只记录人数
        total = await self.group_repo.member_count(group_id)
        members = (
            await self.group_repo.member_ids_of_group(group_id)
            if total <= settings.GROUPS_LARGE_GROUP_THRESHOLD
            else []
        )
        logger.info(
            event,
            extra={
                "group_id": str(group_id),
                "changed": member_summary(user_ids, len(user_ids)),
                "members": member_summary(members, total),
            },
        )
