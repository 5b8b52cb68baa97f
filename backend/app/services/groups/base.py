"""
用户组服务公共部分：查找、ID 校验、成员日志摘要
"""
import re
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache_invalidation import PermissionCacheInvalidator, invalidator as default_invalidator
from app.core.config import settings
from app.models import Group
from app.repositories import GroupRepository, UserRepository

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """小写，非字母数字的连续片段折叠为 "-"，为空时回退为 group"""
    slug = _SLUG_INVALID.sub("-", value.lower()).strip("-")
    return slug or "group"


def member_summary(user_ids: list[UUID], total: int) -> list[str]:
    """日志中的成员列表；大组只记录人数占位"""
    if total > settings.GROUPS_LARGE_GROUP_THRESHOLD:
        return [f"[{total} members]"]
    return sorted(str(uid) for uid in user_ids)


def plural(count: int, word: str) -> str:
    return f"{count} {word}" + ("" if count == 1 else "s")


class GroupServiceBase:
    def __init__(
        self,
        db: AsyncSession,
        invalidator: PermissionCacheInvalidator | None = None,
    ):
        self.db = db
        self.group_repo = GroupRepository(db)
        self.user_repo = UserRepository(db)
        self.invalidator = invalidator or default_invalidator

    async def _get_group_or_404(self, group_id: UUID) -> Group:
        group = await self.group_repo.get(group_id)
        if not group:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Group not found",
            )
        return group

    async def _ensure_users_exist(self, user_ids: list[UUID]) -> list[UUID]:
        """去重并校验用户存在，保持入参顺序"""
        ids = list(dict.fromkeys(user_ids))
        missing = set(ids) - await self.user_repo.existing_ids(ids)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown user ids: {', '.join(sorted(str(m) for m in missing))}",
            )
        return ids
