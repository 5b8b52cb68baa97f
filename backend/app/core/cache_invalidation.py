"""
权限缓存失效管理

职责：
- 统一管理权限集合缓存的失效逻辑
- 提供事件驱动的失效入口，由用户组/角色/权限/成员关系的变更处理调用
- 避免业务代码中散落的 Key 操作

事件 -> 失效动作矩阵:

1. 用户加入/移出用户组（含转移、带初始成员的新建组）
   - 精确失效: 受影响用户的用户组权限集合
2. 用户组直接权限变更
   - 精确失效: 该组全部成员
3. 用户组角色变更
   - 精确失效: 该组全部成员
4. 用户组删除
   - 精确失效: 删除前捕获的成员列表（级联删除会清掉关联行）
5. 角色权限变更 / 角色删除
   - 全量失效: 没有 角色 -> 用户 的反向索引，只能全部清空
6. 权限重命名 / 删除
   - 全量失效: 同上，没有 权限 -> 持有者 的反向索引
7. 用户直接角色变更
   - 精确失效: 该用户的直接角色权限集合

顺序约束:
- 必须在关系写入提交之后调用，否则并发读者可能把提交前的数据重新写回缓存
- 代际号保证提交前开始的计算即使晚于失效写回，也不会再被读到

使用方式:
    from app.core.cache_invalidation import invalidator

    await invalidator.on_group_permissions_changed(member_ids)

    await invalidator.invalidate([
        ("group_membership_changed", {"user_ids": [uid]}),
        ("role_permissions_changed", {}),
    ])
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from typing import Any

from app.core.logging import logger
from app.core.permission_cache import (
    PermissionSetCache,
    group_permission_cache,
    role_permission_cache,
)


class PermissionCacheInvalidator:
    """
    事件驱动的权限缓存失效器。
    精确失效用于关系已知的高频事件，全量失效用于无法廉价枚举影响面的低频事件。
    """

    def __init__(
        self,
        group_cache: PermissionSetCache | None = None,
        role_cache: PermissionSetCache | None = None,
    ):
        self.group_cache = group_cache or group_permission_cache
        self.role_cache = role_cache or role_permission_cache

    async def invalidate(self, events: Sequence[tuple[str, dict]]) -> None:
        """批量处理失效事件"""
        tasks = []
        for name, payload in events:
            handler = getattr(self, f"on_{name}", None)
            if handler:
                tasks.append(handler(**payload))
            else:
                logger.warning(f"unknown_invalidation_event name={name}")
        if tasks:
            await asyncio.gather(*tasks)

    # === 事件处理 ===

    async def on_group_membership_changed(self, user_ids: Iterable[Any]) -> None:
        """用户加入/移出用户组"""
        count = await self.group_cache.invalidate_many(user_ids)
        self._log("group_membership_changed", count)

    async def on_group_permissions_changed(self, member_ids: Iterable[Any]) -> None:
        """用户组直接权限增删"""
        count = await self.group_cache.invalidate_many(member_ids)
        self._log("group_permissions_changed", count)

    async def on_group_roles_changed(self, member_ids: Iterable[Any]) -> None:
        """用户组挂载角色增删"""
        count = await self.group_cache.invalidate_many(member_ids)
        self._log("group_roles_changed", count)

    async def on_group_deleted(self, member_ids: Iterable[Any]) -> None:
        """用户组删除，member_ids 须在级联删除前捕获"""
        count = await self.group_cache.invalidate_many(member_ids)
        self._log("group_deleted", count)

    async def on_role_permissions_changed(self) -> None:
        """角色权限变更或角色删除"""
        await self._invalidate_all()
        self._log("role_permissions_changed", None)

    async def on_permission_changed(self) -> None:
        """权限重命名或删除"""
        await self._invalidate_all()
        self._log("permission_changed", None)

    async def on_user_roles_changed(self, user_id: Any) -> None:
        """用户直接角色变更，只影响直接角色派生的集合"""
        await self.role_cache.invalidate(user_id)
        self._log("user_roles_changed", 1)

    # === 基础操作 ===

    async def _invalidate_all(self) -> None:
        await asyncio.gather(
            self.group_cache.invalidate_all(),
            self.role_cache.invalidate_all(),
        )

    @staticmethod
    def _log(event: str, users: int | None) -> None:
        logger.info(
            "permission_cache_invalidated",
            extra={"event": event, "scope": "all" if users is None else "users", "users": users},
        )


invalidator = PermissionCacheInvalidator()
