"""
用户权限集合缓存

- 每个用户一个条目，值为权限名列表
- 条目带代际号（命名空间级 + 用户级），读时校验：
  失效操作只需递增代际号，任何在失效前开始计算、失效后才写回的旧集合都不会再被读到
- 过期时间只是兜底，正确性完全依赖显式失效
- 后端不可用时 get 视为未命中、put/invalidate 为空操作，鉴权退化为实时计算
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from app.core.cache import CacheService, cache
from app.core.cache_keys import CacheKeys
from app.core.config import settings
from app.core.logging import logger

GROUP_PERMISSION_NAMESPACE = "group_perm"
ROLE_PERMISSION_NAMESPACE = "role_perm"


class PermissionSetCache:
    def __init__(
        self,
        namespace: str,
        backend: CacheService | None = None,
        ttl: int | None = None,
    ):
        self.namespace = namespace
        self.backend = backend or cache
        self.ttl = ttl if ttl is not None else settings.GROUP_PERMISSION_CACHE_TTL

    def _entry_key(self, user_id: Any) -> str:
        return CacheKeys.permission_set(self.namespace, str(user_id))

    def _user_generation_key(self, user_id: Any) -> str:
        return CacheKeys.permission_user_generation(self.namespace, str(user_id))

    async def current_version(self, user_id: Any) -> str | None:
        """
        读取当前代际令牌。重新计算前先取令牌，写回时带上，
        这样计算期间发生的失效会让这次写回永远不可见。
        """
        counters = await self.backend.get_counters(
            [CacheKeys.permission_generation(self.namespace), self._user_generation_key(user_id)]
        )
        if counters is None:
            return None
        return f"{counters[0]}:{counters[1]}"

    async def get(self, user_id: Any) -> set[str] | None:
        version = await self.current_version(user_id)
        if version is None:
            return None
        entry = await self.backend.get(self._entry_key(user_id))
        if not isinstance(entry, dict) or entry.get("v") != version:
            return None
        return set(entry.get("data") or ())

    async def put(
        self,
        user_id: Any,
        permissions: Iterable[str],
        version: str | None = None,
    ) -> bool:
        """写入/覆盖（后写者胜）。version 缺省时取当前代际。"""
        if version is None:
            version = await self.current_version(user_id)
            if version is None:
                return False
        payload = {"v": version, "data": sorted(set(permissions))}
        return await self.backend.set(
            self._entry_key(user_id),
            payload,
            ttl=self.backend.jitter_ttl(self.ttl),
        )

    async def invalidate(self, user_id: Any) -> None:
        await self.invalidate_many([user_id])

    async def invalidate_many(self, user_ids: Iterable[Any]) -> int:
        ids = sorted({str(uid) for uid in user_ids if uid})
        if not ids:
            return 0
        await asyncio.gather(*(self.backend.incr(self._user_generation_key(uid)) for uid in ids))
        await self.backend.delete_many([self._entry_key(uid) for uid in ids])
        logger.debug(
            "permission_set_invalidated",
            extra={"namespace": self.namespace, "users": len(ids)},
        )
        return len(ids)

    async def invalidate_all(self) -> None:
        # 代际号递增即令全部条目失效，前缀清理只是回收空间
        await self.backend.incr(CacheKeys.permission_generation(self.namespace))
        removed = await self.backend.clear_prefix(CacheKeys.permission_set_prefix(self.namespace))
        logger.debug(
            "permission_set_invalidated_all",
            extra={"namespace": self.namespace, "removed": removed},
        )


group_permission_cache = PermissionSetCache(GROUP_PERMISSION_NAMESPACE)
role_permission_cache = PermissionSetCache(ROLE_PERMISSION_NAMESPACE)
