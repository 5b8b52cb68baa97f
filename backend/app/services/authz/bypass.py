"""
超级管理员放行

只认直接分配（user_role）的超级管理员角色；经由用户组获得的同名角色不放行。
放行判断集中在 super_admin_bypass 装饰器里，检查方法内部不再重复判断。
"""
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar
from uuid import UUID

from app.core.config import settings
from app.core.logging import logger
from app.repositories import UserRepository

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class SuperAdminBypass:
    def __init__(self, user_repo: UserRepository, role_name: str | None = None):
        self.user_repo = user_repo
        self.role_name = role_name or settings.SUPER_ADMIN_ROLE

    async def is_bypassed(self, user_id: UUID) -> bool:
        return await self.user_repo.has_direct_role(user_id, self.role_name)


def super_admin_bypass(func: F | None = None, *, on_bypass: Callable[[], Any] = lambda: True) -> Any:
    """
    用于检查方法 `async def check(self, user_id, ...)`。
    先判断放行（每次检查只判断一次），放行时不访问缓存与解析器，直接返回 on_bypass()。
    宿主对象须提供 `bypass` 属性。

        @super_admin_bypass
        async def has_permission(self, user_id, permission) -> bool: ...

        @super_admin_bypass(on_bypass=set)
        async def missing_permissions(self, user_id, permissions) -> set[str]: ...
    """

    def decorate(check: F) -> F:
        @wraps(check)
        async def wrapper(self: Any, user_id: UUID, *args: Any, **kwargs: Any) -> Any:
            if await self.bypass.is_bypassed(user_id):
                logger.debug(
                    "super_admin_bypass",
                    extra={"user_id": str(user_id), "check": check.__name__},
                )
                return on_bypass()
            return await check(self, user_id, *args, **kwargs)

        return wrapper  # type: ignore[return-value]

    if func is not None:
        return decorate(func)
    return decorate
