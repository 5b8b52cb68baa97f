"""
测试全局配置

- 统一使用内存 DummyRedis 替身，挂载到 CacheService，不连接真实 Redis
- 每个测试一个内存 SQLite (aiosqlite) 引擎，建表后运行真实的仓库/服务逻辑
- Seeder 提供最小化的数据构造工具，写入后立即提交
"""
from __future__ import annotations

import fnmatch
import os
from collections.abc import AsyncGenerator, Iterable
from typing import Any
from uuid import uuid4

# 测试环境禁用真实 Redis / PostgreSQL，必须在导入 app 之前设置
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.cache import cache
from app.core.cache_invalidation import PermissionCacheInvalidator
from app.core.config import settings
from app.core.database import create_tables, get_db
from app.core.permission_cache import (
    GROUP_PERMISSION_NAMESPACE,
    ROLE_PERMISSION_NAMESPACE,
    PermissionSetCache,
)
from app.models import Group, Permission, Role, User
from app.repositories import (
    GroupRepository,
    PermissionRepository,
    RoleRepository,
    UserRepository,
)

settings.REDIS_URL = ""


class DummyRedis:
    """
    轻量内存 Redis 替身，覆盖 CacheService 用到的方法：
    - get/set/delete/unlink/incr/mget/scan_iter/flushall
    """

    def __init__(self):
        self.store: dict[str, Any] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value, ex=None, nx: bool | None = None):
        if nx and key in self.store:
            return False
        self.store[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for k in keys:
            removed += 1 if self.store.pop(k, None) is not None else 0
        return removed

    async def unlink(self, *keys):
        return await self.delete(*keys)

    async def incr(self, key: str, amount: int = 1):
        new_val = int(self.store.get(key, 0)) + amount
        self.store[key] = new_val
        return new_val

    async def mget(self, keys: list[str]):
        return [self.store.get(k) for k in keys]

    async def scan_iter(self, match: str = "*", count: int | None = None):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def flushall(self):
        self.store.clear()

    async def close(self):
        return None


class FailingRedis:
    """所有调用都抛出连接错误的 Redis 替身，用于验证缓存故障降级"""

    def __getattr__(self, name: str):
        async def _fail(*args, **kwargs):
            raise ConnectionError("redis unavailable")

        return _fail

    def scan_iter(self, *args, **kwargs):
        raise ConnectionError("redis unavailable")


class RecordingPermissionCache(PermissionSetCache):
    """记录失效调用顺序的权限集合缓存"""

    def __init__(self, namespace: str, log: list[tuple]):
        super().__init__(namespace)
        self.log = log

    async def invalidate_many(self, user_ids: Iterable[Any]) -> int:
        ids = {str(uid) for uid in user_ids if uid}
        self.log.append(("invalidate", self.namespace, frozenset(ids)))
        return await super().invalidate_many(ids)

    async def invalidate_all(self) -> None:
        self.log.append(("invalidate_all", self.namespace))
        await super().invalidate_all()


class Recorder:
    """
    把 commit 与缓存失效记录到同一个事件流，便于断言 “先提交后失效”。
    """

    def __init__(self, monkeypatch: pytest.MonkeyPatch):
        self.log: list[tuple] = []
        self.group_cache = RecordingPermissionCache(GROUP_PERMISSION_NAMESPACE, self.log)
        self.role_cache = RecordingPermissionCache(ROLE_PERMISSION_NAMESPACE, self.log)
        self.invalidator = PermissionCacheInvalidator(self.group_cache, self.role_cache)

        original_commit = AsyncSession.commit

        async def _commit(session_self: AsyncSession) -> None:
            await original_commit(session_self)
            self.log.append(("commit",))

        monkeypatch.setattr(AsyncSession, "commit", _commit)

    def reset(self) -> None:
        self.log.clear()

    def events(self, *kinds: str) -> list[tuple]:
        return [e for e in self.log if not kinds or e[0] in kinds]

    def invalidated_users(self, namespace: str = GROUP_PERMISSION_NAMESPACE) -> set[str]:
        users: set[str] = set()
        for event in self.log:
            if event[0] == "invalidate" and event[1] == namespace:
                users |= event[2]
        return users


class Seeder:
    """测试数据构造"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)
        self.roles = RoleRepository(session)
        self.permissions = PermissionRepository(session)
        self.groups = GroupRepository(session)

    async def user(self, email: str | None = None, is_active: bool = True) -> User:
        user = await self.users.create_user(
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            is_active=is_active,
        )
        await self.session.commit()
        return user

    async def permission(self, name: str) -> Permission:
        permission = await self.permissions.get_by_name(name)
        if permission is None:
            permission = await self.permissions.create({"name": name, "description": name})
            await self.session.commit()
        return permission

    async def role(self, name: str, permissions: Iterable[str] = ()) -> Role:
        role = await self.roles.create({"name": name})
        ids = [(await self.permission(p)).id for p in permissions]
        if ids:
            await self.roles.grant_permissions(role.id, ids)
        await self.session.commit()
        return role

    async def group(
        self,
        name: str | None = None,
        members: Iterable[User] = (),
        permissions: Iterable[str] = (),
        roles: Iterable[Role] = (),
    ) -> Group:
        name = name or f"group-{uuid4().hex[:8]}"
        group = await self.groups.create({"name": name, "slug": name.lower()})
        member_ids = [u.id for u in members]
        if member_ids:
            await self.groups.add_members(group.id, member_ids)
        permission_ids = [(await self.permission(p)).id for p in permissions]
        if permission_ids:
            await self.groups.set_permissions(group.id, permission_ids)
        role_ids = [r.id for r in roles]
        if role_ids:
            await self.groups.set_roles(group.id, role_ids)
        await self.session.commit()
        return group

    async def assign_role(self, user: User, role: Role) -> None:
        await self.users.assign_roles(user.id, [role.id])
        await self.session.commit()

    async def super_admin(self) -> User:
        user = await self.user()
        role = await self.roles.get_by_name(settings.SUPER_ADMIN_ROLE)
        if role is None:
            role = await self.role(settings.SUPER_ADMIN_ROLE)
        await self.assign_role(user, role)
        return user


@pytest.fixture(autouse=True)
def dummy_redis(monkeypatch: pytest.MonkeyPatch) -> DummyRedis:
    """每个测试一个全新的内存 Redis，避免状态串扰"""
    redis = DummyRedis()
    monkeypatch.setattr(cache, "_redis", redis)
    return redis


@pytest.fixture
def failing_redis(monkeypatch: pytest.MonkeyPatch) -> FailingRedis:
    redis = FailingRedis()
    monkeypatch.setattr(cache, "_redis", redis)
    return redis


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db_session: AsyncSession) -> Seeder:
    return Seeder(db_session)


@pytest.fixture
def recorder(monkeypatch: pytest.MonkeyPatch) -> Recorder:
    return Recorder(monkeypatch)


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)
