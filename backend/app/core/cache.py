import pickle
import random
from collections.abc import Iterable
from typing import Any

from redis.asyncio import Redis, from_url

from app.core.config import settings
from app.core.logging import logger


class CacheService:
    """
    Redis 缓存服务

    所有读写都吞掉后端异常并记录日志：缓存不可用时调用方视为未命中，
    鉴权结果只能受性能影响，不能受缓存可用性影响。
    """
    def __init__(self):
        self._redis: Redis | None = None

    def init(self) -> None:
        """初始化 Redis 连接池"""
        if settings.REDIS_URL:
            self._redis = from_url(
                settings.REDIS_URL,
                encoding=settings.REDIS_ENCODING,
                decode_responses=False  # 手动处理序列化，支持对象缓存
            )
            logger.info(f"Redis initialized at {settings.REDIS_URL}")
        else:
            logger.warning("REDIS_URL not set, cache will be disabled")

    async def close(self) -> None:
        """关闭 Redis 连接"""
        if self._redis:
            await self._redis.close()
            logger.info("Redis connection closed")

    def _make_key(self, key: str) -> str:
        return f"{settings.CACHE_PREFIX}{key}"

    async def get(self, key: str) -> Any | None:
        """获取缓存值 (自动反序列化)"""
        if not self._redis:
            return None
        try:
            data = await self._redis.get(self._make_key(key))
            if data:
                return pickle.loads(data)
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = settings.CACHE_DEFAULT_TTL,
        nx: bool | None = None,
    ) -> bool:
        """设置缓存值 (自动序列化)"""
        if not self._redis:
            return False
        try:
            data = pickle.dumps(value)
            kwargs: dict[str, Any] = {"ex": ttl}
            if nx is not None:
                kwargs["nx"] = nx
            return bool(await self._redis.set(self._make_key(key), data, **kwargs))
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """删除缓存"""
        if not self._redis:
            return False
        try:
            await self._redis.delete(self._make_key(key))
            return True
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False

    async def delete_many(self, keys: Iterable[str]) -> int:
        """批量删除（UNLINK，非阻塞）"""
        if not self._redis:
            return 0
        full_keys = [self._make_key(k) for k in keys if k]
        if not full_keys:
            return 0
        try:
            return int(await self._redis.unlink(*full_keys) or 0)
        except Exception as e:
            logger.warning(f"cache_unlink_failed keys={full_keys} exc={e}")
            return 0

    async def incr(self, key: str, amount: int = 1) -> int | None:
        """原子自增计数；后端异常时返回 None 以便调用方区分"""
        if not self._redis:
            return None
        try:
            return int(await self._redis.incr(self._make_key(key), amount))
        except Exception as e:
            logger.error(f"Cache incr error for key {key}: {e}")
            return None

    async def get_counters(self, keys: list[str]) -> list[int] | None:
        """
        一次往返读取多个计数器（incr 写入的原始整数，不走 pickle）。
        不存在的计数器视为 0；后端异常时返回 None。
        """
        if not self._redis:
            return None
        try:
            raw = await self._redis.mget([self._make_key(k) for k in keys])
            return [int(v) if v is not None else 0 for v in raw]
        except Exception as e:
            logger.error(f"Cache counters error for keys {keys}: {e}")
            return None

    async def clear_prefix(self, prefix: str) -> int:
        """根据前缀清除缓存（SCAN 迭代，避免 KEYS 阻塞）"""
        if not self._redis:
            return 0
        pattern = f"{self._make_key(prefix)}*"
        removed = 0
        try:
            batch: list = []
            async for key in self._redis.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    removed += int(await self._redis.unlink(*batch) or 0)
                    batch = []
            if batch:
                removed += int(await self._redis.unlink(*batch) or 0)
        except Exception as e:
            logger.warning(f"cache_clear_prefix_failed prefix={prefix} exc={e}")
        return removed

    @staticmethod
    def jitter_ttl(ttl: int, jitter_ratio: float = 0.1) -> int:
        """为 TTL 添加抖动，防止雪崩"""
        if ttl <= 0:
            return ttl
        delta = int(ttl * jitter_ratio)
        return ttl + random.randint(-delta, delta)


# 单例实例
cache = CacheService()
