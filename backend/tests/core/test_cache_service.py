import pytest

from app.core.cache import CacheService, cache


@pytest.mark.asyncio
async def test_set_get_roundtrip_with_prefix(dummy_redis):
    await cache.set("k1", {"a": 1})

    assert await cache.get("k1") == {"a": 1}
    assert cache._make_key("k1") in dummy_redis.store


@pytest.mark.asyncio
async def test_nx_does_not_overwrite():
    assert await cache.set("k1", "first", nx=True) is True
    assert await cache.set("k1", "second", nx=True) is False
    assert await cache.get("k1") == "first"


@pytest.mark.asyncio
async def test_counters_default_to_zero():
    await cache.incr("c1")
    await cache.incr("c1", 2)

    assert await cache.get_counters(["c1", "missing"]) == [3, 0]


@pytest.mark.asyncio
async def test_clear_prefix_only_removes_matching_keys():
    await cache.set("acl:group_perm:u1", 1)
    await cache.set("acl:group_perm:u2", 2)
    await cache.set("acl:role_perm:u1", 3)

    removed = await cache.clear_prefix("acl:group_perm:")

    assert removed == 2
    assert await cache.get("acl:group_perm:u1") is None
    assert await cache.get("acl:role_perm:u1") == 3


@pytest.mark.asyncio
async def test_uninitialized_cache_is_disabled():
    service = CacheService()

    assert await service.get("k") is None
    assert await service.set("k", 1) is False
    assert await service.incr("k") is None
    assert await service.get_counters(["k"]) is None
    assert await service.delete_many(["k"]) == 0


@pytest.mark.asyncio
async def test_backend_errors_are_swallowed(failing_redis):
    assert await cache.get("k") is None
    assert await cache.set("k", 1) is False
    assert await cache.delete("k") is False
    assert await cache.incr("k") is None
    assert await cache.get_counters(["k"]) is None
    assert await cache.delete_many(["k"]) == 0
    assert await cache.clear_prefix("acl:") == 0


def test_jitter_ttl_stays_within_ratio():
    for _ in range(50):
        ttl = CacheService.jitter_ttl(100, 0.1)
        assert 90 <= ttl <= 110
    assert CacheService.jitter_ttl(0) == 0
