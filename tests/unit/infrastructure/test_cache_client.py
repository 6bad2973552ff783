import asyncio

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.core.exceptions import CacheUnavailableError
from src.infrastructure.redis import CacheClient


@pytest.mark.asyncio
async def test_json_values_round_trip_with_ttl(cache_client, redis_client):
    await cache_client.set("auth:test", {"attempts": 2, "tags": ["a"]}, ttl=60)

    assert await cache_client.get("auth:test") == {"attempts": 2, "tags": ["a"]}
    assert 0 < await redis_client.ttl("auth:test") <= 60


@pytest.mark.asyncio
async def test_missing_key_is_none_and_counted(cache_client):
    assert await cache_client.get("auth:missing") is None

    stats = cache_client.get_stats()
    assert stats["misses"] == 1
    assert stats["hits"] == 0


@pytest.mark.asyncio
async def test_delete_and_delete_pattern(cache_client):
    await cache_client.set("auth:session:1", 1)
    await cache_client.set("auth:session:2", 2)
    await cache_client.set("auth:other", 3)

    assert await cache_client.delete("auth:other", "auth:absent") == 1
    assert await cache_client.delete_pattern("auth:session:*") == 2
    assert not await cache_client.exists("auth:session:1")
    assert await cache_client.delete() == 0


@pytest.mark.asyncio
async def test_increment_sets_ttl_on_first_write(cache_client, redis_client):
    assert await cache_client.increment("counter", ttl=30) == 1
    assert await cache_client.increment("counter", ttl=30) == 2
    assert 0 < await redis_client.ttl("counter") <= 30


@pytest.mark.asyncio
async def test_ping(cache_client):
    assert await cache_client.ping()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [RedisConnectionError("down"), RedisTimeoutError("slow")])
async def test_redis_errors_become_cache_unavailable(mocker, error):
    redis = mocker.AsyncMock(spec=Redis)
    redis.get = mocker.AsyncMock(side_effect=error)
    redis.set = mocker.AsyncMock(side_effect=error)
    client = CacheClient(redis)

    with pytest.raises(CacheUnavailableError):
        await client.get("auth:key")
    with pytest.raises(CacheUnavailableError):
        await client.set("auth:key", 1, ttl=5)

    assert client.get_stats()["errors"] == 2


@pytest.mark.asyncio
async def test_reset_stats(cache_client):
    await cache_client.set("k", 1)
    await cache_client.get("k")

    assert cache_client.get_stats()["hit_rate"] == 1.0
    cache_client.reset_stats()
    assert cache_client.get_stats()["sets"] == 0


def bump(state):
    count = (state or {}).get("count", 0) + 1
    return {"count": count}, count


@pytest.mark.asyncio
async def test_update_writes_new_value_and_returns_result(cache_client, redis_client):
    assert await cache_client.update("auth:counter", bump, ttl=60) == 1
    assert await cache_client.update("auth:counter", bump, ttl=60) == 2

    assert await cache_client.get("auth:counter") == {"count": 2}
    assert 0 < await redis_client.ttl("auth:counter") <= 60


@pytest.mark.asyncio
async def test_update_leaves_key_untouched_when_mutate_declines(cache_client):
    await cache_client.set("auth:counter", {"count": 7})

    result = await cache_client.update("auth:counter", lambda state: (None, state["count"]))

    assert result == 7
    assert await cache_client.get("auth:counter") == {"count": 7}


@pytest.mark.asyncio
async def test_concurrent_updates_are_not_lost(cache_client):
    results = await asyncio.gather(*(cache_client.update("auth:counter", bump) for _ in range(25)))

    assert sorted(results) == list(range(1, 26))
    assert await cache_client.get("auth:counter") == {"count": 25}


@pytest.mark.asyncio
async def test_set_members(cache_client, redis_client):
    await asyncio.gather(
        *(cache_client.add_members("auth:index", f"s-{i}", ttl=60) for i in range(10))
    )

    assert await cache_client.members("auth:index") == sorted(f"s-{i}" for i in range(10))
    assert await cache_client.remove_members("auth:index", "s-0", "absent") == 1
    assert "s-0" not in await cache_client.members("auth:index")
    assert 0 < await redis_client.ttl("auth:index") <= 60
    assert await cache_client.members("auth:empty") == []


@pytest.mark.asyncio
async def test_update_maps_redis_errors(mocker):
    redis = mocker.AsyncMock(spec=Redis)
    redis.transaction = mocker.AsyncMock(side_effect=RedisConnectionError("down"))
    client = CacheClient(redis)

    with pytest.raises(CacheUnavailableError):
        await client.update("auth:key", bump)
