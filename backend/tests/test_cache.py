"""Tests for the Redis helpers and the per-session authorization context cache."""

import json
import time

import pytest

from tests.fakes import FakeRedis, make_context
from wms.rbac.cache import ContextCache, context_key, generation_key
from wms.rbac.context import AuthorizationContext
from wms.rbac.matrix import Role, WarehouseCode
from wms.utils import cache as cache_utils


@pytest.fixture
def redis_client(monkeypatch) -> FakeRedis:
    """Point the real cache helpers at an in-memory Redis."""
    client = FakeRedis()

    async def _get_redis():
        return client

    monkeypatch.setattr(cache_utils, "get_redis", _get_redis)
    return client


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheUtility:
    async def test_json_round_trip(self, redis_client):
        await cache_utils.set_json("k", {"a": [1, 2]}, ttl=30)

        assert redis_client.ttls["k"] == 30
        assert await cache_utils.get_json("k") == {"a": [1, 2]}

    async def test_missing_key_is_a_miss(self, redis_client):
        assert await cache_utils.get_json("nope") is None

    async def test_undecodable_value_is_a_miss(self, redis_client):
        redis_client.data["k"] = "{not json"
        assert await cache_utils.get_json("k") is None

    async def test_non_positive_ttl_stores_nothing(self, redis_client):
        await cache_utils.set_json("k", {"a": 1}, ttl=0)
        assert redis_client.data == {}

    async def test_invalidate_by_pattern(self, redis_client):
        redis_client.data.update({"authz:ctx:u-1:0:a": "{}", "authz:ctx:u-1:0:b": "{}", "authz:ctx:u-10:0:a": "{}"})

        assert await cache_utils.invalidate_cache("authz:ctx:u-1:*") == 2
        assert list(redis_client.data) == ["authz:ctx:u-10:0:a"]

    async def test_counter(self, redis_client):
        assert await cache_utils.get_counter("c") == 0
        assert await cache_utils.bump_counter("c") == 1
        assert await cache_utils.get_counter("c") == 1

    async def test_outage_degrades_quietly(self, redis_client):
        redis_client.down = True

        assert await cache_utils.get_json("k") is None
        await cache_utils.set_json("k", {"a": 1}, ttl=30)
        assert await cache_utils.invalidate_cache("k*") == 0
        assert await cache_utils.get_counter("c") is None
        assert await cache_utils.bump_counter("c") is None


@pytest.mark.cache
@pytest.mark.asyncio
class TestContextCache:
    async def test_round_trip(self, redis_client):
        cache = ContextCache(ttl=300)
        ctx = make_context(Role.STAFF, warehouses=[WarehouseCode.LJBB])
        generation = await cache.generation("u-1")
        await cache.set(ctx, "sess-1", generation)

        cached = await cache.get("u-1", "sess-1", generation)
        assert cached.roles == ctx.roles
        assert cached.warehouses == ctx.warehouses
        assert dict(cached.permissions) == dict(ctx.permissions)

    async def test_scoped_to_session(self, redis_client):
        cache = ContextCache(ttl=300)
        await cache.set(make_context(Role.STAFF), "sess-1", 0)
        assert await cache.get("u-1", "sess-2", 0) is None

    async def test_ttl_bounded_by_session_expiry(self, redis_client):
        cache = ContextCache(ttl=300)
        await cache.set(make_context(Role.STAFF), "sess-1", 0, time.time() + 60)
        assert 55 <= redis_client.ttls[context_key("u-1", 0, "sess-1")] <= 60

    async def test_expired_session_not_cached(self, redis_client):
        cache = ContextCache(ttl=300)
        await cache.set(make_context(Role.STAFF), "sess-1", 0, time.time() - 5)
        assert redis_client.data == {}

    async def test_denial_safe_context_never_cached(self, redis_client):
        await ContextCache(ttl=300).set(AuthorizationContext.denial_safe("u-1"), "sess-1", 0)
        assert redis_client.data == {}

    async def test_disabled_cache(self, redis_client):
        cache = ContextCache(ttl=0)
        assert not cache.enabled
        assert await cache.generation("u-1") is None
        await cache.set(make_context(Role.STAFF), "sess-1", 0)
        assert redis_client.data == {}

    async def test_invalidate_user_drops_every_session(self, redis_client):
        cache = ContextCache(ttl=300)
        await cache.set(make_context(Role.STAFF), "sess-1", 0)
        await cache.set(make_context(Role.STAFF), "sess-2", 0)

        assert await cache.invalidate_user("u-1") == 2
        assert list(redis_client.data) == [generation_key("u-1")]
        assert await cache.generation("u-1") == 1

    async def test_invalidate_session_keeps_other_sessions(self, redis_client):
        cache = ContextCache(ttl=300)
        await cache.set(make_context(Role.STAFF), "sess-1", 0)
        await cache.set(make_context(Role.STAFF), "sess-2", 0)

        await cache.invalidate_session("u-1", "sess-1")

        assert await cache.get("u-1", "sess-1", 0) is None
        assert await cache.get("u-1", "sess-2", 0) is not None

    async def test_write_racing_an_invalidation_is_never_read(self, redis_client):
        cache = ContextCache(ttl=300)
        generation = await cache.generation("u-1")
        # roles change while this request is still building its context
        await cache.invalidate_user("u-1")
        await cache.set(make_context(Role.ADMIN), "sess-1", generation)

        assert await cache.get("u-1", "sess-1", await cache.generation("u-1")) is None

    @pytest.mark.parametrize(
        "raw",
        ["{not json", json.dumps({"roles": ["staff"]}), json.dumps([1, 2]), json.dumps("text")],
    )
    async def test_bad_entry_is_a_miss(self, redis_client, raw):
        redis_client.data[context_key("u-1", 0, "sess-1")] = raw
        assert await ContextCache(ttl=300).get("u-1", "sess-1", 0) is None

    async def test_redis_outage_means_no_cache(self, redis_client):
        redis_client.down = True
        cache = ContextCache(ttl=300)

        generation = await cache.generation("u-1")
        assert generation is None
        assert await cache.get("u-1", "sess-1", generation) is None
        await cache.set(make_context(Role.STAFF), "sess-1", generation)
        assert await cache.invalidate_user("u-1") == 0
