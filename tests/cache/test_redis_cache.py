"""Tests for the Redis backend (using the in-memory mock client)."""

from __future__ import annotations

import pytest

from cachering.cache import CacheConfigError, RedisCache, RedisConfig, RedisPool

from tests.cache.contract import CacheContract, Counter
from tests.mocks import FakeClock, MockRedisConnectionError, create_mock_redis_pool


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool(clock):
    return create_mock_redis_pool(clock=clock)


@pytest.fixture
def plain_cache(pool):
    return RedisCache(pool=pool, encrypt=False)


class TestRedisContract(CacheContract):
    """Redis backend against the shared contract."""

    @pytest.fixture(params=[False, True], ids=["plain", "encrypted"])
    def cache(self, request, keyring):
        return RedisCache(RedisConfig(pool=create_mock_redis_pool(), encrypt=request.param, keyring=keyring))


class TestRedisConstruction:
    """Tests for pool handling."""

    def test_requires_pool_or_url(self):
        """One of pool or url is required."""
        with pytest.raises(CacheConfigError, match="pool or url"):
            RedisCache(encrypt=False)

    def test_pool_needs_client(self):
        """Pools must expose client()."""
        with pytest.raises(CacheConfigError, match="client"):
            RedisCache(pool=object(), encrypt=False)

    def test_url_builds_pool(self):
        """A URL creates a RedisPool without connecting."""
        cache = RedisCache(url="redis://localhost:6379/3", encrypt=False)

        assert isinstance(cache.pool, RedisPool)
        assert cache.pool.url == "redis://localhost:6379/3"

    def test_given_pool_is_used(self, pool, plain_cache):
        """The provided pool is used for every operation."""
        plain_cache.write("key", 1)
        plain_cache.read("key")

        assert plain_cache.pool is pool
        assert pool.checkouts == 2


class TestRedisCommands:
    """Tests for the Redis commands issued."""

    def test_multi_ops_use_one_transaction(self, pool, plain_cache):
        """Multi-key operations run as one pipeline per call."""
        plain_cache.write_multi({"a": 1, "b": 2, "c": 3})
        plain_cache.read_multi(["a", "b", "c"])
        plain_cache.delete_multi(["a", "b"])

        assert pool.checkouts == 3
        assert pool.redis.commands.count("EXEC") == 3

    def test_expiry(self, pool, plain_cache, clock):
        """Entries expire after expires_in."""
        plain_cache.write("key", "value", expires_in=1)
        assert plain_cache.exists("key")

        clock.advance(1.5)

        assert plain_cache.exists("key") is False
        assert plain_cache.read("key") is None

    def test_write_multi_expiry(self, pool, plain_cache):
        """write_multi applies the TTL to every key."""
        plain_cache.write_multi({"a": 1, "b": 2}, expires_in=30)

        assert pool.redis.ttl("a") == 30
        assert pool.redis.ttl("b") == 30

    def test_counter_expiry(self, pool, plain_cache, clock):
        """Counters set the TTL inside the same transaction."""
        assert plain_cache.increment("c", 1, expires_in=10) == 1
        assert pool.redis.ttl("c") == 10
        assert "PEXPIRE" in pool.redis.commands

        clock.advance(11)
        assert plain_cache.increment("c") == 1

    def test_decrement_uses_decrby(self, pool, plain_cache):
        """Decrements issue DECRBY."""
        assert plain_cache.decrement("c", 3) == -3
        assert "DECRBY" in pool.redis.commands
        assert "INCRBY" not in pool.redis.commands

    def test_counter_readable_without_encryption(self, plain_cache):
        """Counters are native integers."""
        plain_cache.increment("c", 7)
        assert plain_cache.read("c") == 7

    def test_counter_unreadable_with_encryption(self, keyring):
        """Encrypted caches cannot decode raw counters."""
        cache = RedisCache(pool=create_mock_redis_pool(), keyring=keyring)
        cache.increment("c", 7)

        assert cache.read("c") is None
        assert cache.increment("c", 0) == 7

    def test_increment_non_integer(self, plain_cache):
        """Incrementing a non-counter fails softly."""
        plain_cache.write("c", "text")
        assert plain_cache.increment("c") is None

    def test_namespace(self, pool):
        """Keys carry the namespace prefix."""
        cache = RedisCache(pool=pool, encrypt=False, namespace="app")
        cache.write("key", 1)

        assert pool.redis.get("app:key") == b"1"

    def test_fetch_multi_refreshes_ttl(self, pool, plain_cache):
        """fetch_multi writes every result with this call's TTL."""
        plain_cache.write("a", "stored")
        plain_cache.fetch_multi(["a", "b"], Counter(), expires_in=60)

        assert pool.redis.ttl("a") == 60
        assert pool.redis.ttl("b") == 60


class TestRedisFailureContainment:
    """Every operation degrades when Redis is unreachable."""

    @pytest.fixture
    def cache(self, keyring):
        return RedisCache(pool=create_mock_redis_pool(fail=True), keyring=keyring)

    def test_operations_return_failure_values(self, cache):
        """No operation raises."""
        assert cache.read("a") is None
        assert cache.read_multi(["a", "b"]) == {"a": None, "b": None}
        assert cache.write("a", 1) is False
        assert cache.write_multi({"a": 1, "b": 2}) is False
        assert cache.delete("a") is False
        assert cache.delete_multi(["a", "b"]) == 0
        assert cache.increment("a") is None
        assert cache.decrement("a") is None
        assert cache.exists("a") is False
        assert cache.clear() is False

    def test_fetch_computes_without_caching(self, cache):
        """fetch degrades to compute-without-caching."""
        compute = Counter()

        assert cache.fetch("a", compute) == "computed:a"
        assert cache.fetch("a", compute) == "computed:a"
        assert cache.fetch_multi(["a", "b"], compute) == {"a": "computed:a", "b": "computed:b"}
        assert compute.calls == ["a", "a", "a", "b"]

    def test_underlying_error(self, cache):
        """The primitive itself raises the client error."""
        with pytest.raises(MockRedisConnectionError):
            cache._get("a")
