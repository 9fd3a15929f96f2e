"""Mock implementations for optional dependency testing.

This module provides in-memory fakes for external clients, allowing tests to
run without a Redis server.
"""

from tests.mocks.redis_mocks import (
    FakeClock,
    MockPipeline,
    MockRedis,
    MockRedisConnectionError,
    MockRedisPool,
    MockResponseError,
    create_mock_redis_pool,
)

__all__ = [
    "FakeClock",
    "MockRedis",
    "MockPipeline",
    "MockRedisPool",
    "MockRedisConnectionError",
    "MockResponseError",
    "create_mock_redis_pool",
]
