"""Redis backend.

A thin wrapper over a pooled client. Single-key operations map onto
SET/GET/DEL/EXISTS/INCRBY/DECRBY/FLUSHDB. Multi-key operations run as one
``MULTI``/``EXEC`` pipeline per call and their results are matched to the
requested keys by position.

Any object whose ``client()`` context manager yields a live ``redis.Redis``
works as the pool; :class:`RedisPool` is the stock one.

Example:
    >>> pool = RedisPool("redis://localhost:6379/0")
    >>> cache = RedisCache(pool=pool, keyring=keyring)
    >>> cache.fetch("report", lambda key: build_report(), expires_in=300)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator

from cachering.cache.base import BaseCache, RedisConfig

logger = logging.getLogger(__name__)


def _import_redis():
    try:
        import redis
    except ImportError:
        raise ImportError(
            "Redis support requires the 'redis' package. "
            "Install with: pip install redis"
        )
    return redis


class RedisPool:
    """Connection pool handing out scoped clients.

    Args:
        url: Redis URL (``redis://``, ``rediss://`` or ``unix://``).
        **connection_kwargs: Passed to ``redis.ConnectionPool.from_url``
            (e.g. ``socket_timeout``, ``max_connections``).
    """

    def __init__(self, url: str = "redis://localhost:6379/0", **connection_kwargs: Any) -> None:
        redis = _import_redis()
        self.url = url
        self._redis_module = redis
        self._pool = redis.ConnectionPool.from_url(url, **connection_kwargs)

    @contextmanager
    def client(self) -> Generator[Any, None, None]:
        """Yield a client bound to the pool."""
        yield self._redis_module.Redis(connection_pool=self._pool)

    def close(self) -> None:
        """Disconnect every pooled connection."""
        self._pool.disconnect()

    def __repr__(self) -> str:
        return f"<RedisPool url={self.url!r}>"


def _milliseconds(expires_in: float | None) -> int | None:
    if expires_in is None:
        return None
    return max(1, int(float(expires_in) * 1000))


class RedisCache(BaseCache):
    """Cache stored in Redis.

    Counters are native Redis integers; they bypass the coder and
    encryption. Expiry uses Redis TTLs (millisecond precision).
    """

    name = "redis"
    config_class = RedisConfig

    def __init__(self, config: RedisConfig | None = None, **options: Any) -> None:
        super().__init__(config, **options)
        pool = self._config.pool
        if pool is None:
            pool = RedisPool(self._config.url)
            logger.debug(f"Created Redis pool for {self._config.url}")
        self._pool = pool

    @property
    def pool(self) -> Any:
        """Get the connection pool."""
        return self._pool

    def _get(self, key: str) -> bytes | None:
        with self._pool.client() as client:
            return client.get(key)

    def _get_multi(self, keys: list[str]) -> list[bytes | None]:
        with self._pool.client() as client:
            with client.pipeline(transaction=True) as pipe:
                for key in keys:
                    pipe.get(key)
                return list(pipe.execute())

    def _set(self, key: str, payload: bytes, expires_in: float | None) -> bool:
        with self._pool.client() as client:
            return bool(client.set(key, payload, px=_milliseconds(expires_in)))

    def _set_multi(self, items: list[tuple[str, bytes]], expires_in: float | None) -> bool:
        px = _milliseconds(expires_in)
        with self._pool.client() as client:
            with client.pipeline(transaction=True) as pipe:
                for key, payload in items:
                    pipe.set(key, payload, px=px)
                return all(pipe.execute())

    def _remove(self, key: str) -> bool:
        with self._pool.client() as client:
            return client.delete(key) > 0

    def _remove_multi(self, keys: list[str]) -> int:
        with self._pool.client() as client:
            with client.pipeline(transaction=True) as pipe:
                for key in keys:
                    pipe.delete(key)
                return sum(pipe.execute())

    def _counter(self, key: str, amount: int, expires_in: float | None, decrement: bool) -> int:
        with self._pool.client() as client:
            with client.pipeline(transaction=True) as pipe:
                if decrement:
                    pipe.decrby(key, amount)
                else:
                    pipe.incrby(key, amount)
                if expires_in is not None:
                    pipe.pexpire(key, _milliseconds(expires_in))
                results = pipe.execute()
        return int(results[0])

    def _incr(self, key: str, amount: int, expires_in: float | None) -> int:
        return self._counter(key, amount, expires_in, decrement=False)

    def _decr(self, key: str, amount: int, expires_in: float | None) -> int:
        return self._counter(key, amount, expires_in, decrement=True)

    def _has(self, key: str) -> bool:
        with self._pool.client() as client:
            return client.exists(key) > 0

    def _flush(self) -> bool:
        with self._pool.client() as client:
            return bool(client.flushdb())
