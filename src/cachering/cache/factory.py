"""Backend registry and factory.

Example:
    >>> cache = create_cache("memory", encrypt=False)
    >>> cache = create_cache("sqlite3:///var/cache/app.db", keyring=keyring)
    >>> cache = create_cache("redis://localhost:6379/0", keyring=keyring)
"""

from __future__ import annotations

from typing import Any

from cachering.cache.base import BaseCache, CacheConfigError
from cachering.cache.memory import MemoryCache
from cachering.cache.null import NullCache
from cachering.cache.redis import RedisCache
from cachering.cache.sqlite import URL_SCHEMES, SQLiteCache

REDIS_URL_SCHEMES = ("redis://", "rediss://", "unix://")


class CacheBackendRegistry:
    """Maps backend names to cache classes.

    ``create_cache`` resolves names through the global
    :data:`cache_backend_registry`, which ships with the ``memory``,
    ``sqlite``, ``redis`` and ``null`` backends. Any ``BaseCache``
    subclass can be added under a new name and then created with the
    same options its config class accepts:

        cache_backend_registry.register("tiered", TieredCache)
        cache = create_cache("tiered", keyring=keyring, namespace="app")
    """

    def __init__(self) -> None:
        self._backends: dict[str, type[BaseCache]] = {}

    def register(self, name: str, backend_class: type[BaseCache]) -> None:
        """Register ``backend_class`` under ``name``, replacing any previous entry."""
        self._backends[name] = backend_class

    def get(self, name: str) -> type[BaseCache]:
        """Look up a backend class; unknown names are a configuration error."""
        if name not in self._backends:
            raise CacheConfigError(
                f"Unknown cache backend: {name}. "
                f"Available: {sorted(self._backends)}"
            )
        return self._backends[name]

    def create(self, name: str, **options: Any) -> BaseCache:
        """Instantiate the named backend; options are validated by its config class."""
        return self.get(name)(**options)

    def list_backends(self) -> list[str]:
        """Registered backend names, in registration order."""
        return list(self._backends)


# memory, sqlite, redis and null
cache_backend_registry = CacheBackendRegistry()
cache_backend_registry.register("memory", MemoryCache)
cache_backend_registry.register("sqlite", SQLiteCache)
cache_backend_registry.register("redis", RedisCache)
cache_backend_registry.register("null", NullCache)


def create_cache(name_or_url: str, **kwargs: Any) -> BaseCache:
    """Create a cache from a backend name or a URL.

    Args:
        name_or_url: Registered backend name, an SQLite URL
            (``sqlite3:...``) or a Redis URL (``redis://``, ``rediss://``,
            ``unix://``).
        **kwargs: Backend options.

    Returns:
        Cache instance.
    """
    if name_or_url.startswith(URL_SCHEMES):
        return cache_backend_registry.create("sqlite", url=name_or_url, **kwargs)
    if name_or_url.startswith(REDIS_URL_SCHEMES):
        return cache_backend_registry.create("redis", url=name_or_url, **kwargs)
    return cache_backend_registry.create(name_or_url, **kwargs)
