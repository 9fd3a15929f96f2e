"""Uniform cache access over interchangeable backends.

Every backend exposes the same operations (read, write, fetch, counters,
multi-key variants) and stores values through one pipeline: coder, then
optional keyring encryption. Backend failures never reach the caller; they
collapse to misses and failed writes.

Backends:
    - MemoryCache: in-process mapping, no expiry
    - SQLiteCache: embedded database with lazy expiry
    - RedisCache: remote Redis through a connection pool
    - NullCache: always misses

Example:
    >>> from cachering.cache import create_cache
    >>>
    >>> cache = create_cache("sqlite3::memory:", keyring=keyring)
    >>> cache.fetch("answer", lambda key: 42)
    42
    >>> cache.increment("hits")
    1
"""

from cachering.cache.base import (
    BaseCache,
    CacheConfig,
    CacheConfigError,
    CacheError,
    MemoryConfig,
    MissingKeyringError,
    NullConfig,
    RedisConfig,
    SQLiteConfig,
    UnableToWriteError,
    dump_value,
    load_value,
)
from cachering.cache.coders import Coder, JsonCoder, PickleCoder
from cachering.cache.factory import CacheBackendRegistry, cache_backend_registry, create_cache
from cachering.cache.memory import MemoryCache
from cachering.cache.null import NullCache
from cachering.cache.redis import RedisCache, RedisPool
from cachering.cache.resilience import try_or
from cachering.cache.sqlite import SQLiteCache, parse_sqlite_url

__all__ = [
    # Base
    "BaseCache",
    "CacheConfig",
    "MemoryConfig",
    "SQLiteConfig",
    "RedisConfig",
    "NullConfig",
    "dump_value",
    "load_value",
    "try_or",
    # Coders
    "Coder",
    "JsonCoder",
    "PickleCoder",
    # Backends
    "MemoryCache",
    "SQLiteCache",
    "RedisCache",
    "RedisPool",
    "NullCache",
    "parse_sqlite_url",
    # Factory
    "CacheBackendRegistry",
    "cache_backend_registry",
    "create_cache",
    # Exceptions
    "CacheError",
    "CacheConfigError",
    "MissingKeyringError",
    "UnableToWriteError",
]
