"""cachering - cache access with key-rotating encryption.

Quick Start:
    >>> from cachering import Keyring, create_cache
    >>>
    >>> keyring = Keyring.from_env()
    >>> cache = create_cache("redis://localhost:6379/0", keyring=keyring)
    >>> cache.write("session:1", {"user_id": 7}, expires_in=3600)
    True
    >>> cache.read("session:1")
    {'user_id': 7}
"""

from cachering.cache import (
    BaseCache,
    CacheConfigError,
    CacheError,
    JsonCoder,
    MemoryCache,
    NullCache,
    PickleCoder,
    RedisCache,
    RedisPool,
    SQLiteCache,
    create_cache,
)
from cachering.keyring import (
    InvalidAuthentication,
    Keyring,
    KeyringError,
    generate_secret,
    get_encryptor,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Keyring",
    "KeyringError",
    "InvalidAuthentication",
    "generate_secret",
    "get_encryptor",
    "BaseCache",
    "CacheError",
    "CacheConfigError",
    "JsonCoder",
    "PickleCoder",
    "MemoryCache",
    "SQLiteCache",
    "RedisCache",
    "RedisPool",
    "NullCache",
    "create_cache",
]
