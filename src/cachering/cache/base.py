"""Base classes and configuration for cache backends.

This module defines the operation contract shared by every backend, the
per-backend configuration dataclasses, and the value pipeline::

    write: value -> coder.dump -> [keyring.encrypt -> JSON [ciphertext, id]] -> backend
    read:  backend -> [JSON [ciphertext, id] -> keyring.decrypt] -> coder.load -> value

Backends implement a small set of storage primitives on normalized keys and
raw payloads (``_get``, ``_set``, ``_remove`` ...). The public operations in
:class:`BaseCache` wrap those primitives with :func:`try_or`, so backend and
integrity failures collapse to the documented benign values:

    ==============  ==================
    Operation       Failure value
    ==============  ==================
    read            None
    read_multi      {key: None, ...}
    write(_multi)   False
    delete          False
    delete_multi    0
    increment       None
    decrement       None
    exists          False
    clear           False
    fetch(_multi)   computed, uncached
    ==============  ==================

Configuration errors raise at construction. Errors raised by ``compute``
callables propagate to the caller.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Hashable, Iterable, Mapping, MutableMapping

from cachering.cache.coders import Coder, JsonCoder
from cachering.cache.resilience import try_or
from cachering.keyring.base import EmptyKeyring
from cachering.keyring.base import MissingKeyringError as KeyringMissingError
from cachering.keyring.keyring import Keyring

logger = logging.getLogger(__name__)

Compute = Callable[[Any], Any]


# =============================================================================
# Exceptions
# =============================================================================


class CacheError(Exception):
    """Base exception for cache errors."""

    pass


class CacheConfigError(CacheError):
    """Invalid cache configuration."""

    pass


class MissingKeyringError(CacheConfigError, KeyringMissingError):
    """Encryption was requested without a keyring."""

    pass


class UnableToWriteError(CacheError):
    """A write inside a multi-write failed."""

    pass


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class CacheConfig:
    """Options shared by every backend.

    Attributes:
        coder: Object with ``dump(value) -> bytes`` and ``load(bytes)``.
        encrypt: Encrypt payloads with the keyring.
        keyring: Keyring used when ``encrypt`` is true.
        namespace: Optional prefix; keys are stored as ``"<namespace>:<key>"``.
    """

    coder: Coder = field(default_factory=JsonCoder)
    encrypt: bool = True
    keyring: Keyring | None = None
    namespace: str | None = None

    def validate(self) -> None:
        """Validate configuration values."""
        if not (callable(getattr(self.coder, "dump", None)) and callable(getattr(self.coder, "load", None))):
            raise CacheConfigError("coder must provide dump() and load()")
        if self.namespace is not None and not isinstance(self.namespace, str):
            raise CacheConfigError("namespace must be a string")
        if self.encrypt:
            if self.keyring is None:
                raise MissingKeyringError("keyring must be set when using encryption")
            if len(self.keyring) == 0:
                raise EmptyKeyring("keyring doesn't have any keys")


@dataclass
class MemoryConfig(CacheConfig):
    """Memory backend options.

    Attributes:
        store: Initial mapping of normalized key to payload. A new dict is
            used when omitted.
    """

    store: MutableMapping[str, bytes] | None = None


@dataclass
class SQLiteConfig(CacheConfig):
    """SQLite backend options.

    Attributes:
        url: ``sqlite3::memory:``, ``sqlite3:///abs/path.db``,
            ``sqlite3://relative/path.db``, ``sqlite3:path.db`` or a bare path.
    """

    url: str = "sqlite3::memory:"

    def validate(self) -> None:
        super().validate()
        if not self.url:
            raise CacheConfigError("url must not be empty")


@dataclass
class RedisConfig(CacheConfig):
    """Redis backend options.

    Attributes:
        pool: Object whose ``client()`` context manager yields a live
            ``redis.Redis``. Takes precedence over ``url``.
        url: Redis URL used to build a :class:`~cachering.cache.redis.RedisPool`.
    """

    pool: Any = None
    url: str | None = None

    def validate(self) -> None:
        super().validate()
        if self.pool is None and not self.url:
            raise CacheConfigError("Either pool or url is required")
        if self.pool is not None and not callable(getattr(self.pool, "client", None)):
            raise CacheConfigError("pool must provide a client() context manager")


@dataclass
class NullConfig(CacheConfig):
    """Null backend options.

    Nothing is ever stored, so no keyring is required even with
    ``encrypt=True``.
    """

    def validate(self) -> None:
        if self.namespace is not None and not isinstance(self.namespace, str):
            raise CacheConfigError("namespace must be a string")


# =============================================================================
# Value pipeline
# =============================================================================


def dump_value(value: Any, coder: Coder, keyring: Keyring | None, encrypt: bool) -> bytes:
    """Encode a value into the payload a backend stores.

    Args:
        value: Value to encode.
        coder: Coder serializing the value.
        keyring: Keyring used when encrypting.
        encrypt: Wrap the coded value in ``[ciphertext, keyring_id]``.

    Returns:
        Payload bytes.
    """
    data = coder.dump(value)
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not encrypt:
        return data

    if keyring is None:
        raise MissingKeyringError("keyring must be set when using encryption")
    ciphertext, keyring_id, _ = keyring.encrypt(data)
    return json.dumps([ciphertext, keyring_id]).encode("utf-8")


def load_value(data: bytes | None, coder: Coder, keyring: Keyring | None, encrypt: bool) -> Any:
    """Decode a stored payload. ``None`` (a miss) decodes to ``None``.

    Raises:
        InvalidAuthentication: If the encrypted payload was tampered with.
        UnknownKey: If the payload was encrypted with a key no longer on the
            keyring.
    """
    if data is None:
        return None

    if encrypt:
        if keyring is None:
            raise MissingKeyringError("keyring must be set when using encryption")
        ciphertext, keyring_id = json.loads(data)
        data = keyring.decrypt(ciphertext, keyring_id)
    return coder.load(data)


def _check_compute(compute: Compute) -> None:
    if not callable(compute):
        raise TypeError(f"compute must be callable; got {type(compute).__name__}")


# =============================================================================
# Base Cache
# =============================================================================


class BaseCache(ABC):
    """Abstract base class for cache backends.

    Subclasses set ``name`` and ``config_class`` and implement the storage
    primitives. Primitives receive normalized keys and raw payloads and may
    raise freely; the public operations contain the failures.

    A backend is built from either a config object or keyword options::

        MemoryCache(MemoryConfig(encrypt=False))
        MemoryCache(encrypt=False)

    Unknown keyword options raise :class:`CacheConfigError`.
    """

    name: ClassVar[str] = "base"
    config_class: ClassVar[type[CacheConfig]] = CacheConfig

    def __init__(self, config: CacheConfig | None = None, **options: Any) -> None:
        if config is None:
            try:
                config = self.config_class(**options)
            except TypeError as e:
                raise CacheConfigError(f"Invalid option for {type(self).__name__}: {e}") from e
        elif options:
            raise CacheConfigError("Pass either a config object or keyword options, not both")
        elif not isinstance(config, self.config_class):
            raise CacheConfigError(
                f"{type(self).__name__} requires {self.config_class.__name__}; "
                f"got {type(config).__name__}"
            )

        config.validate()
        self._config = config

    @property
    def config(self) -> CacheConfig:
        """Get cache configuration."""
        return self._config

    @property
    def coder(self) -> Coder:
        return self._config.coder

    @property
    def keyring(self) -> Keyring | None:
        return self._config.keyring

    @property
    def encrypt(self) -> bool:
        return self._config.encrypt

    def __repr__(self) -> str:
        return f"<{type(self).__name__} encrypt={self.encrypt} namespace={self._config.namespace!r}>"

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def normalize_key(self, key: Hashable) -> str:
        """Convert a key to its stored form."""
        key = str(key)
        if self._config.namespace:
            return f"{self._config.namespace}:{key}"
        return key

    def _op(self, operation: str) -> str:
        return f"{self.name}.{operation}"

    def _dump(self, value: Any) -> bytes:
        return dump_value(value, self.coder, self.keyring, self.encrypt)

    def _load(self, payload: bytes | None) -> Any:
        """Decode a payload; integrity failures become a miss."""
        if payload is None:
            return None
        return try_or(None, lambda: load_value(payload, self.coder, self.keyring, self.encrypt), name=self._op("load"))

    # -------------------------------------------------------------------------
    # Storage primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def _get(self, key: str) -> bytes | None:
        """Get the live payload for a key, or None."""
        ...

    @abstractmethod
    def _get_multi(self, keys: list[str]) -> list[bytes | None]:
        """Get live payloads, positionally matching ``keys``."""
        ...

    @abstractmethod
    def _set(self, key: str, payload: bytes, expires_in: float | None) -> bool:
        """Store a payload."""
        ...

    @abstractmethod
    def _set_multi(self, items: list[tuple[str, bytes]], expires_in: float | None) -> bool:
        """Store several payloads."""
        ...

    @abstractmethod
    def _remove(self, key: str) -> bool:
        """Remove a key; True if it existed."""
        ...

    @abstractmethod
    def _remove_multi(self, keys: list[str]) -> int:
        """Remove keys; return how many existed."""
        ...

    @abstractmethod
    def _incr(self, key: str, amount: int, expires_in: float | None) -> int:
        """Add ``amount`` to a counter (missing counts as 0)."""
        ...

    def _decr(self, key: str, amount: int, expires_in: float | None) -> int:
        """Subtract ``amount`` from a counter."""
        return self._incr(key, -amount, expires_in)

    @abstractmethod
    def _has(self, key: str) -> bool:
        """Check for a live entry."""
        ...

    @abstractmethod
    def _flush(self) -> bool:
        """Remove every entry."""
        ...

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def read(self, key: Hashable) -> Any:
        """Read a value; None on miss or failure."""
        payload = try_or(None, lambda: self._get(self.normalize_key(key)), name=self._op("read"))
        return self._load(payload)

    def read_multi(self, keys: Iterable[Hashable]) -> dict[Any, Any]:
        """Read several values.

        Returns:
            Dict keyed by the requested keys, in request order. Misses and
            failures map to None.
        """
        keys = list(keys)
        if not keys:
            return {}

        payloads = try_or(
            [None] * len(keys),
            lambda: self._get_multi([self.normalize_key(k) for k in keys]),
            name=self._op("read_multi"),
        )
        return {key: self._load(payload) for key, payload in zip(keys, payloads)}

    def write(self, key: Hashable, value: Any, expires_in: float | None = None) -> bool:
        """Write a value.

        Args:
            key: Cache key.
            value: Value representable by the coder.
            expires_in: Seconds until expiry (ignored by backends without
                native expiry).

        Returns:
            True if the write succeeded.
        """
        return bool(
            try_or(
                False,
                lambda: self._set(self.normalize_key(key), self._dump(value), expires_in),
                name=self._op("write"),
            )
        )

    def write_multi(self, values: Mapping[Hashable, Any], expires_in: float | None = None) -> bool:
        """Write several values. Not transactional on every backend."""
        items = list(values.items())
        if not items:
            return True

        return bool(
            try_or(
                False,
                lambda: self._set_multi(
                    [(self.normalize_key(k), self._dump(v)) for k, v in items],
                    expires_in,
                ),
                name=self._op("write_multi"),
            )
        )

    def delete(self, key: Hashable) -> bool:
        """Delete a key; True if it existed."""
        return bool(try_or(False, lambda: self._remove(self.normalize_key(key)), name=self._op("delete")))

    def delete_multi(self, keys: Iterable[Hashable]) -> int:
        """Delete keys; return how many existed."""
        keys = [self.normalize_key(k) for k in keys]
        if not keys:
            return 0
        return int(try_or(0, lambda: self._remove_multi(keys), name=self._op("delete_multi")))

    def increment(self, key: Hashable, amount: int = 1, expires_in: float | None = None) -> int | None:
        """Increment a counter, creating it at 0 when missing.

        Returns:
            The new value, or None on failure.
        """
        return try_or(
            None,
            lambda: int(self._incr(self.normalize_key(key), int(amount), expires_in)),
            name=self._op("increment"),
        )

    def decrement(self, key: Hashable, amount: int = 1, expires_in: float | None = None) -> int | None:
        """Decrement a counter, creating it at 0 when missing.

        Returns:
            The new value, or None on failure.
        """
        return try_or(
            None,
            lambda: int(self._decr(self.normalize_key(key), int(amount), expires_in)),
            name=self._op("decrement"),
        )

    def exists(self, key: Hashable) -> bool:
        """Check whether a live entry exists."""
        return bool(try_or(False, lambda: self._has(self.normalize_key(key)), name=self._op("exists")))

    def clear(self) -> bool:
        """Remove every entry."""
        return bool(try_or(False, self._flush, name=self._op("clear")))

    def fetch(self, key: Hashable, compute: Compute, expires_in: float | None = None) -> Any:
        """Read a value, computing and storing it on a miss.

        ``compute(key)`` runs only on a miss. If the store is unreachable the
        computed value is returned without being cached. A cached ``None``
        counts as a miss.
        """
        _check_compute(compute)
        value = self.read(key)
        if value is None:
            value = compute(key)
            self.write(key, value, expires_in=expires_in)
        return value

    def fetch_multi(
        self,
        keys: Iterable[Hashable],
        compute: Compute,
        expires_in: float | None = None,
    ) -> dict[Any, Any]:
        """Read several values, computing the misses.

        One batched read, ``compute(key)`` for each miss, then one batched
        write of every result (hits included) with this call's ``expires_in``.

        Returns:
            Dict keyed by the requested keys, in request order.
        """
        _check_compute(compute)
        keys = list(keys)
        cached = self.read_multi(keys)

        result: dict[Any, Any] = {}
        for key in keys:
            value = cached.get(key)
            if value is None:
                value = compute(key)
            result[key] = value

        if result:
            self.write_multi(result, expires_in=expires_in)
        return result
