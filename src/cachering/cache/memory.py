"""In-process memory backend.

Stores payloads in a plain mapping. There is no native expiry:
``expires_in`` is accepted and ignored. Counters are read-modify-write
through the normal value pipeline, guarded by a lock so concurrent
increments within one process do not lose updates.

Example:
    >>> cache = MemoryCache(encrypt=False)
    >>> cache.write("user:1", {"name": "Ada"})
    True
    >>> cache.read("user:1")
    {'name': 'Ada'}
"""

from __future__ import annotations

import threading
from typing import Any, Hashable, Mapping

from cachering.cache.base import (
    BaseCache,
    Compute,
    MemoryConfig,
    UnableToWriteError,
    _check_compute,
    load_value,
)
from cachering.cache.resilience import try_or

_MISSING = object()


class MemoryCache(BaseCache):
    """Cache backed by an in-process mapping."""

    name = "memory"
    config_class = MemoryConfig

    def __init__(self, config: MemoryConfig | None = None, **options: Any) -> None:
        super().__init__(config, **options)
        store = self._config.store
        self._store = store if store is not None else {}
        self._lock = threading.RLock()

    @property
    def store(self):
        """Get the underlying mapping."""
        return self._store

    def _get(self, key: str) -> bytes | None:
        return self._store.get(key)

    def _get_multi(self, keys: list[str]) -> list[bytes | None]:
        return [self._store.get(key) for key in keys]

    def _set(self, key: str, payload: bytes, expires_in: float | None) -> bool:
        self._store[key] = payload
        return True

    def _set_multi(self, items: list[tuple[str, bytes]], expires_in: float | None) -> bool:
        # Earlier writes stay in place when a later one fails.
        for key, payload in items:
            try:
                self._set(key, payload, expires_in)
            except Exception as e:
                raise UnableToWriteError(f"failed to write key {key!r}") from e
        return True

    def _remove(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def _remove_multi(self, keys: list[str]) -> int:
        return sum(1 for key in keys if self._remove(key))

    def _incr(self, key: str, amount: int, expires_in: float | None) -> int:
        with self._lock:
            payload = self._store.get(key)
            count = self._load(payload) if payload is not None else 0
            count = (count or 0) + amount
            self._store[key] = self._dump(count)
            return count

    def _has(self, key: str) -> bool:
        return key in self._store

    def _flush(self) -> bool:
        self._store.clear()
        return True

    def write_multi(self, values: Mapping[Hashable, Any], expires_in: float | None = None) -> bool:
        """Write values in order, encoding each just before it is stored.

        Stops at the first value that cannot be encoded or stored; earlier
        writes stay in place.
        """

        def write_each() -> bool:
            for key, value in values.items():
                try:
                    self._set(self.normalize_key(key), self._dump(value), expires_in)
                except Exception as e:
                    raise UnableToWriteError(f"failed to write key {key!r}") from e
            return True

        return bool(try_or(False, write_each, name=self._op("write_multi")))

    def _lookup(self, key: str) -> Any:
        payload = self._store.get(key, _MISSING)
        if payload is _MISSING:
            return _MISSING
        return load_value(payload, self.coder, self.keyring, self.encrypt)

    def fetch(self, key: Hashable, compute: Compute, expires_in: float | None = None) -> Any:
        """Return the stored value if the key holds a readable entry, else compute and store it.

        Unlike the default, a stored ``None`` is a hit. An entry that fails
        to decode is a miss.
        """
        _check_compute(compute)
        normalized = self.normalize_key(key)
        value = try_or(_MISSING, lambda: self._lookup(normalized), name=self._op("fetch"))
        if value is not _MISSING:
            return value

        value = compute(key)
        self.write(key, value, expires_in=expires_in)
        return value

    def fetch_multi(
        self,
        keys,
        compute: Compute,
        expires_in: float | None = None,
    ) -> dict[Any, Any]:
        """Fetch each key in turn."""
        _check_compute(compute)
        return {key: self.fetch(key, compute, expires_in=expires_in) for key in keys}
