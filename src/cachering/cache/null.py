"""Null backend.

An always-miss sink for forcing cold-cache code paths. Reads miss, writes
report failure, and ``fetch`` calls ``compute`` every time. Counters live in
a per-instance dict that nothing reads back.
"""

from __future__ import annotations

from typing import Any, Hashable

from cachering.cache.base import BaseCache, Compute, NullConfig, _check_compute


class NullCache(BaseCache):
    """Cache that never stores anything."""

    name = "null"
    config_class = NullConfig

    def __init__(self, config: NullConfig | None = None, **options: Any) -> None:
        super().__init__(config, **options)
        self._counters: dict[str, int] = {}

    def _get(self, key: str) -> bytes | None:
        return None

    def _get_multi(self, keys: list[str]) -> list[bytes | None]:
        return [None] * len(keys)

    def _set(self, key: str, payload: bytes, expires_in: float | None) -> bool:
        return False

    def _set_multi(self, items: list[tuple[str, bytes]], expires_in: float | None) -> bool:
        return False

    def _remove(self, key: str) -> bool:
        return False

    def _remove_multi(self, keys: list[str]) -> int:
        return 0

    def _incr(self, key: str, amount: int, expires_in: float | None) -> int:
        self._counters[key] = self._counters.get(key, 0) + amount
        return self._counters[key]

    def _has(self, key: str) -> bool:
        return False

    def _flush(self) -> bool:
        self._counters.clear()
        return False

    def write(self, key: Hashable, value: Any, expires_in: float | None = None) -> bool:
        return False

    def write_multi(self, values, expires_in: float | None = None) -> bool:
        return False

    def fetch(self, key: Hashable, compute: Compute, expires_in: float | None = None) -> Any:
        """Always compute."""
        _check_compute(compute)
        return compute(key)

    def fetch_multi(self, keys, compute: Compute, expires_in: float | None = None) -> dict[Any, Any]:
        """Always compute every key."""
        _check_compute(compute)
        return {key: compute(key) for key in keys}
