"""Value coders.

A coder turns a cached value into bytes and back. Backends never look inside
the bytes; encryption (when enabled) wraps the coder output.
"""

from __future__ import annotations

import json
import pickle
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Coder(Protocol):
    """Protocol for value coders."""

    def dump(self, value: Any) -> bytes:
        """Serialize a value."""
        ...

    def load(self, data: bytes) -> Any:
        """Deserialize a value."""
        ...


class JsonCoder:
    """JSON coder (default).

    Tuples come back as lists and dict keys as strings, as with any JSON
    round trip.
    """

    def __init__(self, **dumps_kwargs: Any) -> None:
        self._dumps_kwargs = dumps_kwargs

    def dump(self, value: Any) -> bytes:
        return json.dumps(value, **self._dumps_kwargs).encode("utf-8")

    def load(self, data: bytes | str) -> Any:
        return json.loads(data)

    def __repr__(self) -> str:
        return "JsonCoder()"


class PickleCoder:
    """Pickle coder for arbitrary Python objects.

    Only use with trusted stores: unpickling executes code. Pair it with
    encryption when the store is shared.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def dump(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=self._protocol)

    def load(self, data: bytes) -> Any:
        return pickle.loads(data)

    def __repr__(self) -> str:
        return f"PickleCoder(protocol={self._protocol})"
