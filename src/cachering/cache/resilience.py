"""Failure containment for cache operations.

A cache is a best-effort layer: a broken backend must degrade to misses and
failed writes, never to an exception in the caller. Every backend call site
goes through :func:`try_or`, so the policy lives in one place instead of a
``try``/``except`` per method.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
D = TypeVar("D")


def try_or(default: D, operation: Callable[[], T], *, name: str = "operation") -> T | D:
    """Run an operation, returning ``default`` if it raises.

    Args:
        default: Value returned when the operation fails.
        operation: Zero-argument callable doing the backend work.
        name: Operation name for logging (e.g. ``"redis.read"``).

    Returns:
        The operation result, or ``default`` on failure.
    """
    try:
        return operation()
    except Exception as e:
        logger.warning(f"Cache {name} failed: {type(e).__name__}: {e}")
        return default
