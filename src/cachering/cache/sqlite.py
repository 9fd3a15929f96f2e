"""Embedded SQLite backend.

Entries live in a single table::

    cache_store(key TEXT PRIMARY KEY, content BLOB NOT NULL, expires_at REAL)

Expiry is lazy: reads filter on ``expires_at IS NULL OR expires_at >= now``
and expired rows stay on disk until overwritten, deleted, cleared or removed
by an explicit :meth:`SQLiteCache.purge_expired` call.

Counters are stored as native integers so the database can do the
arithmetic in one upsert. They bypass the coder and encryption.

Example:
    >>> cache = SQLiteCache(url="sqlite3:///var/cache/app.db", keyring=keyring)
    >>> cache.write("greeting", "hello", expires_in=60)
    True
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Any, Generator

from cachering.cache.base import BaseCache, CacheConfigError, SQLiteConfig
from cachering.cache.resilience import try_or

logger = logging.getLogger(__name__)

URL_SCHEMES = ("sqlite3:", "sqlite:")


def parse_sqlite_url(url: str) -> str:
    """Turn a cache URL into a database path for :func:`sqlite3.connect`.

    ``sqlite3::memory:`` maps to ``:memory:``, ``sqlite3:///abs.db`` to
    ``/abs.db``, ``sqlite3://rel.db`` and ``sqlite3:rel.db`` to ``rel.db``.
    Anything without a scheme is used as a path.
    """
    for scheme in URL_SCHEMES:
        if url.startswith(scheme):
            path = url[len(scheme):]
            break
    else:
        return url

    if path.startswith("//"):
        path = path[2:]
    if not path:
        raise CacheConfigError(f"No database path in {url!r}")
    return path


class SQLiteCache(BaseCache):
    """Cache stored in an SQLite database."""

    name = "sqlite"
    config_class = SQLiteConfig

    CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS cache_store (
            key TEXT PRIMARY KEY NOT NULL,
            content BLOB NOT NULL,
            expires_at REAL
        );
        CREATE INDEX IF NOT EXISTS index_cache_store_expires_at ON cache_store(expires_at);
    """

    LIVE = "(expires_at IS NULL OR expires_at >= :now)"

    INSERT_SQL = """
        INSERT OR REPLACE INTO cache_store (key, content, expires_at)
        VALUES (:key, :content, :expires_at)
    """

    READ_SQL = f"SELECT content FROM cache_store WHERE key = :key AND {LIVE} LIMIT 1"

    EXISTS_SQL = f"SELECT 1 FROM cache_store WHERE key = :key AND {LIVE} LIMIT 1"

    DELETE_SQL = "DELETE FROM cache_store WHERE key = :key"

    CLEAR_SQL = "DELETE FROM cache_store"

    PURGE_SQL = "DELETE FROM cache_store WHERE expires_at IS NOT NULL AND expires_at < :now"

    # An expired row restarts from the fresh amount and takes the new TTL;
    # a live row is added to and keeps its TTL unless a new one is given.
    COUNTER_SQL = """
        INSERT INTO cache_store (key, content, expires_at)
        VALUES (:key, :amount, :expires_at)
        ON CONFLICT(key) DO UPDATE SET
            content = CASE
                WHEN cache_store.expires_at IS NOT NULL AND cache_store.expires_at < :now
                THEN :amount
                ELSE CAST(cache_store.content AS INTEGER) + :amount
            END,
            expires_at = CASE
                WHEN cache_store.expires_at IS NOT NULL AND cache_store.expires_at < :now
                THEN :expires_at
                ELSE COALESCE(:expires_at, cache_store.expires_at)
            END
        RETURNING content
    """

    def __init__(self, config: SQLiteConfig | None = None, **options: Any) -> None:
        super().__init__(config, **options)
        self._database_path = parse_sqlite_url(self._config.url)
        self._lock = threading.RLock()
        self._connection = sqlite3.connect(self._database_path, check_same_thread=False)
        self._init_database()
        logger.debug(f"Opened SQLite cache at {self._database_path}")

    @property
    def database_path(self) -> str:
        return self._database_path

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._lock:
            self._connection.executescript(self.CREATE_TABLE_SQL)
            self._connection.commit()

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for transactions."""
        with self._lock:
            conn = self._connection
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _now(self) -> float:
        return time.time()

    def _expires_at(self, expires_in: float | None) -> float | None:
        if expires_in is None:
            return None
        return self._now() + float(expires_in)

    @staticmethod
    def _payload(content: Any) -> bytes | None:
        # Counters come back as integers.
        if content is None or isinstance(content, bytes):
            return content
        if isinstance(content, (int, float)):
            return str(content).encode("ascii")
        return str(content).encode("utf-8")

    @staticmethod
    def _placeholders(count: int) -> str:
        return ", ".join("?" * count)

    def _get(self, key: str) -> bytes | None:
        with self._lock:
            row = self._connection.execute(self.READ_SQL, {"key": key, "now": self._now()}).fetchone()
        return self._payload(row[0]) if row else None

    def _get_multi(self, keys: list[str]) -> list[bytes | None]:
        unique = list(dict.fromkeys(keys))
        query = (
            "SELECT key, content FROM cache_store "
            f"WHERE key IN ({self._placeholders(len(unique))}) "
            "AND (expires_at IS NULL OR expires_at >= ?)"
        )
        with self._lock:
            rows = self._connection.execute(query, (*unique, self._now())).fetchall()
        found = {key: self._payload(content) for key, content in rows}
        return [found.get(key) for key in keys]

    def _set(self, key: str, payload: bytes, expires_in: float | None) -> bool:
        with self._transaction() as conn:
            conn.execute(
                self.INSERT_SQL,
                {"key": key, "content": payload, "expires_at": self._expires_at(expires_in)},
            )
        return True

    def _set_multi(self, items: list[tuple[str, bytes]], expires_in: float | None) -> bool:
        expires_at = self._expires_at(expires_in)
        with self._transaction() as conn:
            conn.executemany(
                self.INSERT_SQL,
                [{"key": key, "content": payload, "expires_at": expires_at} for key, payload in items],
            )
        return True

    def _remove(self, key: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(self.DELETE_SQL, {"key": key})
            return cursor.rowcount > 0

    def _remove_multi(self, keys: list[str]) -> int:
        unique = list(dict.fromkeys(keys))
        query = f"DELETE FROM cache_store WHERE key IN ({self._placeholders(len(unique))})"
        with self._transaction() as conn:
            cursor = conn.execute(query, unique)
            return cursor.rowcount

    def _incr(self, key: str, amount: int, expires_in: float | None) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                self.COUNTER_SQL,
                {
                    "key": key,
                    "amount": amount,
                    "expires_at": self._expires_at(expires_in),
                    "now": self._now(),
                },
            ).fetchone()
        return int(row[0])

    def _has(self, key: str) -> bool:
        with self._lock:
            row = self._connection.execute(self.EXISTS_SQL, {"key": key, "now": self._now()}).fetchone()
        return row is not None

    def _flush(self) -> bool:
        with self._transaction() as conn:
            conn.execute(self.CLEAR_SQL)
        return True

    def purge_expired(self) -> int:
        """Delete expired rows.

        Never runs on its own; call it from a maintenance job for
        long-lived database files.

        Returns:
            Number of rows deleted (0 on failure).
        """

        def purge() -> int:
            with self._transaction() as conn:
                return conn.execute(self.PURGE_SQL, {"now": self._now()}).rowcount

        count = try_or(0, purge, name=self._op("purge_expired"))
        if count:
            logger.info(f"Purged {count} expired cache entries")
        return count

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._connection.close()
