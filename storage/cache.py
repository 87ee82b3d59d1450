"""
SQLite cache for raw GitHub API responses and the cached, rate-limit-aware fetch helper.
Entries are keyed by resource (e.g. ``github:events:alice:page:2``).
"""

import json
import sqlite3
import threading
import time
from typing import Any, Dict, Optional

import structlog

from .retry import perform_request_with_retries, configure_retry

log = structlog.get_logger("contrib_stats.cache")

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS http_cache (
    key TEXT PRIMARY KEY,
    response TEXT,
    status INTEGER,
    timestamp REAL
);
"""


class Cache:
    def __init__(self, path: Optional[str] = None, max_entries: Optional[int] = None, ttl_seconds: Optional[float] = None):
        """Create a cache instance.

        :param path: SQLite file path or None for in-memory.
        :param max_entries: optional cap; the oldest entries are pruned beyond it.
        :param ttl_seconds: optional TTL; expired entries are dropped on get/set.
        """
        self.path = path or ':memory:'
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self._lock = threading.RLock()
        self.max_entries = int(max_entries) if max_entries is not None else None
        self.ttl_seconds = float(ttl_seconds) if ttl_seconds is not None else None
        with self._lock:
            self.conn.executescript(SQL_CREATE)
            self.conn.commit()

    def close(self):
        with self._lock:
            if self.conn is not None:
                try:
                    self.conn.close()
                finally:
                    self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # noinspection SqlResolve
    def stats(self) -> Dict[str, Any]:
        """Return entry count and the oldest/newest entry timestamps."""
        with self._lock:
            row = self.conn.execute('SELECT COUNT(1), MIN(timestamp), MAX(timestamp) FROM http_cache').fetchone()
        count, oldest, newest = row
        return {
            'count': int(count or 0),
            'oldest': float(oldest) if oldest is not None else None,
            'newest': float(newest) if newest is not None else None,
        }

    # noinspection SqlResolve
    def list_keys(self, limit: int = 1000) -> list:
        """Return cache keys with status and timestamp, newest first."""
        with self._lock:
            rows = self.conn.execute(
                'SELECT key, status, timestamp FROM http_cache ORDER BY timestamp DESC LIMIT ?', (limit,)
            ).fetchall()
        return [{'key': k, 'status': int(status or 0), 'timestamp': float(ts or 0)} for k, status, ts in rows]

    # noinspection SqlWithoutWhere
    def clear(self):
        with self._lock:
            self.conn.execute('DELETE FROM http_cache')
            self.conn.commit()

    # noinspection SqlResolve
    def delete_key(self, key: str) -> int:
        """Delete one key. Returns number of rows deleted."""
        with self._lock:
            cur = self.conn.execute('DELETE FROM http_cache WHERE key = ?', (key,))
            self.conn.commit()
            return cur.rowcount

    # noinspection SqlResolve
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute('SELECT response, status, timestamp FROM http_cache WHERE key = ?', (key,)).fetchone()
        if not row:
            return None
        response, status, timestamp = row
        if self.ttl_seconds is not None and time.time() - float(timestamp) > self.ttl_seconds:
            self.delete_key(key)
            return None
        try:
            parsed = json.loads(response)
        except ValueError:
            parsed = response
        return {'response': parsed, 'status': status, 'timestamp': timestamp}

    # noinspection SqlResolve
    def _prune(self):
        if self.ttl_seconds is not None:
            self.conn.execute('DELETE FROM http_cache WHERE timestamp < ?', (time.time() - self.ttl_seconds,))
        if self.max_entries is not None:
            count = self.conn.execute('SELECT COUNT(1) FROM http_cache').fetchone()[0] or 0
            excess = int(count) - self.max_entries
            if excess > 0:
                self.conn.execute(
                    'DELETE FROM http_cache WHERE key IN (SELECT key FROM http_cache ORDER BY timestamp ASC LIMIT ?)',
                    (excess,),
                )

    # noinspection SqlResolve
    def set(self, key: str, response: Any, status: int = 200):
        try:
            payload = json.dumps(response)
        except (TypeError, ValueError):
            payload = json.dumps(str(response))
        with self._lock:
            self.conn.execute(
                'REPLACE INTO http_cache(key, response, status, timestamp) VALUES (?, ?, ?, ?)',
                (key, payload, status, time.time()),
            )
            self._prune()
            self.conn.commit()


def _cached_fresh(cache: Optional[Cache], cache_key: Optional[str], max_age: Optional[float]):
    if cache is None or not cache_key:
        return None
    cached = cache.get(cache_key)
    if not cached:
        return None
    if max_age is not None and time.time() - float(cached.get('timestamp') or 0) > float(max_age):
        return None
    return cached


def rate_limited_get(
    url: str,
    headers: Dict[str, str] = None,
    params: Dict[str, Any] = None,
    cache: Cache = None,
    cache_key: str = None,
    min_wait: float = 0.5,
    max_age: Optional[float] = None,
    max_retries: Optional[int] = None,
) -> Dict[str, Any]:
    """GET with caching, rate-limit handling and retries.

    A cached entry younger than ``max_age`` (any age when None) is returned
    without touching the network.
    """
    cached = _cached_fresh(cache, cache_key, max_age)
    if cached:
        log.debug("cache.hit", key=cache_key)
        return cached
    return perform_request_with_retries(
        url, headers or {}, params or {}, cache=cache, cache_key=cache_key or '', min_wait=min_wait, max_retries=max_retries
    )


__all__ = ["Cache", "rate_limited_get", "configure_retry"]
