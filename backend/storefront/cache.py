# Overview: Read-through cache extension (Redis or in-process memory) with pattern invalidation.

"""
Read Cache

Values are stored as JSON under namespaced keys with a TTL per resource
family. Writes invalidate by key pattern (glob syntax, as Redis SCAN MATCH).
Counters (rate limits, failed logins) live in the same backend under
throttle: and lockout: keys and expire on their own.

BACKENDS:
- redis: shared across instances; required for multi-instance deployments
- memory: single process only (development and tests)

FAILURE POLICY:
- A read or fill failure is logged and the request falls through to the fetcher
- An invalidation failure is logged and re-raised so the write request fails
"""

from __future__ import annotations

import fnmatch
import json
import math
import threading
import time
from typing import Any, Callable

import redis
from flask import Flask, current_app


class MemoryBackend:
    """Process-local key/value store with expiry."""

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        expires_at = time.monotonic() + ex if ex else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def incr(self, key: str, ex: int) -> int:
        """Increment a counter; the expiry is set when the counter is created."""
        now = time.monotonic()
        with self._lock:
            item = self._data.get(key)
            if item is None or (item[1] is not None and now >= item[1]):
                self._data[key] = ("1", now + ex)
                return 1
            value, expires_at = item
            count = int(value) + 1
            self._data[key] = (str(count), expires_at)
            return count

    def ttl(self, key: str) -> int | None:
        with self._lock:
            item = self._data.get(key)
            if item is None or item[1] is None:
                return None
            remaining = item[1] - time.monotonic()
            if remaining <= 0:
                del self._data[key]
                return None
            return math.ceil(remaining)

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
        return removed

    def flush(self) -> None:
        with self._lock:
            self._data.clear()


class RedisBackend:
    """redis-py client wrapper. Errors surface as redis.exceptions.RedisError."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float) -> "RedisBackend":
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    def get(self, key: str) -> str | None:
        return self.client.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.client.set(key, value, ex=ex)

    def incr(self, key: str, ex: int) -> int:
        count = self.client.incr(key)
        if count == 1:
            self.client.expire(key, ex)
        return count

    def ttl(self, key: str) -> int | None:
        remaining = self.client.ttl(key)
        return remaining if remaining > 0 else None

    def keys(self, pattern: str) -> list[str]:
        return list(self.client.scan_iter(match=pattern, count=500))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return self.client.delete(*keys)

    def flush(self) -> None:
        self.client.flushdb()


class Cache:
    """Flask extension holding the configured backend."""

    def __init__(self, app: Flask | None = None):
        self.backend: MemoryBackend | RedisBackend | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        kind = app.config.get("CACHE_BACKEND", "memory")
        if kind == "redis":
            self.backend = RedisBackend.from_url(
                app.config["REDIS_URL"],
                socket_timeout=app.config.get("REDIS_SOCKET_TIMEOUT", 2),
            )
        elif kind == "memory":
            self.backend = MemoryBackend()
        else:
            raise RuntimeError(f"Unknown CACHE_BACKEND: {kind}")
        app.extensions["storefront_cache"] = self

    def get_or_set(self, key: str, fetcher: Callable[[], Any], ttl: int) -> Any:
        """Return the cached JSON value for key, filling it from fetcher on a miss."""
        try:
            cached = self.backend.get(key)
        except redis.exceptions.RedisError:
            current_app.logger.warning("Cache read failed for %s", key, exc_info=True)
            return fetcher()

        if cached is not None:
            return json.loads(cached)

        value = fetcher()
        try:
            self.backend.set(key, json.dumps(value), ex=ttl)
        except redis.exceptions.RedisError:
            current_app.logger.warning("Cache fill failed for %s", key, exc_info=True)
        return value

    def invalidate(self, *patterns: str) -> int:
        """Delete every key matching any of the glob patterns."""
        removed = 0
        for pattern in patterns:
            try:
                keys = self.backend.keys(pattern)
                if keys:
                    removed += self.backend.delete(*keys)
            except redis.exceptions.RedisError:
                current_app.logger.exception("Cache invalidation failed for %s", pattern)
                raise
        return removed

    def clear(self) -> None:
        self.backend.flush()


# =============================================================================
# KEY BUILDERS
# =============================================================================

def products_list_key(page: int, per_page: int, category_id: int | None) -> str:
    return f"products:list:{page}:{per_page}:{category_id or 'all'}"


def product_detail_key(product_id: int) -> str:
    return f"product:{product_id}"


def search_key(term: str, page: int, per_page: int) -> str:
    return f"search:{term.strip().lower()}:{page}:{per_page}"


CATEGORIES_KEY = "categories:all"
DASHBOARD_KEY = "dashboard:stats"

# Invalidation patterns per written resource
PRODUCT_PATTERNS = ("products:*", "product:*", "search:*", "dashboard:*")
CATEGORY_PATTERNS = ("categories:*", "products:*", "search:*")
ORDER_PATTERNS = ("dashboard:*",)


def throttle_key(scope: str, identifier: str) -> str:
    return f"throttle:{scope}:{identifier.strip().lower()}"


def lockout_key(scope: str, identifier: str) -> str:
    return f"lockout:{scope}:{identifier.strip().lower()}"
