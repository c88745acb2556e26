from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, Optional, Protocol, Tuple, TypeVar

import redis

from app.core.config import settings
from app.core.errors import CacheError

_LOG = logging.getLogger("app.cache")

GEMS_GROUP = "gems"

T = TypeVar("T")


class CacheBackend(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    def get_version(self, group: str) -> int:
        ...

    def incr_version(self, group: str) -> Optional[int]:
        ...


class NullGemCache:
    """Pass-through backend: every read misses and versions never move."""

    def get(self, key: str) -> Optional[bytes]:
        return None

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        return None

    def get_version(self, group: str) -> int:
        return 1

    def incr_version(self, group: str) -> Optional[int]:
        return None


class InMemoryGemCache:
    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._data: dict[str, tuple[bytes, datetime]] = {}
        self._versions: dict[str, int] = {}
        self._lock = Lock()

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def get(self, key: str) -> Optional[bytes]:
        now = datetime.now(timezone.utc)
        with self._lock:
            entry = self._data.get(self._key(key))
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= now:
                self._data.pop(self._key(key), None)
                return None
            return value

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=max(int(ttl_seconds), 1))
        with self._lock:
            self._data[self._key(key)] = (value, expires_at)

    def get_version(self, group: str) -> int:
        with self._lock:
            return self._versions.get(self._key(f"version:{group}"), 1)

    def incr_version(self, group: str) -> Optional[int]:
        with self._lock:
            key = self._key(f"version:{group}")
            value = self._versions.get(key, 1) + 1
            self._versions[key] = value
            return value

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class RedisGemCache:
    """Redis-backed store; client failures surface as ``CacheError``."""

    def __init__(self, client: redis.Redis, namespace: str, default_ttl_seconds: int = 120):
        self.client = client
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds

    def _key(self, *parts: str) -> str:
        return ":".join([self.namespace, *parts])

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.client.get(self._key(key))
        except redis.RedisError as exc:
            raise CacheError(f"get {key}: {exc}") from exc

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ttl = int(ttl_seconds or self.default_ttl_seconds)
        try:
            self.client.setex(self._key(key), max(ttl, 1), value)
        except redis.RedisError as exc:
            raise CacheError(f"set {key}: {exc}") from exc

    def get_version(self, group: str) -> int:
        try:
            raw = self.client.get(self._key("version", group))
        except redis.RedisError as exc:
            raise CacheError(f"version read {group}: {exc}") from exc
        if raw is None:
            return 1
        try:
            return int(raw)
        except (TypeError, ValueError):
            _LOG.warning("Cache version for %s is not an integer: %r", group, raw)
            return 1

    def incr_version(self, group: str) -> Optional[int]:
        key = self._key("version", group)
        try:
            # An absent counter reads as 1, so the first bump must land on 2.
            pipe = self.client.pipeline()
            pipe.set(key, 1, nx=True)
            pipe.incr(key)
            _, value = pipe.execute()
        except redis.RedisError as exc:
            raise CacheError(f"version bump {group}: {exc}") from exc
        return int(value)


class VersionedCache:
    """Read-through cache whose keys embed a per-group generation counter.

    Backend failures degrade to a direct ``compute()``; they never reach callers.
    """

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    def key_for(self, group: str, key_suffix: str) -> str:
        return f"v{self.backend.get_version(group)}:{key_suffix}"

    def _lookup(self, group: str, key_suffix: str) -> Tuple[Optional[str], Optional[bytes]]:
        try:
            full_key = self.key_for(group, key_suffix)
            return full_key, self.backend.get(full_key)
        except CacheError as exc:
            _LOG.warning("Cache read failed: %s", exc)
            return None, None

    def read(self, group: str, key_suffix: str, compute: Callable[[], T], ttl_seconds: int) -> T:
        full_key, cached = self._lookup(group, key_suffix)
        if cached is not None:
            try:
                return json.loads(cached)
            except ValueError:
                _LOG.warning("Discarding undecodable cache entry %s", full_key)
        result = compute()
        if result is None or full_key is None:
            return result
        try:
            payload = json.dumps(result, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            _LOG.warning("Result for %s is not cacheable: %s", full_key, exc)
            return result
        try:
            self.backend.set(full_key, payload, ttl_seconds)
        except CacheError as exc:
            _LOG.warning("Cache write failed: %s", exc)
        return result

    def invalidate(self, group: str) -> Optional[int]:
        try:
            version = self.backend.incr_version(group)
        except CacheError as exc:
            _LOG.warning("Cache invalidation failed for %s: %s", group, exc)
            return None
        if version is not None:
            _LOG.info("Cache group %s moved to version %s", group, version)
        return version


def _build_backend() -> CacheBackend:
    if not settings.CACHE_ENABLED:
        return NullGemCache()
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
        client.ping()
        return RedisGemCache(client, settings.REDIS_NAMESPACE, settings.REDIS_DEFAULT_TTL_SECONDS)
    except (redis.RedisError, ValueError):
        _LOG.warning("Redis cache unavailable; serving reads without cache")
        return NullGemCache()


@lru_cache(maxsize=1)
def get_versioned_cache() -> VersionedCache:
    return VersionedCache(_build_backend())
