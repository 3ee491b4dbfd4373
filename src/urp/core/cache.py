"""
Caching abstraction for recipe results.

Provides a ``CacheBackend`` protocol with an in-memory and a Redis
implementation. The recipe executor writes one entry per successful run,
keyed by ``hash(recipe_name, org_id, bound_parameters)``.

Manifesto:
    Report recipes are expensive (several store round-trips plus tree
    roll-ups) and are requested repeatedly with the same parameters.
    The cache is the central performance contract of the engine.

    - **Protocol-based:** CacheBackend defines the contract
    - **TTL support:** every entry expires; recipes declare their TTL
    - **Tenant-safe:** ``org_id`` is part of every key, never shared
    - **JSON values:** cached data is plain JSON-safe structures

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  : single process, bounded LRU, injectable clock
        └── RedisCache     : shared across processes (``redis`` extra)

Guardrails:
    ❌ DON'T: Use InMemoryCache expecting sharing between workers
    ✅ DO: Use RedisCache when several processes serve the same tenants

Tags:
    cache, caching, redis, in-memory, ttl, urp

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from urp.core.settings import UrpSettings


class CacheBackend(Protocol):
    """Protocol for cache backend implementations.

    Keys are strings, values are JSON-serializable.
    """

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value. ``ttl_seconds=None`` uses the backend default."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if the key does not exist."""
        ...

    def exists(self, key: str) -> bool:
        """``True`` if the key exists and has not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. ``clock`` returns the
    current time in seconds and defaults to ``time.monotonic``; tests pass
    a fake clock to move past a TTL without sleeping.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=300)
        cache.set("urp:abc", {"data": []}, ttl_seconds=60)
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: int | None = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._lock = threading.RLock()

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._expired(expires_at):
                del self._store[key]
                return None

            self._store.move_to_end(key)
            return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None

        with self._lock:
            if key not in self._store and len(self._store) >= self._max_size:
                # Evict least recently used
                self._store.popitem(last=False)
            self._store[key] = (value, expires_at)
            self._store.move_to_end(key)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if self._expired(entry[1]):
                del self._store[key]
                return False
            return True

    def clear(self) -> None:
        """Remove all keys."""
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys."""
        return len(self._store)


# ------------------------------------------------------------------ #
# Redis Cache (optional)
# ------------------------------------------------------------------ #


class RedisCache:
    """Redis-backed shared cache.

    Requires the ``redis`` package (``pip install urp-engine[redis]``).

    Example:
        cache = RedisCache("redis://localhost:6379/0", default_ttl_seconds=600)

    Raises:
        ImportError: If ``redis`` package is not installed.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        default_ttl_seconds: int | None = 3600,
        prefix: str = "urp:",
    ):
        try:
            import redis
        except ImportError as exc:
            msg = "Redis backend requires 'redis' package. Install with: pip install urp-engine[redis]"
            raise ImportError(msg) from exc

        self._client = redis.from_url(url, decode_responses=False)
        self._default_ttl = default_ttl_seconds
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any | None:
        """Retrieve a value by key."""
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        serialized = json.dumps(value)
        if ttl:
            self._client.setex(self._key(key), ttl, serialized)
        else:
            self._client.set(self._key(key), serialized)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._client.delete(self._key(key))

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        return bool(self._client.exists(self._key(key)))

    def clear(self) -> None:
        """Remove every key under this cache's prefix."""
        for key in self._client.scan_iter(match=f"{self._prefix}*"):
            self._client.delete(key)


def build_cache(settings: UrpSettings) -> CacheBackend:
    """Create the cache backend selected by ``settings.cache_backend``."""
    if settings.cache_backend == "redis":
        return RedisCache(settings.redis_url, default_ttl_seconds=settings.default_cache_ttl)
    return InMemoryCache(
        max_size=settings.cache_max_size,
        default_ttl_seconds=settings.default_cache_ttl,
    )


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "build_cache",
]
