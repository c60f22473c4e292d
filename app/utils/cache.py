"""Versioned in-memory TTL cache for provider calls.

Entries are stamped with the process epoch. A redeploy starts a new process
with a new epoch, so every entry written by the previous build is treated as
a miss even if its TTL has not run out.

Usage:
    from app.utils.cache import VersionedCache, cached

    cache = VersionedCache(default_ttl=300)
    stats = await cached(cache, f"woo:{brand}:stats:{window.cache_token()}",
                         lambda: store.get_order_stats(window), ttl=180)

The cache is not locked. All access happens on one event loop; a
multi-threaded host would need a lock around _store.
"""
import os
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

_MISS = object()


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while True:
        number, rem = divmod(number, 36)
        out = digits[rem] + out
        if number == 0:
            return out


def new_epoch() -> str:
    """Generation tag: start time in ms (base 36) plus a random suffix."""
    return f"{_base36(int(time.time() * 1000))}-{os.urandom(3).hex()}"


# Set once per process lifetime
PROCESS_EPOCH = new_epoch()


@dataclass
class CacheEntry:
    data: Any
    expiry: float
    version: str


class VersionedCache:
    """TTL cache whose entries are only valid for the epoch that wrote them."""

    def __init__(
        self,
        default_ttl: float = 300,
        epoch: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store: dict[str, CacheEntry] = {}
        self.default_ttl = default_ttl
        self.epoch = epoch or PROCESS_EPOCH
        self._clock = clock

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or default when missing, expired or from another epoch."""
        entry = self._store.get(key)
        if entry is None:
            return default
        if self._clock() >= entry.expiry or entry.version != self.epoch:
            del self._store[key]
            return default
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        """Store a value stamped with the current epoch."""
        ttl = self.default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(data=data, expiry=self._clock() + ttl, version=self.epoch)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> int:
        """Drop everything. Returns count removed."""
        count = len(self._store)
        self._store.clear()
        return count

    def invalidate(self, prefix: str) -> int:
        """Remove all keys starting with prefix. Returns count removed."""
        keys = [k for k in self._store if k.startswith(prefix)]
        for k in keys:
            del self._store[k]
        return len(keys)

    def size(self) -> int:
        return len(self._store)


async def cached(
    cache: VersionedCache,
    key: str,
    producer: Callable[[], Awaitable[T]],
    ttl: Optional[float] = None,
) -> T:
    """
    Read-through helper.

    Returns the cached value when valid, otherwise awaits producer() once and
    stores the result. A None result is passed through without being stored so
    an unavailable provider is asked again on the next request. Concurrent
    misses for one key each call the producer; requests are human-driven and
    low volume, so the duplicate work is accepted.
    """
    existing = cache.get(key, _MISS)
    if existing is not _MISS:
        return existing

    result = await producer()
    if result is not None:
        cache.set(key, result, ttl)
    return result
