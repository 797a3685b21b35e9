# qrkit/cache.py

"""
Bounded in-memory TTL cache used to memoise the classifier and the URL
risk engine. Instances are created by the caller and passed in; nothing in
the engines holds a cache of its own.
"""

from __future__ import annotations

import functools
import random
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple, TypeVar

T = TypeVar("T")

_MISSING = object()


class TTLCache:
    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 300.0,
        cleanup_probability: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.cleanup_probability = cleanup_probability
        self._clock = clock
        self._rng = rng
        self._lock = threading.Lock()
        # key -> (stored_at, value), oldest insertion first
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def get(self, key: Hashable, default: Any = None) -> Any:
        now = self._clock()
        with self._lock:
            # lightweight expiry sweep
            if self._rng() < self.cleanup_probability:
                self._sweep(now)

            entry = self._entries.get(key)
            if entry is None:
                return default

            stored_at, value = entry
            if now - stored_at > self.ttl_seconds:
                del self._entries[key]
                return default
            return value

    def set(self, key: Hashable, value: Any) -> None:
        now = self._clock()
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (now, value)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock:
            return self._sweep(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep(self, now: float) -> int:
        expired = [
            key
            for key, (stored_at, _) in self._entries.items()
            if now - stored_at > self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)


def _default_key(value: Any) -> Optional[Hashable]:
    if isinstance(value, str):
        return value.strip()
    return None


def cached(
    func: Callable[[Any], T],
    cache: TTLCache,
    key: Callable[[Any], Optional[Hashable]] = _default_key,
) -> Callable[[Any], T]:
    """
    Wrap a single-argument engine with cache lookups.

    The key function returns None for inputs that should bypass the cache
    (non-strings by default); those go straight to func.
    """

    @functools.wraps(func)
    def wrapper(value: Any) -> T:
        cache_key = key(value)
        if cache_key is None:
            return func(value)

        hit = cache.get(cache_key, _MISSING)
        if hit is not _MISSING:
            return hit

        result = func(value)
        cache.set(cache_key, result)
        return result

    wrapper.cache = cache  # type: ignore[attr-defined]
    return wrapper
