# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Process-wide memoisation with a resolve-exactly-once guarantee.

Snapshots and per-platform package sets are expensive to produce and must be
referentially stable: every caller asking for the same key observes the same
object. :class:`OnceCache` is an append-only map where the first caller for a
key runs the factory while concurrent callers for that key wait on a per-key
lock. Factories that raise leave no entry behind so a later call may retry.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterator
from dataclasses import dataclass
from threading import Lock
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class CacheInfo:
    """Describe cache state metadata.

    Attributes:
        current_size: Number of cached entries currently stored.
        hits: Number of lookups answered from the cache.
        misses: Number of factory invocations.
    """

    current_size: int
    hits: int
    misses: int


class OnceCache(Generic[K, V]):
    """Append-only cache running each factory at most once per key."""

    def __init__(self) -> None:
        self._store: dict[K, V] = {}
        self._key_locks: dict[K, Lock] = {}
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get_or_create(self, key: K, factory: Callable[[], V]) -> V:
        """Return the value cached for ``key`` creating it with ``factory`` once.

        Args:
            key: Stable identity of the cached value.
            factory: Zero-argument callable producing the value on a miss.

        Returns:
            V: The cached or freshly created value.
        """

        with self._lock:
            if key in self._store:
                self._hits += 1
                return self._store[key]
            key_lock = self._key_locks.setdefault(key, Lock())
        with key_lock:
            with self._lock:
                if key in self._store:
                    self._hits += 1
                    return self._store[key]
                self._misses += 1
            value = factory()
            with self._lock:
                self._store[key] = value
        return value

    def cache_metadata(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(current_size=len(self._store), hits=self._hits, misses=self._misses)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __iter__(self) -> Iterator[K]:
        with self._lock:
            return iter(tuple(self._store))


__all__ = ["CacheInfo", "OnceCache"]
