# cache_utils.py - small bounded caches

from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, Iterator, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """
    OrderedDict backed cache with a hard size limit.

    Eviction is oldest-inserted-out: a hit does not refresh the entry, which keeps
    the eviction order equal to the insertion order.
    """

    def __init__(self, maxsize: int = 1000):
        self.maxsize = max(1, int(maxsize))
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        if key in self._data:
            self.hits += 1
            return self._data[key]
        self.misses += 1
        return default

    def put(self, key: K, value: V) -> None:
        if key in self._data:
            self._data[key] = value
            return
        self._data[key] = value
        while len(self._data) > self.maxsize:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)

    def items(self) -> Iterator[Tuple[K, V]]:
        return iter(self._data.items())

    def stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "size": len(self._data),
            "maxsize": self.maxsize,
            "hit_rate": (self.hits / total) if total else 0.0,
        }


def pair_key(a: str, b: str) -> Tuple[str, str]:
    """Unordered key for symmetric pair caches."""
    return (a, b) if a <= b else (b, a)

