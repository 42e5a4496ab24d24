# -*- coding: utf-8 -*-
"""
Short-lived read cache for access resolutions.

Keys are tuples whose first element names the namespace and whose remaining
elements carry the user id and company id, e.g. ``("perm", user_id, key,
company_id)`` or ``("snapshot", user_id, company_id)``. Entries are independent;
invalidation removes every entry that mentions a user or a company.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Hashable, NamedTuple, Optional, Tuple

from cachetools import TLRUCache

_MISSING = object()


class _Entry(NamedTuple):
    value: Any
    lifetime: float


def _time_to_use(key, entry: _Entry, now: float) -> float:
    return now + entry.lifetime


class AccessCache:
    def __init__(self, ttl_seconds: float = 300.0, max_entries: int = 4096,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = max(1, int(max_entries))
        self._lock = threading.Lock()
        self._entries = TLRUCache(maxsize=self.max_entries, ttu=_time_to_use, timer=clock)

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def get(self, key: Tuple[Hashable, ...], default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key, _MISSING)
        if entry is _MISSING:
            return default
        return entry.value

    def set(self, key: Tuple[Hashable, ...], value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self.ttl_seconds if ttl is None else float(ttl)
        with self._lock:
            if lifetime <= 0:
                self._entries.pop(key, None)
                return
            self._entries[key] = _Entry(value, lifetime)

    def get_or_load(self, key: Tuple[Hashable, ...], loader: Callable[[], Any],
                    ttl: Optional[float] = None) -> Any:
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        self.set(key, value, ttl=ttl)
        return value

    def delete(self, key: Tuple[Hashable, ...]) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_user(self, user_id: Any) -> int:
        return self._drop(lambda key: len(key) > 1 and key[1] == user_id)

    def invalidate_company(self, company_id: Any) -> int:
        return self._drop(lambda key: len(key) > 2 and key[-1] == company_id)

    def invalidate_namespace(self, namespace: str) -> int:
        return self._drop(lambda key: key and key[0] == namespace)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _drop(self, predicate: Callable[[Tuple[Hashable, ...]], bool]) -> int:
        with self._lock:
            self._entries.expire()
            doomed = [key for key in list(self._entries.keys()) if predicate(key)]
            for key in doomed:
                self._entries.pop(key, None)
            return len(doomed)
