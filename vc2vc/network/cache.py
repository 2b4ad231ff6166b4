# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vc2vc/network/cache.py
from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, TypeVar

T = TypeVar("T")

_MISSING = object()


class ResolverCache:
    """
    Bounded LRU memo for uplink resolution.

    Owned by whoever drives a capture/restore and handed to the resolver;
    there is no module-level instance. Keys are tuples such as
    ("pnics", host_key) or ("uplinks", host_key, switch_uuid).
    """

    def __init__(self, max_entries: int = 256):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = int(max_entries)
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def get(self, key: Hashable, default: Any = None) -> Any:
        try:
            value = self._data[key]
        except KeyError:
            self.misses += 1
            return default
        self._data.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: Hashable, value: Any) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = compute()
            self.put(key, value)
        return value  # type: ignore[return-value]

    def evict(self, key: Hashable) -> bool:
        return self._data.pop(key, _MISSING) is not _MISSING

    def evict_host(self, host_key: Optional[str]) -> int:
        """Drop every entry whose key mentions host_key (after a mutation on that host)."""
        doomed = [k for k in self._data if isinstance(k, tuple) and host_key in k]
        for k in doomed:
            del self._data[k]
        return len(doomed)

    def clear(self) -> None:
        self._data.clear()
