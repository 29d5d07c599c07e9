from __future__ import annotations

import time
from typing import Any, Dict, Optional, Tuple

from .base import AsyncCacheBackend


class InMemoryAsyncCache(AsyncCacheBackend):
    """
    Process-local cache with per-entry TTL, for tests and single-worker runs.

    A balance cached here can be stale with respect to writes made by other
    workers, so callers keep TTLs short and never read it on a write path.
    """

    def __init__(self, default_ttl_seconds: int | None = None) -> None:
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._default_ttl = default_ttl_seconds

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline is not None and deadline < time.monotonic():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        deadline = time.monotonic() + ttl if ttl is not None else None
        self._entries[key] = (value, deadline)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)
