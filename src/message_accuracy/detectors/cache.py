"""In-memory TTL cache shared by the detector adapters."""

import asyncio
import hashlib
import time
from typing import Any

import structlog

logger = structlog.get_logger()


def cache_key(namespace: str, text: str) -> str:
    """Namespaced SHA-256 key for a piece of text."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class TTLCache:
    """Async-safe key/value cache with per-entry expiry.

    Args:
        ttl_seconds: Default lifetime of an entry.
        max_entries: Oldest entries are evicted beyond this size.
    """

    def __init__(self, ttl_seconds: float = 3600, max_entries: int = 2048):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at < time.monotonic():
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        async with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)
            while len(self._entries) > self.max_entries:
                self._entries.pop(next(iter(self._entries)))

    async def lookup(self, key: str) -> Any | None:
        """Like ``get`` but logs and returns None on failure."""
        try:
            return await self.get(key)
        except Exception:
            logger.exception("cache_read_failed", key=key)
            return None

    async def _safe_set(self, key: str, value: Any, ttl_seconds: float | None) -> None:
        try:
            await self.set(key, value, ttl_seconds)
        except Exception:
            logger.exception("cache_write_failed", key=key)

    def set_background(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Schedule a write without waiting for it."""
        task = asyncio.create_task(self._safe_set(key, value, ttl_seconds))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for scheduled writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._entries)
