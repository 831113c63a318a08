"""DedupCache — in-memory TTL map keyed by (subject, category).

Expiry is lazy on ``get`` so correctness never depends on when the sweeper
last ran; the periodic sweep only bounds memory. Key space is bounded by
subjects x categories, so there is no eviction beyond TTL.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from newswatch.pipeline.models import CachedAnalysis, CacheEntry, Category

logger = logging.getLogger(__name__)


class DedupCache:
    """Per-process dedup cache. Shared by every concurrent subject task."""

    def __init__(
        self,
        ttl_seconds: float,
        sweep_interval_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._entries: dict[tuple[str, Category], CacheEntry] = {}
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(subject: str, category: Category) -> tuple[str, Category]:
        return (subject, category)

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.created_at > self.ttl_seconds

    # ── core operations ────────────────────────────────────────────────

    def get(self, subject: str, category: Category) -> CachedAnalysis | None:
        key = self.key(subject, category)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._entries.pop(key, None)
            return None
        return entry.payload

    def set(self, subject: str, category: Category, payload: CachedAnalysis) -> None:
        key = self.key(subject, category)
        self._entries[key] = CacheEntry(key=key, created_at=self._clock(), payload=payload)

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        expired = [k for k, e in self._entries.items() if self._is_expired(e)]
        for k in expired:
            self._entries.pop(k, None)
        if expired:
            logger.debug("[cache] sweep removed %d expired entries, size=%d", len(expired), len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    # ── periodic sweep ─────────────────────────────────────────────────

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweeper on the running loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="dedup-cache-sweeper")
            logger.info("[cache] started (ttl=%.1fh)", self.ttl_seconds / 3600)

    async def shutdown(self) -> None:
        """Stop the sweeper and drop every entry."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()
        logger.info("[cache] shutdown complete")

    # ── stats ──────────────────────────────────────────────────────────

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "ttl_hours": self.ttl_seconds / 3600,
            "entries": [f"{s}:{c.value}" for s, c in self._entries],
        }
