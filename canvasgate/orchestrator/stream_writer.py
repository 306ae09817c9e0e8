"""Ordered, bounded persistence of partial stream output.

At most one write is in flight and at most one is pending. When a newer
snapshot arrives while a write is in flight it replaces the pending one, so
a slow store makes intermediate writes get skipped instead of piling up.
Snapshots are applied in arrival order. The caller performs the final
write itself once ``aclose`` has drained the queue.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from canvasgate.observability.logging import get_logger

logger = get_logger(__name__)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class StreamPersistence:
    def __init__(
        self,
        write: Callable[[str], Awaitable[object]],
        min_chunks: int = 5,
        interval_ms: int = 500,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        self._write = write
        self.min_chunks = max(1, min_chunks)
        self.interval_ms = interval_ms
        self.clock = clock
        self._pending: Optional[str] = None
        self._wakeup = asyncio.Event()
        self._closed = False
        self._worker: Optional[asyncio.Task] = None
        self._chunks_since_flush = 0
        self._last_flush = clock()
        self.writes = 0
        self.skipped = 0

    def offer(self, text: str) -> bool:
        """Record one received chunk; schedule a write when one is due.

        Returns True if a snapshot was queued.
        """
        if self._closed:
            return False
        self._chunks_since_flush += 1
        now = self.clock()
        due = self._chunks_since_flush >= self.min_chunks or now - self._last_flush >= self.interval_ms
        if not due:
            return False

        self._chunks_since_flush = 0
        self._last_flush = now
        if self._pending is not None:
            self.skipped += 1
        self._pending = text
        self._wakeup.set()
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())
        return True

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            text, self._pending = self._pending, None
            if text is not None:
                await self._safe_write(text)
            if self._closed and self._pending is None:
                return

    async def _safe_write(self, text: str) -> None:
        try:
            await self._write(text)
            self.writes += 1
        except Exception as exc:
            # Partial writes are best-effort; the stream keeps going.
            logger.warning("stream_persist_failed", error=str(exc))

    async def aclose(self) -> None:
        """Let the in-flight write finish and drop any pending snapshot."""
        self._closed = True
        if self._pending is not None:
            self.skipped += 1
            self._pending = None
        if self._worker is not None:
            self._wakeup.set()
            # A cancelled caller leaves the worker running for a later aclose.
            await asyncio.shield(self._worker)
            self._worker = None
