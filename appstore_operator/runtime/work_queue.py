"""De-duplicating work queue for reconcile keys."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable

logger = logging.getLogger(__name__)


class WorkQueue:
    """Asyncio queue of keys with controller-style semantics.

    A key is queued at most once. A key being processed is never handed
    to a second worker; re-adding it while in flight marks it dirty and it
    is queued again when ``done`` is called. Must be used from the event
    loop thread.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Hashable] = asyncio.Queue()
        self._queued: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._dirty: set[Hashable] = set()
        self._timers: dict[Hashable, asyncio.TimerHandle] = {}

    def add(self, key: Hashable) -> None:
        if key in self._queued:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def add_after(self, key: Hashable, delay: float) -> None:
        """Queue ``key`` after ``delay`` seconds, replacing an earlier timer for it."""
        if delay <= 0:
            self.add(key)
            return
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)

    def _fire(self, key: Hashable) -> None:
        self._timers.pop(key, None)
        self.add(key)

    async def get(self) -> Hashable:
        """Wait for the next key and mark it in flight."""
        key = await self._queue.get()
        self._queued.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: Hashable) -> None:
        """Finish processing ``key``; requeue it if it was re-added meanwhile."""
        self._processing.discard(key)
        self._queue.task_done()
        if key in self._dirty:
            self._dirty.discard(key)
            self.add(key)

    def shutdown(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def pending_timers(self) -> int:
        return len(self._timers)

    def is_processing(self, key: Hashable) -> bool:
        return key in self._processing

    def __len__(self) -> int:
        return self._queue.qsize()
