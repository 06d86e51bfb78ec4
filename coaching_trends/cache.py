"""TTL cache of analysis outcomes with at most one computation in flight per key."""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

from .config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    stored_at: float


class AnalysisCache:
    """Keyed, TTL-bounded outcome store.

    Identical concurrent requests share one in-flight task. A forced refresh
    cancels the in-flight task for its key and starts a new one; callers that
    were waiting on the cancelled task are handed the new one. Only the task
    currently registered for a key may write its result.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or settings.cache_max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, _Entry] = OrderedDict()
        self._in_flight: dict[Hashable, asyncio.Task] = {}
        self._waiters: dict[asyncio.Task, int] = {}
        self._successors: dict[asyncio.Task, asyncio.Task] = {}  # superseded -> replacement

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    def put(self, key: Hashable, value: Any) -> None:
        """Store value, overwriting any previous entry."""
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value, self._clock())
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full, evicted %s", evicted)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def get_or_compute(
        self,
        key: Hashable,
        factory: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
        cacheable: Callable[[Any], bool] = lambda value: True,
    ) -> Any:
        """Return the cached value for key, computing it with factory on a miss.

        Args:
            key: Cache key
            factory: Coroutine function producing the value
            force_refresh: Skip the cache and supersede any in-flight computation
            cacheable: Decides whether a computed value is stored
        """
        if force_refresh:
            superseded = self._in_flight.get(key)
            self.invalidate(key)
            task = self._start(key, factory, cacheable)
            if superseded is not None and not superseded.done():
                logger.info("Force refresh superseding in-flight computation for %s", key)
                self._successors[superseded] = task
                superseded.cancel()
        else:
            cached = self.get(key)
            if cached is not None:
                logger.info("Cache hit for %s", key)
                return cached
            task = self._in_flight.get(key)
            if task is None:
                task = self._start(key, factory, cacheable)
            else:
                logger.info("Joining in-flight computation for %s", key)

        return await self._wait(task)

    def _start(self, key, factory, cacheable) -> asyncio.Task:
        async def compute():
            value = await factory()
            if self._in_flight.get(key) is asyncio.current_task() and cacheable(value):
                self.put(key, value)
            return value

        task = asyncio.create_task(compute())
        self._in_flight[key] = task

        def clear(done: asyncio.Task) -> None:
            if self._in_flight.get(key) is done:
                del self._in_flight[key]
            if done not in self._waiters:
                self._successors.pop(done, None)

        task.add_done_callback(clear)
        return task

    async def _wait(self, task: asyncio.Task) -> Any:
        while True:
            current = task
            self._waiters[current] = self._waiters.get(current, 0) + 1
            try:
                return await asyncio.shield(current)
            except asyncio.CancelledError:
                successor = self._successors.get(current)
                if current.cancelled() and successor is not None:
                    task = successor
                    continue
                raise
            finally:
                self._release(current)

    def _release(self, task: asyncio.Task) -> None:
        remaining = self._waiters.get(task, 0) - 1
        if remaining > 0:
            self._waiters[task] = remaining
            return
        self._waiters.pop(task, None)
        if task.done():
            self._successors.pop(task, None)
        else:
            # Nobody is waiting any more
            task.cancel()
