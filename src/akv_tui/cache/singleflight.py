"""
Single-flight request collapsing.

At most one in-flight operation exists per key. Callers that arrive
while it runs await the same task and observe the same result or the
same exception.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from functools import partial
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlight(Generic[K, V]):
    """Keyed registry of pending fetches.

    The bookkeeping map is guarded by an ``asyncio.Lock``; the work
    itself runs outside the critical section as a shared task. A caller
    being cancelled does not cancel the shared task, so the other
    callers still get their result.
    """

    def __init__(self, name: str = "singleflight"):
        self.name = name
        self._pending: dict[K, asyncio.Task[V]] = {}
        self._lock = asyncio.Lock()

    async def do(self, key: K, fn: Callable[[], Awaitable[V]]) -> V:
        """
        Run ``fn`` for ``key`` unless a run is already in flight.

        Args:
            key: Resource identity, e.g. ``("secrets", vault_uri)``.
            fn: Zero-argument coroutine function performing the fetch.

        Returns:
            The result of the (possibly shared) run.
        """
        async with self._lock:
            task = self._pending.get(key)
            if task is None:
                task = asyncio.ensure_future(fn())
                self._pending[key] = task
                task.add_done_callback(partial(self._forget, key))
                logger.debug(f"[{self.name}] started fetch for {key!r}")
            else:
                logger.debug(f"[{self.name}] joined in-flight fetch for {key!r}")

        return await asyncio.shield(task)

    def in_flight(self, key: K) -> bool:
        """Check whether a fetch for ``key`` is currently pending."""
        task = self._pending.get(key)
        return task is not None and not task.done()

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._pending.values() if not task.done())

    def _forget(self, key: K, task: "asyncio.Task[V]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Callers receive the exception through shield(); mark it retrieved
        # so a run nobody awaited anymore does not warn at shutdown.
        if not task.cancelled():
            task.exception()
