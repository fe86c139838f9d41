"""
First-observed, first-delivered queue for asynchronously fetched items.

Items are observed in one order but their fetches complete in another. Each
observation enqueues a MutationTask whose fetch is already running; a single
drain loop only ever looks at the head, waits for its fetch to settle, and
delivers (or logs the failure) before moving on. At most one result is
delivered at a time, strictly in observation order.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import logging
logger = logging.getLogger(__name__)


@dataclass
class MutationTask:
    """One observed insertion waiting for its content."""

    node_id: int
    parent_node_id: Optional[int]
    previous_node_id: Optional[int]
    fetch: Awaitable[Any]


class OrderedDeliveryQueue:
    """
    Args:
        deliver: Called with (task, fetch result) for each successful fetch,
            in observation order; may be a coroutine function
    """

    def __init__(self, deliver: Callable[[MutationTask, Any], Any]):
        self._deliver = deliver
        self._tasks: deque[MutationTask] = deque()
        self._drainer: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._tasks)

    def push(self, task: MutationTask) -> None:
        """Append a task at the tail and make sure the drain loop is running."""
        task.fetch = asyncio.ensure_future(task.fetch)
        self._tasks.append(task)
        if self._drainer is None or self._drainer.done():
            self._drainer = asyncio.ensure_future(self._drain())

    async def _drain(self) -> None:
        while self._tasks:
            task = self._tasks[0]
            await asyncio.wait([task.fetch])
            self._tasks.popleft()

            fetch = task.fetch
            if fetch.cancelled():
                logger.debug(f"fetch for node {task.node_id} was cancelled")
                continue
            if fetch.exception() is not None:
                logger.debug(f"failed to retrieve content for node {task.node_id}: {fetch.exception()!r}")
                continue

            try:
                result = self._deliver(task, fetch.result())
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(f"delivery of node {task.node_id} failed")

    async def join(self) -> None:
        """Wait until everything queued so far has been delivered."""
        while self._drainer is not None and not self._drainer.done():
            drainer = self._drainer
            try:
                await asyncio.shield(drainer)
            except asyncio.CancelledError:
                # clear() stopped the drain loop; only our own cancellation propagates
                if not drainer.cancelled():
                    raise

    def clear(self) -> None:
        """Drop every pending task and stop the drain loop."""
        if self._drainer is not None:
            self._drainer.cancel()
            self._drainer = None
        while self._tasks:
            self._tasks.popleft().fetch.cancel()


__all__ = [
    "MutationTask",
    "OrderedDeliveryQueue",
]
