"""Per-chat FIFO execution of browser operations."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections import deque
from typing import Any, Awaitable, Callable

from .errors import SessionNotFoundError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

Operation = Callable[[], Awaitable[Any]]


class RequestSerializer:
    """Runs operations one at a time per key, in arrival order.

    Each key gets its own queue drained by a single consumer task, so
    operations on different keys interleave freely while operations on the
    same key never overlap. The consumer exits once its queue is empty.
    """

    def __init__(self):
        self._queues: dict[str, deque[tuple[Operation, asyncio.Future]]] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._queues

    def pending(self, key: str) -> int:
        queue = self._queues.get(key)
        return len(queue) if queue else 0

    def enqueue(self, key: str, operation: Operation) -> asyncio.Future:
        """Queue ``operation`` behind everything already queued for ``key``.

        The returned future resolves with the operation's result. Cancelling
        it does not stop the operation from running.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queues.setdefault(key, deque()).append((operation, future))
        if key not in self._workers:
            self._workers[key] = loop.create_task(self._drain(key))
        return future

    async def _drain(self, key: str):
        try:
            while True:
                queue = self._queues.get(key)
                if not queue:
                    break
                operation, future = queue.popleft()
                try:
                    result = await operation()
                except Exception as e:
                    if not future.done():
                        future.set_exception(e)
                    else:
                        logger.warning(f"Operation for {key} failed after its caller left: {e}")
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            if self._workers.get(key) is asyncio.current_task():
                del self._workers[key]
            if key in self._queues and not self._queues[key]:
                del self._queues[key]

    def discard(self, key: str):
        """Forget ``key``'s queue; operations not yet started fail with SessionNotFoundError."""
        queue = self._queues.pop(key, None)
        if not queue:
            return
        dropped = 0
        while queue:
            _, future = queue.popleft()
            if not future.done():
                future.set_exception(SessionNotFoundError(key))
            dropped += 1
        logger.info(f"Discarded {dropped} pending operations for {key}")

    def clear(self):
        for key in list(self._queues):
            self.discard(key)
