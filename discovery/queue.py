"""
Serialized Mutation Queue

Single logical writer for the shared asset graph. Pipelines submit mutation
callables; one worker task runs them strictly one at a time and hands each
result (or exception) back to the submitter through a future.

Session termination is not checked here: mutation bodies are expected to look
at ``session.done`` themselves and return early.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

from discovery.errors import MutationCancelled, QueueClosed

logger = logging.getLogger(__name__)

Mutation = Callable[[], Union[Any, Awaitable[Any]]]

_STOP = object()


class MutationQueue:
    """Single-writer executor for graph mutations."""

    def __init__(self, name: str = "graph"):
        self.name = name
        self._queue: asyncio.Queue[Union[Tuple[Mutation, asyncio.Future], object]] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.executed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the writer task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._worker(), name=f"mutation-queue-{self.name}")
        logger.info(f"Mutation queue '{self.name}' started")

    async def stop(self):
        """Stop accepting work, drain what is queued, then end the writer."""
        if not self._running:
            return
        self._running = False
        await self._queue.put(_STOP)
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info(
            f"Mutation queue '{self.name}' stopped "
            f"(executed={self.executed}, failed={self.failed})"
        )

    async def submit(self, mutation: Mutation) -> Any:
        """Enqueue a mutation and wait until it has run.

        Returns the mutation's result. An exception raised by the mutation is
        re-raised here, in the submitter only.
        """
        if not self._running:
            raise QueueClosed(f"mutation queue '{self.name}' is not running")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._queue.put((mutation, future))
        return await future

    async def _worker(self):
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                mutation, future = item
                # Submitter went away before its turn: skip, never run twice
                if future.cancelled():
                    continue
                await self._execute(mutation, future)
            finally:
                self._queue.task_done()

    async def _execute(self, mutation: Mutation, future: asyncio.Future):
        try:
            result = mutation()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError as e:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                if not future.done():
                    future.cancel()
                raise
            # Cancellation from inside the mutation (e.g. an awaited operation
            # was cancelled): the writer keeps running.
            self.failed += 1
            logger.error(f"Mutation cancelled itself on queue '{self.name}': {e!r}")
            if not future.done():
                future.set_exception(MutationCancelled(f"mutation on queue '{self.name}' was cancelled"))
            return
        except Exception as e:
            self.failed += 1
            logger.error(f"Mutation failed on queue '{self.name}': {e}", exc_info=True)
            if not future.done():
                future.set_exception(e)
            return

        self.executed += 1
        if not future.done():
            future.set_result(result)

    def qsize(self) -> int:
        return self._queue.qsize()
