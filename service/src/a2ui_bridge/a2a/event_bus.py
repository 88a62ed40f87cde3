"""Event buses the agent executor publishes task events to."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict

logger = logging.getLogger(__name__)

A2AEvent = Dict[str, Any]


class ExecutionEventBus(ABC):
    """Sink for one task's events, terminated by ``finished``."""

    @abstractmethod
    async def publish(self, event: A2AEvent) -> None:
        pass

    @abstractmethod
    async def finished(self) -> None:
        pass


class QueueEventBus(ExecutionEventBus):
    """In-memory bus read back by the HTTP transport."""

    _DONE = object()

    def __init__(self):
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self.is_finished = False

    async def publish(self, event: A2AEvent) -> None:
        await self._queue.put(event)

    async def finished(self) -> None:
        self.is_finished = True
        await self._queue.put(self._DONE)

    async def events(self) -> AsyncIterator[A2AEvent]:
        """Yield published events until the bus is finished."""
        while True:
            item = await self._queue.get()
            if item is self._DONE:
                return
            yield item


class TaskEventBus(ExecutionEventBus):
    """
    Guard around a task's bus.

    ``finished`` reaches the wrapped bus exactly once, and events published
    after it are dropped.
    """

    def __init__(self, bus: ExecutionEventBus, task_id: str):
        self._bus = bus
        self.task_id = task_id
        self._finished = False
        self._lock = asyncio.Lock()

    @property
    def is_finished(self) -> bool:
        return self._finished

    async def publish(self, event: A2AEvent) -> None:
        if self._finished:
            logger.debug(f"Dropping event for finished task {self.task_id}")
            return
        await self._bus.publish(event)

    async def finished(self) -> None:
        async with self._lock:
            if self._finished:
                return
            self._finished = True
        await self._bus.finished()
        logger.info(f"Task {self.task_id} finished")
