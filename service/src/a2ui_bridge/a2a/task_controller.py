"""Task lifecycle management and cancellation support."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Optional

from .event_bus import ExecutionEventBus, TaskEventBus

if TYPE_CHECKING:
    from ..generator import MessageChannel

logger = logging.getLogger(__name__)


@dataclass
class TaskHandle:
    """State of one running task."""

    task_id: str
    bus: TaskEventBus
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    state: str = "working"
    created: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    channel: Optional["MessageChannel"] = None


class TaskController:
    """
    Manages running tasks and their cancellation.

    Each task has:
    - Unique task_id
    - Cancellation event checked between published events
    - Guarded event bus (single finished signal)
    - The generation channel, cancelled on request
    """

    def __init__(self):
        self._tasks: Dict[str, TaskHandle] = {}

    def create_task(self, task_id: str, event_bus: ExecutionEventBus) -> TaskHandle:
        handle = TaskHandle(task_id=task_id, bus=TaskEventBus(event_bus, task_id))
        self._tasks[task_id] = handle
        logger.info(f"Created task {task_id}")
        return handle

    def get(self, task_id: str) -> Optional[TaskHandle]:
        return self._tasks.get(task_id)

    async def cancel_task(self, task_id: str) -> bool:
        """
        Request cancellation of a running task.

        Returns:
            True if the task exists and cancellation was requested
        """
        handle = self._tasks.get(task_id)
        if handle is None:
            logger.warning(f"Cannot cancel task {task_id}: not found")
            return False

        handle.cancel_event.set()
        handle.state = "canceled"
        logger.info(f"Cancelled task {task_id}")

        await handle.bus.finished()
        if handle.channel is not None:
            await handle.channel.cancel()
        return True

    def get_state(self, task_id: str) -> Optional[str]:
        handle = self._tasks.get(task_id)
        return handle.state if handle else None

    def is_cancelled(self, task_id: str) -> bool:
        handle = self._tasks.get(task_id)
        return handle is not None and handle.cancel_event.is_set()

    def cleanup_task(self, task_id: str) -> None:
        """Remove task state after completion."""
        if self._tasks.pop(task_id, None) is not None:
            logger.info(f"Cleaned up task {task_id}")

    def list_active_tasks(self) -> Dict[str, dict]:
        return {
            task_id: {
                "state": handle.state,
                "created": handle.created.isoformat(),
                "cancelled": handle.cancel_event.is_set(),
            }
            for task_id, handle in self._tasks.items()
        }
