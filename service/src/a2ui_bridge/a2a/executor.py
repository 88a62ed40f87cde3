"""A2A agent executor: one task per request, one message per A2UI chunk."""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .event_bus import A2AEvent, ExecutionEventBus
from .task_controller import TaskController
from ..catalog_cache import Catalog
from ..generator import UiGenerator
from ..models.conversation import (
    ConversationMessage,
    GenerateUiRequest,
    TextPart,
    UiEventPart,
)
from ..types import OutwardMessage

logger = logging.getLogger(__name__)

# Catalog used when the caller names no session: any widget object
DEFAULT_CATALOG: Catalog = {"type": "object", "properties": {}}


class A2AMessage(BaseModel):
    """Inbound A2A message; parts are kept as raw dicts keyed by ``kind``."""

    messageId: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: str = "user"
    parts: List[Dict[str, Any]] = Field(default_factory=list)
    contextId: Optional[str] = None
    taskId: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RequestContext(BaseModel):
    task_id: str
    context_id: str
    message: A2AMessage


def agent_message(chunk: OutwardMessage, context_id: str, task_id: str) -> A2AEvent:
    """Wrap one outward A2UI message as an A2A agent message."""
    return {
        "kind": "message",
        "messageId": str(uuid.uuid4()),
        "role": "agent",
        "parts": [{"kind": "data", "data": {"a2uiMessages": [chunk]}}],
        "contextId": context_id,
        "referenceTaskIds": [task_id],
    }


class A2UIAgentExecutor:
    """
    Runs UI generation for A2A tasks.

    The finished signal is published exactly once per task, whether the
    generation completes, fails or is cancelled.
    """

    def __init__(
        self,
        generator: UiGenerator,
        default_catalog: Optional[Catalog] = None,
        task_controller: Optional[TaskController] = None,
    ):
        self.generator = generator
        self.default_catalog = default_catalog if default_catalog is not None else DEFAULT_CATALOG
        self.tasks = task_controller or TaskController()

    def build_request(self, message: A2AMessage) -> Optional[GenerateUiRequest]:
        """
        Build a generation request from an inbound message.

        Text parts are joined into the prompt. Data parts carrying a
        ``userAction`` become UI events. Returns None when there is nothing
        to generate from.
        """
        prompt = "\n".join(
            part.get("text", "") for part in message.parts if part.get("kind") == "text"
        )
        events = [
            part["data"]
            for part in message.parts
            if part.get("kind") == "data"
            and isinstance(part.get("data"), dict)
            and "userAction" in part["data"]
        ]
        if not prompt and not events:
            return None

        parts: List[Any] = []
        if prompt:
            parts.append(TextPart(text=prompt))
        parts.extend(UiEventPart(event=event) for event in events)

        session_id = message.metadata.get("sessionId")
        return GenerateUiRequest(
            sessionId=session_id,
            catalog=None if session_id else self.default_catalog,
            conversation=[ConversationMessage(role="user", parts=parts)],
        )

    async def execute(self, context: RequestContext, event_bus: ExecutionEventBus) -> str:
        """Run one task to its end and return its final state."""
        handle = self.tasks.create_task(context.task_id, event_bus)
        bus = handle.bus

        try:
            request = self.build_request(context.message)
            if request is None:
                logger.info(f"Task {context.task_id} has no prompt, finishing")
                handle.state = "completed"
                return handle.state

            handle.channel = self.generator.stream(request)
            async for chunk in handle.channel:
                if handle.cancel_event.is_set():
                    break
                await bus.publish(agent_message(chunk, context.context_id, context.task_id))

            if not handle.cancel_event.is_set():
                handle.state = "completed"
        except asyncio.CancelledError:
            logger.info(f"Task {context.task_id} cancelled")
            handle.state = "canceled"
            raise
        except Exception as e:
            handle.state = "failed"
            logger.error(f"Error executing generation for task {context.task_id}: {e}", exc_info=True)
        finally:
            await bus.finished()
            self.tasks.cleanup_task(context.task_id)

        return handle.state

    async def cancel_task(self, task_id: str, event_bus: ExecutionEventBus) -> None:
        logger.info(f"Cancellation requested for task: {task_id}")
        if not await self.tasks.cancel_task(task_id):
            await event_bus.finished()
