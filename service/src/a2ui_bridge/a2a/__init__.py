"""A2A transport adapter."""

from .agent_card import A2UI_EXTENSION_URI, build_agent_card
from .event_bus import ExecutionEventBus, QueueEventBus, TaskEventBus
from .executor import A2AMessage, A2UIAgentExecutor, RequestContext, agent_message
from .task_controller import TaskController, TaskHandle

__all__ = [
    "A2UI_EXTENSION_URI",
    "build_agent_card",
    "ExecutionEventBus",
    "QueueEventBus",
    "TaskEventBus",
    "A2AMessage",
    "A2UIAgentExecutor",
    "RequestContext",
    "agent_message",
    "TaskController",
    "TaskHandle",
]
