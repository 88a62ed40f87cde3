"""Data models for A2UI Bridge."""

from .conversation import (
    ConversationMessage,
    GenerateUiRequest,
    ImagePart,
    TextPart,
    UiDefinition,
    UiEventPart,
    UiPart,
    WidgetEntry,
)
from .engine import (
    EngineMessage,
    GenerationChunk,
    GenerationResponse,
    MediaContent,
    TextContent,
    ToolRequestContent,
)

__all__ = [
    "ConversationMessage",
    "GenerateUiRequest",
    "ImagePart",
    "TextPart",
    "UiDefinition",
    "UiEventPart",
    "UiPart",
    "WidgetEntry",
    "EngineMessage",
    "GenerationChunk",
    "GenerationResponse",
    "MediaContent",
    "TextContent",
    "ToolRequestContent",
]
