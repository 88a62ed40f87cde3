"""Conversation normalization: client messages to engine messages."""

import json
import logging
from typing import Any, List, Optional, Sequence

from .models.conversation import (
    ConversationMessage,
    ImagePart,
    TextPart,
    UiEventPart,
    UiPart,
)
from .models.engine import (
    EngineMessage,
    MediaContent,
    TextContent,
    ToolRequestContent,
)
from .tools import UPDATE_SURFACE_TOOL

logger = logging.getLogger(__name__)

UI_EVENT_PREAMBLE = "The user interacted with the UI, resulting in the following events."


def format_ui_events(events: List[Any]) -> str:
    """Describe UI interaction events as text for the model."""
    return f"{UI_EVENT_PREAMBLE}\n\n{json.dumps(events, indent=2)}\n"


def normalize_image(part: ImagePart) -> Optional[MediaContent]:
    """
    Resolve an image part to a media reference.

    A direct URL wins; otherwise inline base64 plus MIME type becomes a
    data: URL. A part with neither yields None.
    """
    if part.url:
        return MediaContent(url=part.url, content_type=part.mimeType)
    if part.base64 and part.mimeType:
        data_url = f"data:{part.mimeType};base64,{part.base64}"
        return MediaContent(url=data_url, content_type=part.mimeType)
    return None


def normalize_message(message: ConversationMessage) -> EngineMessage:
    events: List[Any] = []
    content: list = []

    for part in message.parts:
        if isinstance(part, TextPart):
            content.append(TextContent(text=part.text))
        elif isinstance(part, ImagePart):
            media = normalize_image(part)
            if media is None:
                logger.debug("Dropping image part without url or base64 data")
            else:
                content.append(media)
        elif isinstance(part, UiPart):
            tool_input = {"definition": part.definition.model_dump(mode="json")}
            if part.surfaceId is not None:
                tool_input = {"surfaceId": part.surfaceId, **tool_input}
            content.append(ToolRequestContent(name=UPDATE_SURFACE_TOOL, input=tool_input))
        elif isinstance(part, UiEventPart):
            events.append(part.event)

    if events:
        content.append(TextContent(text=format_ui_events(events)))

    role = "user" if message.role == "user" else "model"
    return EngineMessage(role=role, content=content)


def normalize_conversation(messages: Sequence[ConversationMessage]) -> List[EngineMessage]:
    """
    Convert a client conversation into engine messages.

    Message order and roles are preserved one-to-one. Within a message all
    uiEvent parts collapse into a single trailing text part.
    """
    return [normalize_message(message) for message in messages]
