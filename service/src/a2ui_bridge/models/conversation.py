"""Client-facing request models: conversation, parts and UI definitions."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

# "agent" and "model" both denote the assistant side of the conversation
Role = Literal["user", "agent", "model"]


class WidgetEntry(BaseModel):
    """One widget of a surface, addressed by id."""

    id: str = Field(..., description="The unique ID for the widget.")
    widget: Any = Field(..., description="The widget definition.")


class UiDefinition(BaseModel):
    """Complete snapshot of one surface as the model proposed it."""

    root: str = Field(..., description="The ID of the root widget in the UI tree.")
    widgets: List[WidgetEntry] = Field(
        ..., description="A list of all the widget definitions for this UI surface."
    )


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image given by URL or inline base64 data."""

    type: Literal["image"] = "image"
    url: Optional[str] = Field(None, description="Direct image URL")
    base64: Optional[str] = Field(None, description="Base64-encoded image data")
    mimeType: Optional[str] = Field(None, description="Image MIME type")


class UiPart(BaseModel):
    """A previously rendered surface, replayed as a prior tool call."""

    type: Literal["ui"] = "ui"
    surfaceId: Optional[str] = Field(None, description="Surface the definition was rendered on")
    definition: UiDefinition


class UiEventPart(BaseModel):
    """A user interaction with a rendered surface."""

    type: Literal["uiEvent"] = "uiEvent"
    event: Any = Field(..., description="Arbitrary event payload from the client")


Part = Annotated[
    Union[TextPart, ImagePart, UiPart, UiEventPart],
    Field(discriminator="type"),
]


class ConversationMessage(BaseModel):
    """One turn of the client conversation."""

    role: Role
    parts: List[Part] = Field(default_factory=list)


class GenerateUiRequest(BaseModel):
    """Inbound generation request."""

    model_config = ConfigDict(populate_by_name=True)

    sessionId: Optional[str] = Field(None, description="Session with a cached catalog")
    catalog: Optional[Dict[str, Any]] = Field(
        None, description="Inline widget catalog (JSON Schema)"
    )
    conversation: List[ConversationMessage] = Field(default_factory=list)
