"""Engine-facing message, chunk and response models."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class MediaContent(BaseModel):
    """Media reference; inline data is carried as a data: URL."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["media"] = "media"
    url: str
    content_type: Optional[str] = None


class ToolRequestContent(BaseModel):
    """A tool invocation, either replayed from history or emitted by the model."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["toolRequest"] = "toolRequest"
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    ref: Optional[str] = Field(None, description="Engine-assigned call id")


Content = Annotated[
    Union[TextContent, MediaContent, ToolRequestContent],
    Field(discriminator="kind"),
]


class EngineMessage(BaseModel):
    """Role/content message understood by a generation engine."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "model"]
    content: List[Content] = Field(default_factory=list)


class GenerationChunk(BaseModel):
    """One streamed piece of engine output."""

    text: str = ""
    tool_requests: List[ToolRequestContent] = Field(default_factory=list)


class GenerationResponse(BaseModel):
    """Aggregated result of a finished generation call."""

    text: str = ""
    stop_reason: Optional[str] = None
    tool_requests: List[ToolRequestContent] = Field(default_factory=list)
    usage: Dict[str, int] = Field(default_factory=dict)
