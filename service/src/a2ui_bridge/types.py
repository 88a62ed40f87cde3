"""Common type definitions for A2UI Bridge.

This module provides TypedDict definitions for the outward wire format
so that producers and consumers agree on its shape without Dict[str, Any].
"""

from typing import Any, Awaitable, Callable, Dict, List, TypedDict, Union


class SurfaceUpdateBody(TypedDict):
    """Components for one surface."""
    surfaceId: str
    components: List[Dict[str, Any]]


class BeginRenderingBody(TypedDict):
    """Root to start painting a surface from."""
    surfaceId: str
    root: str


class DeleteSurfaceBody(TypedDict):
    """Surface to remove."""
    surfaceId: str


class SurfaceUpdateMessage(TypedDict):
    surfaceUpdate: SurfaceUpdateBody


class BeginRenderingMessage(TypedDict):
    beginRendering: BeginRenderingBody


class DeleteSurfaceMessage(TypedDict):
    deleteSurface: DeleteSurfaceBody


class ToolRequestDict(TypedDict):
    """Raw tool request as emitted by the model."""
    name: str
    input: Dict[str, Any]


class ToolRequestsChunk(TypedDict):
    """Passthrough of a chunk's raw tool requests."""
    toolRequests: List[ToolRequestDict]


class TextChunk(TypedDict):
    """Passthrough of model text."""
    text: str


# Union of all possible outward protocol messages
OutwardMessage = Union[
    SurfaceUpdateMessage,
    BeginRenderingMessage,
    DeleteSurfaceMessage,
    ToolRequestsChunk,
    TextChunk,
]


class ToolAck(TypedDict, total=False):
    """Acknowledgment returned by a surface tool handler."""
    status: str
    detail: str


# Type alias for the push-style streaming callback
MessageCallback = Callable[[OutwardMessage], Awaitable[None]]

# Type alias for tool execution handlers
ToolHandler = Callable[[Dict[str, Any]], Awaitable[ToolAck]]


def surface_update(surface_id: str, components: List[Dict[str, Any]]) -> SurfaceUpdateMessage:
    return {"surfaceUpdate": {"surfaceId": surface_id, "components": components}}


def begin_rendering(surface_id: str, root: str) -> BeginRenderingMessage:
    return {"beginRendering": {"surfaceId": surface_id, "root": root}}


def delete_surface(surface_id: str) -> DeleteSurfaceMessage:
    return {"deleteSurface": {"surfaceId": surface_id}}
