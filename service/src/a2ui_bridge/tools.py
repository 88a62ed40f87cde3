"""Surface tools offered to the model.

The handlers only acknowledge. The outward protocol messages are produced
by the translator from the tool requests as they appear in the stream, so
nothing here depends on handler completion.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError

from .schema_converter import ConvertedSchema, compose_object
from .types import ToolAck, ToolHandler

logger = logging.getLogger(__name__)

UPDATE_SURFACE_TOOL = "updateSurface"
DELETE_SURFACE_TOOL = "deleteSurface"


@dataclass
class ToolDefinition:
    """A tool the generation engine may let the model call."""

    name: str
    description: str
    input: ConvertedSchema
    ack: ToolAck
    handler: Optional[ToolHandler] = field(default=None, repr=False)

    def input_schema(self) -> Dict[str, Any]:
        """JSON Schema of the tool input, as sent to the engine."""
        return self.input.json_schema()

    async def invoke(self, arguments: Dict[str, Any]) -> ToolAck:
        """
        Run the tool for the engine's function-calling loop.

        Invalid input is answered with an error acknowledgment so the model
        can correct its call.
        """
        try:
            self.input.validate(arguments)
        except ValidationError as e:
            logger.warning(f"Rejected {self.name} call with invalid input: {e.error_count()} error(s)")
            return {"status": "error", "detail": str(e)}

        if self.handler is not None:
            return await self.handler(arguments)
        return dict(self.ack)  # type: ignore[return-value]


def _acknowledge(tool_name: str, ack: ToolAck) -> ToolHandler:
    async def handler(arguments: Dict[str, Any]) -> ToolAck:
        logger.debug(f"Received {tool_name} call for surface {arguments.get('surfaceId')}")
        return dict(ack)  # type: ignore[return-value]

    return handler


def build_update_surface_input(widget_schema: ConvertedSchema) -> ConvertedSchema:
    """Input schema ``{surfaceId, definition: {root, widgets: [{id, widget}]}}``."""
    widget_entry = compose_object(
        "WidgetEntry",
        {
            "id": (str, Field(..., description="The unique ID for the widget.")),
            "widget": (
                widget_schema.annotation,
                Field(..., description="The widget definition."),
            ),
        },
    )
    definition = compose_object(
        "UiDefinition",
        {
            "root": (str, Field(..., description="The ID of the root widget in the UI tree.")),
            "widgets": (
                List[widget_entry.annotation],
                Field(..., description="A list of all the widget definitions for this UI surface."),
            ),
        },
        description="A JSON object that defines the UI surface.",
    )
    return compose_object(
        "UpdateSurfaceInput",
        {
            "surfaceId": (str, Field(..., description="The unique ID for the UI surface.")),
            "definition": (
                definition.annotation,
                Field(..., description="A JSON object that defines the UI surface."),
            ),
        },
    )


def build_delete_surface_input() -> ConvertedSchema:
    return compose_object(
        "DeleteSurfaceInput",
        {"surfaceId": (str, Field(..., description="The unique ID for the UI surface."))},
    )


def build_surface_tools(widget_schema: ConvertedSchema) -> List[ToolDefinition]:
    """Create the update and delete surface tools for one request."""
    updated: ToolAck = {"status": "updated"}
    deleted: ToolAck = {"status": "deleted"}

    return [
        ToolDefinition(
            name=UPDATE_SURFACE_TOOL,
            description=(
                "Add or update a UI surface. Every widget in 'definition' must "
                "conform to the widget catalog."
            ),
            input=build_update_surface_input(widget_schema),
            ack=updated,
            handler=_acknowledge(UPDATE_SURFACE_TOOL, updated),
        ),
        ToolDefinition(
            name=DELETE_SURFACE_TOOL,
            description="Delete a UI surface.",
            input=build_delete_surface_input(),
            ack=deleted,
            handler=_acknowledge(DELETE_SURFACE_TOOL, deleted),
        ),
    ]
