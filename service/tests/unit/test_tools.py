"""Unit tests for the surface tools."""

import pytest

from a2ui_bridge.schema_converter import convert_schema
from a2ui_bridge.tools import DELETE_SURFACE_TOOL, UPDATE_SURFACE_TOOL, build_surface_tools


@pytest.fixture
def tools(widget_catalog):
    return {tool.name: tool for tool in build_surface_tools(convert_schema(widget_catalog, name="Widget"))}


def test_two_tools_registered(tools):
    assert set(tools) == {UPDATE_SURFACE_TOOL, DELETE_SURFACE_TOOL}


def test_update_input_schema_shape(tools):
    schema = tools[UPDATE_SURFACE_TOOL].input_schema()

    assert schema["type"] == "object"
    assert set(schema["required"]) == {"surfaceId", "definition"}
    assert schema["properties"]["surfaceId"]["type"] == "string"


def test_delete_input_schema_shape(tools):
    schema = tools[DELETE_SURFACE_TOOL].input_schema()

    assert schema["required"] == ["surfaceId"]
    assert list(schema["properties"]) == ["surfaceId"]


@pytest.mark.asyncio
async def test_update_handler_acknowledges(tools):
    ack = await tools[UPDATE_SURFACE_TOOL].invoke({
        "surfaceId": "s1",
        "definition": {"root": "t", "widgets": [{"id": "t", "widget": {"type": "Text", "text": "hi"}}]},
    })

    assert ack == {"status": "updated"}


@pytest.mark.asyncio
async def test_delete_handler_acknowledges(tools):
    assert await tools[DELETE_SURFACE_TOOL].invoke({"surfaceId": "s1"}) == {"status": "deleted"}


@pytest.mark.asyncio
async def test_widget_outside_catalog_is_rejected(tools):
    ack = await tools[UPDATE_SURFACE_TOOL].invoke({
        "surfaceId": "s1",
        "definition": {"root": "t", "widgets": [{"id": "t", "widget": {"type": "Slider"}}]},
    })

    assert ack["status"] == "error"
    assert ack["detail"]


@pytest.mark.asyncio
async def test_missing_surface_id_is_rejected(tools):
    ack = await tools[DELETE_SURFACE_TOOL].invoke({})

    assert ack["status"] == "error"


@pytest.mark.asyncio
async def test_handlers_do_not_share_ack_state(tools):
    first = await tools[DELETE_SURFACE_TOOL].invoke({"surfaceId": "a"})
    first["status"] = "mutated"

    assert await tools[DELETE_SURFACE_TOOL].invoke({"surfaceId": "b"}) == {"status": "deleted"}
