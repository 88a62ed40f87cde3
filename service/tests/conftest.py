"""Shared fixtures: scripted generation engines and catalogs."""

import asyncio
from typing import List, Optional, Sequence

import pytest

from a2ui_bridge.engines.base import GenerationEngine, GenerationStream
from a2ui_bridge.models.engine import (
    EngineMessage,
    GenerationChunk,
    GenerationResponse,
    ToolRequestContent,
)


class ScriptedStream(GenerationStream):
    """Replays a fixed chunk sequence, optionally failing at the end."""

    def __init__(self, chunks, text, error, delay, gate):
        self._chunks = list(chunks)
        self._text = text
        self._error = error
        self._delay = delay
        self._gate = gate
        self.emitted = 0

    def __aiter__(self):
        return self._run()

    async def _run(self):
        for chunk in self._chunks:
            if self._delay:
                await asyncio.sleep(self._delay)
            yield chunk
            self.emitted += 1
            if self._gate is not None:
                await self._gate.wait()
        if self._error is not None:
            raise self._error

    async def response(self) -> GenerationResponse:
        requests = [r for chunk in self._chunks for r in chunk.tool_requests]
        return GenerationResponse(text=self._text, stop_reason="end_turn", tool_requests=requests)


class ScriptedEngine(GenerationEngine):
    """
    Engine double that records its calls.

    ``gate``: an asyncio.Event awaited after every chunk, to hold the stream
    open mid-generation.
    """

    def __init__(
        self,
        chunks: Sequence[GenerationChunk] = (),
        text: str = "",
        error: Optional[Exception] = None,
        delay: float = 0.0,
        gate: Optional[asyncio.Event] = None,
    ):
        self.chunks = chunks
        self.text = text
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls: List[dict] = []
        self.streams: List[ScriptedStream] = []
        self.shutdown_called = False

    def generate_stream(self, messages: Sequence[EngineMessage], tools, system=None):
        self.calls.append({"messages": list(messages), "tools": tools, "system": system})
        stream = ScriptedStream(self.chunks, self.text, self.error, self.delay, self.gate)
        self.streams.append(stream)
        return stream

    async def shutdown(self) -> None:
        self.shutdown_called = True


def tool_chunk(*requests) -> GenerationChunk:
    """Chunk carrying ``(name, input)`` tool requests."""
    return GenerationChunk(
        tool_requests=[ToolRequestContent(name=name, input=data) for name, data in requests]
    )


def update_call(surface_id: str, root: str, widgets: list):
    return ("updateSurface", {"surfaceId": surface_id, "definition": {"root": root, "widgets": widgets}})


def delete_call(surface_id: str):
    return ("deleteSurface", {"surfaceId": surface_id})


@pytest.fixture
def engine_factory():
    """Build a ScriptedEngine."""
    return ScriptedEngine


@pytest.fixture
def chunks():
    """Helpers for building scripted chunks."""

    class Chunks:
        tool = staticmethod(tool_chunk)
        update = staticmethod(update_call)
        delete = staticmethod(delete_call)

        @staticmethod
        def text(value: str) -> GenerationChunk:
            return GenerationChunk(text=value)

    return Chunks


@pytest.fixture
def open_catalog():
    """Catalog accepting any widget object."""
    return {"type": "object", "properties": {}}


@pytest.fixture
def widget_catalog():
    """Catalog with a recursive widget union."""
    return {
        "$defs": {
            "Text": {
                "type": "object",
                "properties": {
                    "type": {"const": "Text"},
                    "text": {"type": "string"},
                },
                "required": ["type", "text"],
                "additionalProperties": False,
            },
            "Column": {
                "type": "object",
                "properties": {
                    "type": {"const": "Column"},
                    "children": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["type", "children"],
                "additionalProperties": False,
            },
        },
        "anyOf": [{"$ref": "#/$defs/Text"}, {"$ref": "#/$defs/Column"}],
    }
