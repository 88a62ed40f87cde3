"""UI generation: drives the engine and translates its stream into A2UI messages."""

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import ValidationError

from .catalog_cache import Catalog, CatalogCache
from .engines.base import GenerationEngine
from .exceptions import (
    InvalidSessionError,
    MalformedPartError,
    MissingCatalogError,
)
from .logging_config import is_debug
from .models.conversation import GenerateUiRequest
from .models.engine import EngineMessage, GenerationChunk, GenerationResponse
from .normalizer import normalize_conversation
from .prompts import build_system_prompt
from .schema_converter import DEFAULT_MAX_DEPTH, ConvertedSchema, convert_schema
from .tools import DELETE_SURFACE_TOOL, UPDATE_SURFACE_TOOL, ToolDefinition, build_surface_tools
from .types import (
    MessageCallback,
    OutwardMessage,
    begin_rendering,
    delete_surface,
    surface_update,
)

logger = logging.getLogger(__name__)

TranslationMode = Literal["a2ui", "passthrough"]


class ChunkTranslator:
    """
    Maps engine chunks to outward protocol messages.

    Stateless across chunks: the output for a sequence of tool requests does
    not depend on how the engine grouped them into chunks.
    """

    def __init__(
        self,
        tools: List[ToolDefinition],
        mode: TranslationMode = "a2ui",
    ):
        self.mode = mode
        self._inputs: Dict[str, ConvertedSchema] = {tool.name: tool.input for tool in tools}

    def _is_valid(self, name: str, tool_input: Dict[str, Any]) -> bool:
        schema = self._inputs.get(name)
        if schema is None:
            return True
        try:
            schema.validate(tool_input)
        except ValidationError as e:
            logger.warning(f"Skipping {name} call with invalid input: {e.error_count()} error(s)")
            return False
        return True

    def translate(self, chunk: GenerationChunk) -> List[OutwardMessage]:
        if self.mode == "passthrough":
            return self._passthrough(chunk)

        if chunk.text and not chunk.tool_requests:
            logger.debug("Dropping text chunk (not part of the A2UI protocol)")

        messages: List[OutwardMessage] = []
        for request in chunk.tool_requests:
            if request.name == UPDATE_SURFACE_TOOL:
                if not self._is_valid(request.name, request.input):
                    continue
                surface_id = request.input["surfaceId"]
                definition = request.input["definition"]
                messages.append(surface_update(surface_id, definition["widgets"]))
                messages.append(begin_rendering(surface_id, definition["root"]))
            elif request.name == DELETE_SURFACE_TOOL:
                if not self._is_valid(request.name, request.input):
                    continue
                messages.append(delete_surface(request.input["surfaceId"]))
            else:
                logger.warning(f"Ignoring request for unknown tool: {request.name}")
        return messages

    def _passthrough(self, chunk: GenerationChunk) -> List[OutwardMessage]:
        messages: List[OutwardMessage] = []
        if chunk.text:
            messages.append({"text": chunk.text})
        if chunk.tool_requests:
            messages.append({
                "toolRequests": [
                    {"name": request.name, "input": request.input}
                    for request in chunk.tool_requests
                ]
            })
        return messages


@dataclass
class PreparedRequest:
    """A request whose catalog, tools and messages are resolved."""

    session_id: Optional[str]
    catalog: Catalog
    system: Optional[str]
    messages: List[EngineMessage]
    tools: List[ToolDefinition]


_CLOSED = object()


class MessageChannel:
    """
    Pull-style view of one generation call.

    Iterating starts the generation in a background task and yields outward
    messages in production order. The iteration ends when generation
    completes, re-raises its error, and cancels it when the consumer stops
    early. ``response`` is set after a completed iteration.
    """

    def __init__(self, run: Callable[[MessageCallback], Awaitable[GenerationResponse]]):
        self._run = run
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._task: Optional["asyncio.Task[GenerationResponse]"] = None
        self._stopped = False
        self.response: Optional[GenerationResponse] = None

    async def _push(self, message: OutwardMessage) -> None:
        if not self._stopped:
            await self._queue.put(message)

    def __aiter__(self) -> AsyncIterator[OutwardMessage]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[OutwardMessage]:
        if self._task is not None:
            raise RuntimeError("Message channel can only be iterated once")

        self._task = asyncio.create_task(self._run(self._push))
        self._task.add_done_callback(lambda _: self._queue.put_nowait(_CLOSED))
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSED or self._stopped:
                    break
                yield item

            if self._stopped and self._task.cancelled():
                return
            self.response = await self._task
        finally:
            await self._cancel_task()

    async def _cancel_task(self) -> None:
        task = self._task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def cancel(self) -> None:
        """Stop generation; the iteration ends without raising."""
        self._stopped = True
        await self._cancel_task()


class UiGenerator:
    """
    Turns a conversation plus widget catalog into an A2UI message stream.

    Features:
    - Catalog from the request or from the session cache
    - One engine call per request, no retries
    - Tool calls translated in stream order (a2ui or passthrough mode)
    - Final model text suppressed or forwarded per configuration
    """

    def __init__(
        self,
        engine: GenerationEngine,
        catalog_cache: Optional[CatalogCache] = None,
        translation_mode: TranslationMode = "a2ui",
        forward_final_text: bool = False,
        include_catalog_in_prompt: bool = True,
        schema_max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.engine = engine
        self.catalog_cache = catalog_cache
        self.translation_mode = translation_mode
        self.forward_final_text = forward_final_text
        self.include_catalog_in_prompt = include_catalog_in_prompt
        self.schema_max_depth = schema_max_depth

    async def resolve_catalog(self, request: GenerateUiRequest) -> Catalog:
        """Inline catalog wins; otherwise look the session up in the cache."""
        if request.catalog is not None:
            return request.catalog

        if request.sessionId is None:
            logger.error("No catalog provided in the request")
            raise MissingCatalogError("No catalog provided in the request")

        catalog = None
        if self.catalog_cache is not None:
            catalog = await self.catalog_cache.get(request.sessionId)
        if catalog is None:
            logger.warning(f"No catalog found for session {request.sessionId}")
            raise InvalidSessionError(request.sessionId)

        logger.debug(f"Retrieved catalog for session {request.sessionId}")
        return catalog

    async def prepare(self, request: Union[GenerateUiRequest, Dict[str, Any]]) -> PreparedRequest:
        """
        Resolve everything the engine call needs.

        Raises:
            InputError: Missing catalog, unknown session or malformed request
            UnsupportedSchemaError: The catalog cannot be converted
        """
        if not isinstance(request, GenerateUiRequest):
            try:
                request = GenerateUiRequest.model_validate(request)
            except ValidationError as e:
                raise MalformedPartError("Malformed generation request", detail=str(e)) from e

        catalog = await self.resolve_catalog(request)
        widget_schema = convert_schema(catalog, name="Widget", max_depth=self.schema_max_depth)
        tools = build_surface_tools(widget_schema)
        system = build_system_prompt(catalog if self.include_catalog_in_prompt else None)

        return PreparedRequest(
            session_id=request.sessionId,
            catalog=catalog,
            system=system,
            messages=normalize_conversation(request.conversation),
            tools=tools,
        )

    async def run(self, prepared: PreparedRequest, on_message: MessageCallback) -> GenerationResponse:
        """
        Run one engine call, pushing outward messages as they are produced.

        Errors from the engine or the callback are logged and re-raised.
        """
        translator = ChunkTranslator(prepared.tools, mode=self.translation_mode)
        logger.info(
            f"Starting generation (session={prepared.session_id}, "
            f"messages={len(prepared.messages)}, mode={self.translation_mode})"
        )

        try:
            stream = self.engine.generate_stream(
                prepared.messages, prepared.tools, system=prepared.system
            )
            async for chunk in stream:
                if is_debug(logger):
                    logger.debug(f"Chunk from engine: {chunk.model_dump_json()[:200]}")
                for message in translator.translate(chunk):
                    await on_message(message)

            response = await stream.response()

            if response.text:
                if self.forward_final_text:
                    await on_message({"text": response.text})
                else:
                    logger.info("Skipping final text response, it is not part of the A2UI protocol")
        except Exception:
            logger.error(
                f"An error occurred during generation (session={prepared.session_id}, "
                f"messages={len(prepared.messages)})",
                exc_info=True,
            )
            raise

        logger.info(f"Generation finished (stop_reason={response.stop_reason})")
        return response

    async def generate(
        self,
        request: Union[GenerateUiRequest, Dict[str, Any]],
        on_message: MessageCallback,
    ) -> GenerationResponse:
        """Prepare and run a request with a push-style callback."""
        prepared = await self.prepare(request)
        return await self.run(prepared, on_message)

    def stream(self, request: Union[GenerateUiRequest, PreparedRequest, Dict[str, Any]]) -> MessageChannel:
        """Channel form of ``generate``."""
        if isinstance(request, PreparedRequest):
            prepared = request
            return MessageChannel(lambda on_message: self.run(prepared, on_message))
        return MessageChannel(lambda on_message: self.generate(request, on_message))
