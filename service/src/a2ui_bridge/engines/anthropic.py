"""Anthropic engine - streams the Messages API with tool use."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from anthropic import AsyncAnthropic

from .base import GenerationEngine, GenerationStream
from ..exceptions import EngineAuthError
from ..logging_config import is_debug
from ..models.engine import (
    EngineMessage,
    GenerationChunk,
    GenerationResponse,
    MediaContent,
    TextContent,
    ToolRequestContent,
)
from ..tools import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Acknowledgment replayed for tool calls found in conversation history
HISTORY_ACK = {"status": "ok"}


def media_block(media: MediaContent) -> Dict[str, Any]:
    """Map a media reference to an image content block."""
    if media.url.startswith("data:"):
        header, _, data = media.url.partition(",")
        media_type = header[len("data:"):].split(";")[0] or media.content_type
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        }
    return {"type": "image", "source": {"type": "url", "url": media.url}}


def to_anthropic_messages(
    messages: Sequence[EngineMessage],
    tools: Sequence[ToolDefinition] = (),
) -> List[Dict[str, Any]]:
    """
    Convert engine messages to Messages API format.

    Replayed tool requests become ``tool_use`` blocks in an assistant turn,
    answered by ``tool_result`` blocks at the start of the following user
    turn. Tool requests inside a user message are hoisted into an assistant
    turn of their own. Messages left without content are skipped.
    """
    acks = {tool.name: dict(tool.ack) for tool in tools}
    result: List[Dict[str, Any]] = []
    pending_results: List[Dict[str, Any]] = []
    call_index = 0

    def results_for(tool_uses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "tool_result",
                "tool_use_id": tool_use["id"],
                "content": json.dumps(acks.get(tool_use["name"], HISTORY_ACK)),
            }
            for tool_use in tool_uses
        ]

    def flush_results(blocks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        nonlocal pending_results
        merged = pending_results + blocks
        pending_results = []
        return merged

    for message in messages:
        blocks: List[Dict[str, Any]] = []
        tool_uses: List[Dict[str, Any]] = []

        for item in message.content:
            if isinstance(item, TextContent):
                if item.text:
                    blocks.append({"type": "text", "text": item.text})
            elif isinstance(item, MediaContent):
                blocks.append(media_block(item))
            elif isinstance(item, ToolRequestContent):
                call_index += 1
                tool_use_id = item.ref or f"history_{call_index}"
                tool_uses.append({
                    "type": "tool_use",
                    "id": tool_use_id,
                    "name": item.name,
                    "input": item.input,
                })

        if message.role == "model":
            content = blocks + tool_uses
            if not content:
                logger.debug("Skipping empty model message")
                continue
            if pending_results:
                result.append({"role": "user", "content": flush_results([])})
            result.append({"role": "assistant", "content": content})
            pending_results = results_for(tool_uses)
        else:
            if tool_uses:
                if pending_results:
                    result.append({"role": "user", "content": flush_results([])})
                result.append({"role": "assistant", "content": tool_uses})
                blocks = results_for(tool_uses) + blocks
            content = flush_results(blocks)
            if not content:
                logger.debug("Skipping empty user message")
                continue
            result.append({"role": "user", "content": content})

    if pending_results:
        result.append({"role": "user", "content": flush_results([])})

    return result


def tool_specs(tools: Sequence[ToolDefinition]) -> List[Dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema(),
        }
        for tool in tools
    ]


def assistant_content(message: Any) -> List[Dict[str, Any]]:
    """Re-encode a final API message as request content for the next round."""
    content = []
    for block in message.content:
        if block.type == "text":
            content.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            content.append({
                "type": "tool_use",
                "id": block.id,
                "name": block.name,
                "input": block.input,
            })
    return content


class AnthropicGenerationStream(GenerationStream):
    """Tool-use loop over ``client.messages.stream``."""

    def __init__(
        self,
        engine: "AnthropicEngine",
        messages: Sequence[EngineMessage],
        tools: List[ToolDefinition],
        system: Optional[str],
    ):
        self._engine = engine
        self._messages = messages
        self._tools = tools
        self._system = system
        self._response: Optional[GenerationResponse] = None
        self._started = False

    def __aiter__(self) -> AsyncIterator[GenerationChunk]:
        if self._started:
            raise RuntimeError("Generation stream can only be iterated once")
        self._started = True
        return self._run()

    async def response(self) -> GenerationResponse:
        if self._response is None:
            if not self._started:
                async for _ in self:
                    pass
            if self._response is None:
                raise RuntimeError("Generation stream did not complete")
        return self._response

    async def _run(self) -> AsyncIterator[GenerationChunk]:
        engine = self._engine
        client = await engine.get_client()
        handlers = {tool.name: tool for tool in self._tools}
        api_messages = to_anthropic_messages(self._messages, self._tools)
        specs = tool_specs(self._tools)

        if is_debug(logger):
            logger.debug("=" * 80)
            logger.debug("ANTHROPIC INPUT - MESSAGES:")
            logger.debug("-" * 80)
            logger.debug(json.dumps(api_messages, indent=2)[:4000])
            logger.debug("=" * 80)

        all_requests: List[ToolRequestContent] = []
        usage = {"input_tokens": 0, "output_tokens": 0}
        final_text = ""
        stop_reason: Optional[str] = None

        for round_index in range(engine.max_tool_rounds + 1):
            request: Dict[str, Any] = {
                "model": engine.model,
                "max_tokens": engine.max_tokens,
                "messages": api_messages,
            }
            if self._system:
                request["system"] = self._system
            if specs:
                request["tools"] = specs

            async with client.messages.stream(**request) as stream:
                async for event in stream:
                    if event.type == "text":
                        if event.text:
                            yield GenerationChunk(text=event.text)
                    elif event.type == "content_block_stop":
                        block = event.content_block
                        if block.type == "tool_use":
                            tool_request = ToolRequestContent(
                                name=block.name, input=block.input or {}, ref=block.id
                            )
                            logger.debug(f"Model requested tool {block.name} ({block.id})")
                            all_requests.append(tool_request)
                            yield GenerationChunk(tool_requests=[tool_request])

                message = await stream.get_final_message()

            usage["input_tokens"] += message.usage.input_tokens
            usage["output_tokens"] += message.usage.output_tokens
            stop_reason = message.stop_reason
            final_text = "".join(
                block.text for block in message.content if block.type == "text"
            )

            if stop_reason != "tool_use":
                break

            if round_index == engine.max_tool_rounds:
                logger.warning(
                    f"Stopping after {engine.max_tool_rounds} tool round(s) with tool calls pending"
                )
                break

            results = []
            for block in message.content:
                if block.type != "tool_use":
                    continue
                tool = handlers.get(block.name)
                if tool is None:
                    ack: Dict[str, Any] = {"status": "error", "detail": f"Unknown tool: {block.name}"}
                else:
                    ack = dict(await tool.invoke(block.input or {}))
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": json.dumps(ack),
                    "is_error": ack.get("status") == "error",
                })

            api_messages = api_messages + [
                {"role": "assistant", "content": assistant_content(message)},
                {"role": "user", "content": results},
            ]

        self._response = GenerationResponse(
            text=final_text,
            stop_reason=stop_reason,
            tool_requests=all_requests,
            usage=usage,
        )


class AnthropicEngine(GenerationEngine):
    """
    Engine using the Anthropic Python SDK for direct API calls.

    Requires: ANTHROPIC_API_KEY from console.anthropic.com
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8192,
        max_tool_rounds: int = 5,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.max_tool_rounds = max_tool_rounds
        self._client: Optional[AsyncAnthropic] = None
        self._lock = asyncio.Lock()

    async def get_client(self) -> AsyncAnthropic:
        """Get or create Anthropic client instance (lazy init)."""
        async with self._lock:
            if self._client is None:
                self._client = await self._create_client()
            return self._client

    async def _create_client(self) -> AsyncAnthropic:
        logger.info(f"Initializing Anthropic client (model: {self.model})")

        try:
            client = AsyncAnthropic(api_key=self.api_key)
            logger.info("Anthropic client initialized successfully")
            return client
        except Exception as e:
            logger.error(f"Failed to initialize Anthropic client: {e}")
            raise EngineAuthError(f"Failed to initialize: {e}")

    def generate_stream(
        self,
        messages: Sequence[EngineMessage],
        tools: List[ToolDefinition],
        system: Optional[str] = None,
    ) -> GenerationStream:
        return AnthropicGenerationStream(self, messages, tools, system)

    async def shutdown(self) -> None:
        """Cleanup on service shutdown."""
        if self._client:
            logger.info("Shutting down Anthropic client...")
            await self._client.close()
            self._client = None
            logger.info("Anthropic client shut down successfully")
