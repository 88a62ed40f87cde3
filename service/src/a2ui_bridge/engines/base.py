"""Abstract base classes for generation engines."""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence

from ..models.engine import EngineMessage, GenerationChunk, GenerationResponse
from ..tools import ToolDefinition


class GenerationStream(ABC):
    """
    One in-flight generation call.

    Iterating yields chunks in the order the engine produced them. Once the
    iteration is exhausted, ``response()`` returns the aggregated result.
    Calling ``response()`` first drains the stream.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[GenerationChunk]:
        pass

    @abstractmethod
    async def response(self) -> GenerationResponse:
        pass


class GenerationEngine(ABC):
    """
    Abstract interface for language-model engines.

    An engine takes a system prompt, engine messages and tool definitions
    and streams back text deltas and tool-call requests. Errors raised by the
    underlying client propagate unchanged through the stream.
    """

    @abstractmethod
    def generate_stream(
        self,
        messages: Sequence[EngineMessage],
        tools: List[ToolDefinition],
        system: Optional[str] = None,
    ) -> GenerationStream:
        """
        Start a generation call.

        Args:
            messages: Normalized conversation
            tools: Tools the model may call
            system: Optional system prompt

        Returns:
            GenerationStream for the call
        """
        pass

    async def shutdown(self) -> None:
        """Cleanup resources on service shutdown."""
        pass
