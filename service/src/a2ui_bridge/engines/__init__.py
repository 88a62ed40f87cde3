"""Generation engine implementations."""

from .base import GenerationEngine, GenerationStream
from .anthropic import AnthropicEngine

__all__ = ["GenerationEngine", "GenerationStream", "AnthropicEngine"]
