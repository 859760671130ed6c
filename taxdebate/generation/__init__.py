"""Text generation collaborator: OpenAI-compatible streaming chat completions."""

from taxdebate.generation.client import ChatCompletionsClient
from taxdebate.generation.config import GenerationConfig
from taxdebate.generation.ports import TextGenerator

__all__ = ["ChatCompletionsClient", "GenerationConfig", "TextGenerator"]
