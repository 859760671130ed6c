"""Ports (interfaces) for text generation.

The orchestration core depends on this contract rather than on the concrete
HTTP client, so tests can drive it with scripted fragment sequences.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol


class TextGenerator(Protocol):
    def stream(self, model: str, instructions: str, user_input: str) -> AsyncIterator[str]:
        """Lazy, finite, non-restartable sequence of text fragments."""
        ...

    async def complete(self, model: str, instructions: str, user_input: str) -> str:
        """Single-shot (non-streamed) completion."""
        ...
