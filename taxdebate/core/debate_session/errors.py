"""Debate session exceptions.

These exception types let the HTTP layer and the client map failures to
status codes and replay states without scraping strings.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Malformed or missing request fields. Surfaced as HTTP 400."""


class ChannelError(RuntimeError):
    """Write attempted on a closed (or concurrently written) event channel."""


class ProtocolError(ValueError):
    """Malformed frame, or an event that breaks the stream ordering rules."""

    def __init__(self, message: str, *, payload_preview: str | None = None):
        self.message = message
        self.payload_preview = payload_preview
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.payload_preview:
            return f"Debate protocol error: {self.message} (payload={self.payload_preview!r})"
        return f"Debate protocol error: {self.message}"


class PersistenceError(RuntimeError):
    """Storage backend failed to save a finished debate."""
