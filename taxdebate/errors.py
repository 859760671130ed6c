"""Collaborator (generation/search backend) exceptions.

These exception types make it easier for higher-level error handling (the
multiplexer, search provider and HTTP handlers) to format failures
consistently without scraping strings.
"""

from __future__ import annotations


class ProviderError(RuntimeError):
    """Base class for generation/search backend errors."""


class ProviderHTTPError(ProviderError):
    """HTTP error from a backend."""

    def __init__(
        self,
        status: int,
        *,
        method: str,
        url: str,
        detail: str | None = None,
    ):
        self.status = int(status)
        self.method = method
        self.url = url
        self.detail = detail
        super().__init__(self.__str__())

    def __str__(self) -> str:
        detail = (self.detail or "").strip()
        if detail:
            return f"HTTP {self.status} {self.method} {self.url}: {detail}"
        return f"HTTP {self.status} {self.method} {self.url}"


class ProviderProtocolError(ProviderError):
    """Malformed/invalid data from a backend."""

    def __init__(self, message: str, *, payload_preview: str | None = None):
        self.message = message
        self.payload_preview = payload_preview
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.payload_preview:
            return f"Protocol error: {self.message} (payload={self.payload_preview!r})"
        return f"Protocol error: {self.message}"
