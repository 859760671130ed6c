"""Ports for the debate session core.

These interfaces keep the core independent of the HTTP layer, the search
backend and the storage backend.
"""

from __future__ import annotations

from typing import Protocol

from taxdebate.core.debate_session.api import SourceDocument
from taxdebate.db import DebateRecord


class SearchResultPort(Protocol):
    documents: list[SourceDocument]
    context_text: str


class SearchPort(Protocol):
    async def fetch_context(self, topic: str, settings) -> SearchResultPort: ...


class SummarizerPort(Protocol):
    async def summarize(self, content: str, *, run_id: str, persona_id: str) -> str: ...


class DebateStorePort(Protocol):
    async def save(self, record: DebateRecord) -> str: ...
