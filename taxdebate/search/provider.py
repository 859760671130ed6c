"""Search context for a debate topic.

Fetches ranked reference documents once per session and flattens them into
the grounding text shared by every persona prompt. Backend failures collapse
to an empty context; the session then runs as if search were disabled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from taxdebate.core.debate_session.api import SourceDocument
from taxdebate.search.config import SearchSettings

log = logging.getLogger("search")

CONTEXT_SEPARATOR = "\n\n---\n\n"


class SearchBackend(Protocol):
    async def search_and_contents(self, query: str, settings: SearchSettings) -> list[dict]: ...


@dataclass(frozen=True)
class SearchContext:
    documents: list[SourceDocument] = field(default_factory=list)
    context_text: str = ""


def build_query(topic: str) -> str:
    return f"Singapore tax {topic}"


def _document_from_result(raw: dict) -> SourceDocument:
    title = raw.get("title")
    url = raw.get("url")
    text = raw.get("text")
    summary = raw.get("summary")
    return SourceDocument(
        title=title if isinstance(title, str) and title else "Untitled",
        url=url if isinstance(url, str) else "",
        text=text if isinstance(text, str) else None,
        summary=summary if isinstance(summary, str) else None,
    )


def build_context_text(documents: list[SourceDocument]) -> str:
    parts: list[str] = []
    for i, doc in enumerate(documents, start=1):
        summary_part = f"\nSUMMARY: {doc.summary}" if doc.summary else ""
        body = doc.text or "No content available"
        parts.append(f"[Source {i}: {doc.title}]{summary_part}\n{body}")
    return CONTEXT_SEPARATOR.join(parts)


class SearchContextProvider:
    def __init__(self, backend: SearchBackend):
        self._backend = backend

    async def fetch_context(self, topic: str, settings: SearchSettings) -> SearchContext:
        """Never raises for backend failures; returns an empty context instead."""
        try:
            results = await self._backend.search_and_contents(build_query(topic), settings)
        except Exception as e:
            log.warning("Search failed, continuing without context: %s: %s", type(e).__name__, e)
            return SearchContext()

        documents = [_document_from_result(r) for r in results]
        log.info("Search returned %d document(s) for %r", len(documents), topic[:80])
        return SearchContext(documents=documents, context_text=build_context_text(documents))
