"""Server-side session driver.

One DebateSession per request. It is the only writer of the event channel:
search status first (when enabled), then everything the multiplexer yields.
"""

from __future__ import annotations

import logging
import time

from taxdebate.core.debate_session.api import (
    RunDescriptor,
    Searching,
    SourceDocument,
    Sources,
)
from taxdebate.core.debate_session.channel import EventChannel
from taxdebate.core.debate_session.multiplexer import GenerationMultiplexer
from taxdebate.core.debate_session.planner import DebateRequest
from taxdebate.core.debate_session.ports import SearchPort

log = logging.getLogger("debate")


class DebateSession:
    def __init__(
        self,
        request: DebateRequest,
        runs: list[RunDescriptor],
        *,
        multiplexer: GenerationMultiplexer,
        search: SearchPort | None = None,
    ):
        self.request = request
        self.runs = runs
        self._multiplexer = multiplexer
        self._search = search
        self.sources: list[SourceDocument] = []
        self.context_text = ""
        self.status = "pending"

    async def _gather_context(self, channel: EventChannel) -> None:
        await channel.send(Searching())
        if self._search is None:
            log.warning("Web search requested but no search provider is configured")
            return

        context = await self._search.fetch_context(self.request.topic, self.request.search)
        self.sources = list(context.documents)
        self.context_text = context.context_text
        if self.sources:
            await channel.send(Sources(sources=tuple(self.sources)))

    async def run(self, channel: EventChannel) -> None:
        start = time.monotonic()
        self.status = "running"
        log.info(
            "Debate started: %r (%d run(s), search=%s)",
            self.request.topic[:80],
            len(self.runs),
            self.request.enable_web_search,
        )

        try:
            if self.request.enable_web_search:
                await self._gather_context(channel)

            events = self._multiplexer.stream(
                self.runs,
                topic=self.request.topic,
                context_text=self.context_text,
                is_multi_run=self.request.is_multi_run,
            )
            try:
                async for event in events:
                    await channel.send(event)
            finally:
                # Cancels in-flight generation when the client went away.
                await events.aclose()
        except BaseException:
            self.status = "aborted"
            raise

        self.status = "completed"
        log.info("Debate finished in %.1fs", time.monotonic() - start)
