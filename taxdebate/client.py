"""HTTP client for the debate server.

Streams a debate into the replay state machine, then (once the stream
completed) fans out summaries and stores the finished debate remotely.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable

import aiohttp

from taxdebate.core.debate_session import (
    BufferKey,
    ClientReplayStateMachine,
    DebateOutcome,
    PersistenceError,
    ProtocolError,
    ReplayState,
    StreamEvent,
    SummaryFanout,
)
from taxdebate.db import DebateRecord

log = logging.getLogger("client")


class DebateAPIError(RuntimeError):
    """Non-2xx response from the debate server."""

    def __init__(self, status: int, message: str):
        self.status = int(status)
        self.message = message
        super().__init__(f"Debate server HTTP {self.status}: {message}")


@dataclass
class DebateResult:
    state: ReplayState
    outcome: DebateOutcome
    summaries: dict[BufferKey, str] = field(default_factory=dict)
    record: DebateRecord | None = None
    failure: str | None = None


async def _error_detail(resp: aiohttp.ClientResponse) -> str:
    text = await resp.text()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text.strip() or str(resp.reason)
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text.strip() or str(resp.reason)


class DebateClient:
    def __init__(
        self,
        server_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        read_timeout_s: float = 600.0,
    ):
        self.server_url = server_url.rstrip("/")
        self._session = session
        self._read_timeout_s = read_timeout_s

    def _make_url(self, path: str) -> str:
        return f"{self.server_url}{path}"

    @asynccontextmanager
    async def _client_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=self._read_timeout_s)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield session

    async def request_json(self, method: str, path: str, **kwargs) -> object | None:
        url = self._make_url(path)
        async with self._client_session() as session:
            async with session.request(method, url, **kwargs) as resp:
                if resp.status >= 400:
                    raise DebateAPIError(resp.status, await _error_detail(resp))
                text = await resp.text()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    # -----------------
    # Streaming
    # -----------------

    async def stream_debate(
        self,
        payload: dict,
        *,
        on_event: Callable[[StreamEvent], None] | None = None,
    ) -> ClientReplayStateMachine:
        """POST /api/debate and replay the stream.

        Raises DebateAPIError for 4xx/5xx before streaming. Transport or
        protocol failures mid-stream leave the machine errored with its
        partial buffers intact.
        """
        machine = ClientReplayStateMachine(topic=str(payload.get("topic") or ""))
        url = self._make_url("/api/debate")

        async with self._client_session() as session:
            try:
                async with session.post(
                    url, json=payload, headers={"Accept": "text/event-stream"}
                ) as resp:
                    if resp.status >= 400:
                        raise DebateAPIError(resp.status, await _error_detail(resp))
                    async for chunk in resp.content.iter_any():
                        for event in machine.feed(chunk):
                            if on_event:
                                on_event(event)
            except ProtocolError as e:
                machine.fail(str(e))
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                machine.fail(f"{type(e).__name__}: {e}")

        machine.close()
        return machine

    # -----------------
    # Side endpoints
    # -----------------

    async def summarize(self, content: str, *, run_id: str, persona_id: str) -> str:
        data = await self.request_json(
            "POST",
            "/api/summarize",
            json={"content": content, "personaId": persona_id, "runId": run_id},
        )
        summary = data.get("summary") if isinstance(data, dict) else None
        if not isinstance(summary, str) or not summary:
            raise DebateAPIError(200, "summary missing from response")
        return summary

    async def followup(
        self, highlighted_text: str, question: str, persona_context: str | None = None
    ) -> str:
        body: dict[str, object] = {"highlightedText": highlighted_text, "question": question}
        if persona_context:
            body["personaContext"] = persona_context
        data = await self.request_json("POST", "/api/followup", json=body)
        answer = data.get("answer") if isinstance(data, dict) else None
        if not isinstance(answer, str):
            raise DebateAPIError(200, "answer missing from response")
        return answer

    async def save(self, record: DebateRecord) -> str:
        try:
            data = await self.request_json("POST", "/api/debates", json=record.to_payload())
        except (DebateAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Failed to store debate: {e}") from e
        debate_id = data.get("id") if isinstance(data, dict) else None
        return str(debate_id or "")

    async def list_debates(self, limit: int = 20) -> list[DebateRecord]:
        data = await self.request_json("GET", "/api/debates", params={"limit": str(limit)})
        raw = data.get("debates") if isinstance(data, dict) else None
        records: list[DebateRecord] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            record = DebateRecord.from_payload(item)
            record.id = item.get("id")
            record.created_at = item.get("created_at")
            records.append(record)
        return records

    async def delete_debate(self, debate_id: str) -> bool:
        try:
            await self.request_json("DELETE", f"/api/debates/{debate_id}")
        except DebateAPIError as e:
            if e.status == 404:
                return False
            raise
        return True

    # -----------------
    # Full session
    # -----------------

    async def run_debate(
        self,
        payload: dict,
        *,
        on_event: Callable[[StreamEvent], None] | None = None,
        summarize: bool = True,
        persist: bool = True,
    ) -> DebateResult:
        machine = await self.stream_debate(payload, on_event=on_event)
        result = DebateResult(
            state=machine.state, outcome=machine.outcome(), failure=machine.failure
        )
        if machine.state is not ReplayState.COMPLETED:
            log.info("Skipping summaries for unfinished debate (%s)", machine.failure)
            return result

        fanout = SummaryFanout(self, self if persist else None)
        result.summaries, result.record = await fanout.run(result.outcome, summarize=summarize)
        return result
