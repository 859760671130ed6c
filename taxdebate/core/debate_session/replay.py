"""Client-side replay of the debate event stream.

Reassembles frames split across transport reads and rebuilds one text buffer
per (run, persona), plus the sources list.

States: idle -> searching -> initialized -> streaming -> completed, with
errored reachable from any non-terminal state when the transport fails or
closes before `done`. Partial buffers survive an error.
"""

from __future__ import annotations

import json
import logging
from enum import Enum

from taxdebate.core.debate_session.api import (
    BufferKey,
    DebateOutcome,
    Delta,
    Done,
    ErrorEvent,
    Init,
    RunDescriptor,
    Searching,
    SourceDocument,
    Sources,
    StreamEvent,
    event_from_payload,
)
from taxdebate.core.debate_session.errors import ProtocolError
from taxdebate.sse import drain_events

log = logging.getLogger("replay")


class ReplayState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    INITIALIZED = "initialized"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


_TERMINAL = {ReplayState.COMPLETED, ReplayState.ERRORED}
_BEFORE_INIT = {ReplayState.IDLE, ReplayState.SEARCHING}


class FrameDecoder:
    """Split a byte stream into decoded JSON frame payloads.

    The trailing incomplete segment of each read is kept and prepended to the
    next one, so a frame is processed exactly once wherever the split falls.
    """

    def __init__(self, *, max_buf: int = 16 * 1024 * 1024):
        self._buf = bytearray()
        self._max_buf = max_buf

    @property
    def pending_bytes(self) -> int:
        return len(self._buf)

    def feed(self, chunk: bytes | str) -> list[object]:
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self._buf.extend(chunk)
        if len(self._buf) > self._max_buf:
            raise ProtocolError(f"frame buffer too big ({len(self._buf)} bytes)")

        payloads: list[object] = []
        for data in drain_events(self._buf):
            try:
                payloads.append(json.loads(data))
            except json.JSONDecodeError as e:
                raise ProtocolError("frame is not JSON", payload_preview=data[:200]) from e
        return payloads


class ClientReplayStateMachine:
    def __init__(self, topic: str = "", *, decoder: FrameDecoder | None = None):
        self.topic = topic
        self.state = ReplayState.IDLE
        self.runs: list[RunDescriptor] = []
        self.is_multi_run = False
        self.sources: list[SourceDocument] = []
        self.errors: list[ErrorEvent] = []
        self.failure: str | None = None
        self._decoder = decoder or FrameDecoder()
        self._parts: dict[BufferKey, list[str]] = {}
        self._frozen: dict[BufferKey, str] | None = None

    # -----------------
    # Transport input
    # -----------------

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        """Consume one transport read; return the events it completed."""
        if self.state in _TERMINAL:
            if chunk and chunk.strip():
                raise ProtocolError(f"data received in terminal state '{self.state.value}'")
            return []

        events: list[StreamEvent] = []
        for payload in self._decoder.feed(chunk):
            event = event_from_payload(payload)
            if event is None:
                log.debug("Skipping unknown frame type: %r", payload)
                continue
            self.apply(event)
            events.append(event)
        return events

    def close(self) -> ReplayState:
        """Transport finished. Anything short of `done` is an error."""
        if self.state not in _TERMINAL:
            self.fail("stream closed before done")
        return self.state

    def fail(self, reason: str) -> None:
        if self.state in _TERMINAL:
            return
        log.warning("Replay errored in state %s: %s", self.state.value, reason)
        self.failure = reason
        self.state = ReplayState.ERRORED

    # -----------------
    # Transitions
    # -----------------

    def apply(self, event: StreamEvent) -> None:
        if self.state in _TERMINAL:
            raise ProtocolError(f"{type(event).__name__} after stream {self.state.value}")

        if isinstance(event, Searching):
            if self.state is not ReplayState.IDLE:
                raise ProtocolError(f"searching in state '{self.state.value}'")
            self.state = ReplayState.SEARCHING
        elif isinstance(event, Sources):
            if self.state not in _BEFORE_INIT:
                raise ProtocolError(f"sources in state '{self.state.value}'")
            self.sources = list(event.sources)
        elif isinstance(event, Init):
            self._apply_init(event)
        elif isinstance(event, Delta):
            self._apply_delta(event)
        elif isinstance(event, ErrorEvent):
            self.errors.append(event)
        elif isinstance(event, Done):
            self._frozen = self.buffers
            self.state = ReplayState.COMPLETED
        else:
            raise ProtocolError(f"unsupported event {event!r}")

    def _apply_init(self, event: Init) -> None:
        if self.state not in _BEFORE_INIT:
            raise ProtocolError(f"duplicate init in state '{self.state.value}'")
        self.runs = list(event.runs)
        self.is_multi_run = event.is_multi_run
        for run in event.runs:
            for key in run.keys():
                self._parts[key] = []
        self.state = ReplayState.INITIALIZED

    def _apply_delta(self, event: Delta) -> None:
        parts = self._parts.get(event.key)
        if parts is None:
            raise ProtocolError(f"delta for unknown buffer {event.run_id}/{event.persona_id}")
        parts.append(event.fragment)
        self.state = ReplayState.STREAMING

    # -----------------
    # Results
    # -----------------

    @property
    def buffers(self) -> dict[BufferKey, str]:
        if self._frozen is not None:
            return dict(self._frozen)
        return {key: "".join(parts) for key, parts in self._parts.items()}

    def buffer(self, run_id: str, persona_id: str) -> str:
        return self.buffers[(run_id, persona_id)]

    def outcome(self) -> DebateOutcome:
        return DebateOutcome(
            topic=self.topic,
            runs=list(self.runs),
            is_multi_run=self.is_multi_run,
            buffers=self.buffers,
            sources=list(self.sources),
            errors=list(self.errors),
        )
