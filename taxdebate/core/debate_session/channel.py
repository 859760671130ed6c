"""Framed, append-only, single-writer event channel.

Frames are SSE `data:` lines terminated by a blank line. JSON encoding escapes
newlines inside payloads, so the `\\n\\n` delimiter can only ever end a frame.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable

from taxdebate.core.debate_session.api import Done, StreamEvent, event_to_payload
from taxdebate.core.debate_session.errors import ChannelError

log = logging.getLogger("debate")

FRAME_DELIMITER = b"\n\n"

WriteFn = Callable[[bytes], Awaitable[None]]
CloseFn = Callable[[], Awaitable[None]]


def encode_frame(event: StreamEvent) -> bytes:
    payload = json.dumps(event_to_payload(event), ensure_ascii=False, separators=(",", ":"))
    return b"data: " + payload.encode("utf-8") + FRAME_DELIMITER


class EventChannel:
    """Writes each event as one frame; closes itself right after `Done`."""

    def __init__(self, write: WriteFn, *, close: CloseFn | None = None):
        self._write = write
        self._close = close
        self._closed = False
        self._writing = False
        self.frames_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelError(f"write after close: {type(event).__name__}")
        if self._writing:
            raise ChannelError("concurrent write on single-writer channel")

        self._writing = True
        try:
            await self._write(encode_frame(event))
            self.frames_written += 1
        finally:
            self._writing = False

        if isinstance(event, Done):
            self._closed = True
            log.debug("Channel closed after %d frame(s)", self.frames_written)
            if self._close is not None:
                await self._close()
