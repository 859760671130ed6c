"""Server-sent event framing shared by the generation client and stream replay."""

from __future__ import annotations


def split_event(buf_bytes: bytearray) -> tuple[bytes | None, int]:
    """Return (event_bytes, consumed_bytes) for the next event, if any."""
    idx_nl = buf_bytes.find(b"\n\n")
    idx_crlf = buf_bytes.find(b"\r\n\r\n")
    if idx_nl == -1 and idx_crlf == -1:
        return None, 0
    if idx_crlf != -1 and (idx_nl == -1 or idx_crlf < idx_nl):
        return bytes(buf_bytes[:idx_crlf]), idx_crlf + 4
    return bytes(buf_bytes[:idx_nl]), idx_nl + 2


def event_data(event_bytes: bytes) -> str | None:
    """Join the `data:` lines of one event; None for comments and empty events."""
    data_lines: list[str] = []
    for raw_line in event_bytes.splitlines():
        line = raw_line.decode("utf-8", errors="replace").rstrip("\r")
        if not line or line.startswith(":"):
            continue
        if line.startswith("data:"):
            data_lines.append(line[len("data:") :].lstrip())
    if not data_lines:
        return None
    return "\n".join(data_lines)


def drain_events(buf: bytearray) -> list[str]:
    """Remove every complete event from `buf` and return their data payloads.

    The trailing incomplete event stays in `buf` for the next read.
    """
    out: list[str] = []
    while True:
        event_bytes, consumed = split_event(buf)
        if event_bytes is None:
            return out
        del buf[:consumed]
        data = event_data(event_bytes)
        if data is not None:
            out.append(data)
