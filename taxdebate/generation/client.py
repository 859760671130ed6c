"""HTTP + SSE client for OpenAI-compatible chat completion APIs."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiohttp

from taxdebate.errors import ProviderError, ProviderHTTPError, ProviderProtocolError
from taxdebate.generation.config import GenerationConfig
from taxdebate.sse import drain_events

log = logging.getLogger("generation")


async def iter_sse_data(
    chunks: AsyncIterator[bytes], *, max_buf: int = 16 * 1024 * 1024
) -> AsyncIterator[str]:
    """Yield the joined `data:` payload of each SSE event.

    Reads raw chunks and splits events on blank lines rather than relying on
    aiohttp's line iteration, which raises "Chunk too big" on long lines.
    """
    buf = bytearray()

    async for chunk in chunks:
        if not chunk:
            continue
        buf.extend(chunk)
        if len(buf) > max_buf:
            raise ProviderProtocolError(f"SSE buffer too big ({len(buf)} bytes)")

        for data in drain_events(buf):
            yield data

    # If the stream ends without a trailing blank line, ignore trailing bytes.


def _error_message(chunk: dict) -> str | None:
    error = chunk.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class ChatCompletionsClient:
    """Streams `/v1/chat/completions` deltas; also does one-shot completions."""

    def __init__(
        self,
        config: GenerationConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ):
        self._config = config or GenerationConfig()
        self._session = session

    def _make_url(self, path: str) -> str:
        return f"{self._config.resolve_base_url()}{path}"

    def _make_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=None,
            sock_connect=self._config.resolve_connect_timeout_s(),
            sock_read=self._config.resolve_read_timeout_s(),
        )

    def _headers(self, *, stream: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if stream:
            headers["Accept"] = "text/event-stream"
        api_key = self._config.resolve_api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    @staticmethod
    def _messages(instructions: str, user_input: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": instructions},
            {"role": "user", "content": user_input},
        ]

    @asynccontextmanager
    async def _client_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession(timeout=self._make_timeout()) as session:
            yield session

    async def _raise_for_status(self, resp: aiohttp.ClientResponse, url: str) -> None:
        if resp.status >= 400:
            detail = (await resp.text()).strip() or resp.reason
            raise ProviderHTTPError(resp.status, method="POST", url=url, detail=detail)

    async def stream(
        self, model: str, instructions: str, user_input: str
    ) -> AsyncIterator[str]:
        url = self._make_url("/v1/chat/completions")
        payload = {
            "model": model,
            "messages": self._messages(instructions, user_input),
            "stream": True,
        }

        async with self._client_session() as session:
            async with session.post(url, json=payload, headers=self._headers(stream=True)) as resp:
                await self._raise_for_status(resp, url)
                async for data in iter_sse_data(
                    resp.content.iter_any(),
                    max_buf=self._config.resolve_max_buffer_bytes(),
                ):
                    if data == "[DONE]":
                        return

                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        log.debug("Skipping non-JSON SSE data from %s: %r", model, data[:80])
                        continue
                    if not isinstance(chunk, dict):
                        continue

                    message = _error_message(chunk)
                    if message:
                        raise ProviderError(f"{model} stream error: {message}")

                    choices = chunk.get("choices")
                    if not choices:
                        continue

                    delta = choices[0].get("delta") or {}
                    content = delta.get("content")
                    if isinstance(content, str) and content:
                        yield content

    async def complete(self, model: str, instructions: str, user_input: str) -> str:
        url = self._make_url("/v1/chat/completions")
        payload = {
            "model": model,
            "messages": self._messages(instructions, user_input),
        }

        async with self._client_session() as session:
            async with session.post(url, json=payload, headers=self._headers(stream=False)) as resp:
                await self._raise_for_status(resp, url)
                text = await resp.text()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ProviderProtocolError("completion is not JSON", payload_preview=text[:200]) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderProtocolError(
                "completion has no message content", payload_preview=text[:200]
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise ProviderProtocolError("completion content is empty", payload_preview=text[:200])
        return content
