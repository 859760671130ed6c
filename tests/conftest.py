"""Shared pytest fixtures and fake collaborators."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from taxdebate.core.debate_session import FrameDecoder, PersistenceError
from taxdebate.db import DebateRepository, init_db
from taxdebate.errors import ProviderError
from taxdebate.personas import PERSONAS

MODEL_ENV_VARS = (
    "DEBATE_MINIMIZER_MODEL",
    "DEBATE_HAWK_MODEL",
    "DEBATE_SUMMARY_MODEL",
    "DEBATE_FOLLOWUP_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "EXA_API_KEY",
    "EXA_BASE_URL",
)


@pytest.fixture(autouse=True)
def clean_model_env(monkeypatch):
    for name in MODEL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def persona_of(instructions: str) -> str:
    for persona in PERSONAS:
        if f'"{persona.name}"' in instructions:
            return persona.id
    raise AssertionError("instructions do not name a persona")


class FakeGenerator:
    """TextGenerator with scripted fragments and failure injection.

    Scripts are looked up by (model, persona_id), then by persona_id, then
    fall back to a default three-fragment reply.
    """

    def __init__(
        self,
        fragments: dict | None = None,
        *,
        fail_after: dict | None = None,
        hang: set | None = None,
        complete_error: Exception | None = None,
    ):
        self.fragments = fragments or {}
        self.fail_after = fail_after or {}
        self.hang = hang or set()
        self.complete_error = complete_error
        self.calls: list[dict] = []
        self.cancelled: list[tuple[str, str]] = []
        self.completions: list[dict] = []

    def _lookup(self, table, model: str, persona_id: str):
        if (model, persona_id) in table:
            return (model, persona_id), table[(model, persona_id)]
        if persona_id in table:
            return persona_id, table[persona_id]
        return None, None

    def script_for(self, model: str, persona_id: str) -> list[str]:
        _, script = self._lookup(self.fragments, model, persona_id)
        if script is None:
            return [f"{persona_id} ", "says ", "hello"]
        return list(script)

    def _matches(self, keys, model: str, persona_id: str) -> bool:
        return (model, persona_id) in keys or persona_id in keys

    async def stream(self, model, instructions, user_input):
        persona_id = persona_of(instructions)
        self.calls.append(
            {
                "model": model,
                "persona_id": persona_id,
                "instructions": instructions,
                "user_input": user_input,
            }
        )
        _, fail_at = self._lookup(self.fail_after, model, persona_id)
        try:
            for idx, text in enumerate(self.script_for(model, persona_id)):
                if fail_at is not None and idx == fail_at:
                    raise ProviderError(f"{persona_id} backend exploded")
                await asyncio.sleep(0)
                yield text
            if fail_at is not None:
                raise ProviderError(f"{persona_id} backend exploded")
            if self._matches(self.hang, model, persona_id):
                await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled.append((model, persona_id))
            raise

    async def complete(self, model, instructions, user_input):
        self.completions.append(
            {"model": model, "instructions": instructions, "user_input": user_input}
        )
        if self.complete_error is not None:
            raise self.complete_error
        return f"TL;DR {user_input[:24]}"


class FakeSearchBackend:
    def __init__(self, results: list[dict] | None = None, *, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.queries: list[tuple] = []

    async def search_and_contents(self, query, settings):
        self.queries.append((query, settings))
        if self.error is not None:
            raise self.error
        return list(self.results)


class FakeSummarizer:
    def __init__(self, *, fail_for: set | None = None):
        self.fail_for = fail_for or set()
        self.requests: list[tuple[str, str, str]] = []

    async def summarize(self, content, *, run_id, persona_id):
        self.requests.append((run_id, persona_id, content))
        if (run_id, persona_id) in self.fail_for or persona_id in self.fail_for:
            raise ProviderError("summary backend down")
        return f"summary of {run_id}/{persona_id}"


class FakeStore:
    def __init__(self, *, error: Exception | None = None):
        self.error = error
        self.saved = []

    async def save(self, record):
        if self.error is not None:
            raise self.error
        self.saved.append(record)
        return f"debate-{len(self.saved)}"


class FailingStore(FakeStore):
    def __init__(self):
        super().__init__(error=PersistenceError("disk full"))


class RecordingWriter:
    """Stands in for `StreamResponse.write` / `write_eof`."""

    def __init__(self, *, fail_on: int | None = None):
        self.chunks: list[bytes] = []
        self.closed = 0
        self.fail_on = fail_on

    async def write(self, data: bytes) -> None:
        if self.fail_on is not None and len(self.chunks) + 1 >= self.fail_on:
            raise ConnectionResetError("client went away")
        self.chunks.append(data)

    async def close(self) -> None:
        self.closed += 1

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)

    def payloads(self) -> list[dict]:
        return decode_frames(self.data)


def decode_frames(data: bytes) -> list[dict]:
    return FrameDecoder().feed(data)


SAMPLE_RESULTS = [
    {
        "title": "IRAS e-Tax Guide: Tax Deduction for Pre-commencement Expenses",
        "url": "https://www.iras.gov.sg/guide",
        "text": "Section 14U allows deduction of revenue expenses incurred...",
        "summary": "Pre-commencement revenue expenses are deductible.",
    },
    {
        "title": "",
        "url": "https://www.kpmg.com/sg/insight",
        "text": None,
    },
]


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def db_conn(tmp_path: Path):
    conn = init_db(tmp_path / "debates.db")
    yield conn
    conn.close()


@pytest.fixture
def repository(db_conn) -> DebateRepository:
    return DebateRepository(db_conn)


@asynccontextmanager
async def serve_app(app: web.Application):
    """Run an aiohttp app on a local port; yields its base URL."""
    server = TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/")).rstrip("/")
    finally:
        await server.close()
