"""Tests for the aiohttp debate server."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from taxdebate.errors import ProviderError
from taxdebate.generation import GenerationConfig
from taxdebate.search import SearchContextProvider
from taxdebate.server import create_app
from tests.conftest import SAMPLE_RESULTS, FakeGenerator, FakeSearchBackend, decode_frames


@pytest.fixture
async def make_client(repository):
    clients = []

    async def _make(generator=None, backend=None):
        app = create_app(
            generator=generator or FakeGenerator(),
            repository=repository,
            search=SearchContextProvider(backend or FakeSearchBackend(SAMPLE_RESULTS)),
            generation_config=GenerationConfig(summary_model="sum-model", followup_model="fu-model"),
        )
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.close()


@pytest.fixture
async def client(make_client):
    return await make_client()


async def test_debate_requires_topic(client):
    resp = await client.post("/api/debate", json={"enableWebSearch": True})
    assert resp.status == 400
    assert await resp.json() == {"error": "Topic is required"}


async def test_debate_rejects_invalid_json(client):
    resp = await client.post("/api/debate", data="{not json", headers={"Content-Type": "application/json"})
    assert resp.status == 400
    assert "error" in await resp.json()


async def test_debate_rejects_bad_search_mode(client):
    resp = await client.post("/api/debate", json={"topic": "x", "searchMode": "galaxy"})
    assert resp.status == 400


@pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
async def test_debate_rejects_non_finite_num_results(client, literal):
    resp = await client.post(
        "/api/debate",
        data='{"topic": "x", "numResults": %s}' % literal,
        headers={"Content-Type": "application/json"},
    )
    assert resp.status == 400
    assert await resp.json() == {"error": "numResults must be a number"}


async def test_debate_streams_frames(client):
    resp = await client.post("/api/debate", json={"topic": "Director fees", "enableWebSearch": True})
    assert resp.status == 200
    assert resp.headers["Content-Type"].startswith("text/event-stream")
    assert resp.headers["Cache-Control"] == "no-cache"

    payloads = decode_frames(await resp.read())
    types = [p["type"] for p in payloads]
    assert types[:3] == ["searching", "sources", "init"]
    assert types[-1] == "done"
    assert types.count("done") == 1

    init = payloads[2]
    assert init["isMultiRun"] is False
    assert [p["id"] for p in init["runs"][0]["personas"]] == ["minimizer", "compliance_hawk"]

    deltas = [p for p in payloads if p["type"] == "delta"]
    text = "".join(d["delta"] for d in deltas if d["personaId"] == "minimizer")
    assert text == "minimizer says hello"
    assert {d["runId"] for d in deltas} == {"single"}


async def test_best_of_n_debate_streams_all_runs(client):
    resp = await client.post(
        "/api/debate",
        json={"topic": "x", "runConfigs": [{"id": "r1"}, {"id": "r2", "hawkModel": "o3"}]},
    )
    payloads = decode_frames(await resp.read())
    init = payloads[0]
    assert init["type"] == "init"
    assert init["isMultiRun"] is True
    assert init["runs"][1]["personas"][1]["model"] == "o3"
    keys = {(p["runId"], p["personaId"]) for p in payloads if p["type"] == "delta"}
    assert len(keys) == 4


async def test_generation_failure_is_scoped_in_stream(make_client):
    client = await make_client(generator=FakeGenerator(fail_after={"compliance_hawk": 0}))
    resp = await client.post("/api/debate", json={"topic": "x"})
    payloads = decode_frames(await resp.read())

    errors = [p for p in payloads if p["type"] == "error"]
    assert errors and errors[0]["personaId"] == "compliance_hawk"
    assert payloads[-1]["type"] == "done"


async def test_summarize(make_client):
    generator = FakeGenerator()
    client = await make_client(generator=generator)

    missing = await client.post("/api/summarize", json={"personaId": "minimizer"})
    assert missing.status == 400
    assert await missing.json() == {"error": "Content is required"}

    resp = await client.post(
        "/api/summarize",
        json={"content": "A long analysis", "personaId": "minimizer", "runId": "r1"},
    )
    assert resp.status == 200
    assert await resp.json() == {
        "personaId": "minimizer",
        "runId": "r1",
        "summary": "TL;DR A long analysis",
    }
    assert generator.completions[0]["model"] == "sum-model"
    assert "TL;DR" in generator.completions[0]["instructions"]


async def test_summarize_provider_failure(make_client):
    client = await make_client(generator=FakeGenerator(complete_error=ProviderError("down")))
    resp = await client.post("/api/summarize", json={"content": "x", "personaId": "minimizer"})
    assert resp.status == 500
    assert await resp.json() == {"error": "Failed to summarize"}


async def test_followup(make_client):
    generator = FakeGenerator()
    client = await make_client(generator=generator)

    bad = await client.post("/api/followup", json={"question": "why?"})
    assert bad.status == 400
    assert await bad.json() == {"error": "Highlighted text and question are required"}

    resp = await client.post(
        "/api/followup",
        json={
            "highlightedText": "Section 14U",
            "question": "Does this apply to GST?",
            "personaContext": "The Minimizer",
        },
    )
    assert resp.status == 200
    assert "answer" in await resp.json()

    call = generator.completions[0]
    assert call["model"] == "fu-model"
    assert '"The Minimizer"' in call["instructions"]
    assert call["user_input"].startswith('HIGHLIGHTED TEXT:\n"Section 14U"')


async def test_followup_provider_failure(make_client):
    client = await make_client(generator=FakeGenerator(complete_error=ProviderError("down")))
    resp = await client.post("/api/followup", json={"highlightedText": "a", "question": "b"})
    assert resp.status == 500
    assert await resp.json() == {"error": "Failed to get answer"}


async def test_debate_history_crud(client):
    bad = await client.post("/api/debates", json={"is_multi_run": False})
    assert bad.status == 400

    created = await client.post(
        "/api/debates",
        json={
            "topic": "Stamp duty",
            "minimizer_response": "pay less",
            "hawk_response": "pay more",
            "sources": [{"title": "IRAS", "url": "https://www.iras.gov.sg"}],
        },
    )
    assert created.status == 201
    debate_id = (await created.json())["id"]

    listing = await (await client.get("/api/debates")).json()
    assert [d["id"] for d in listing["debates"]] == [debate_id]

    loaded = await client.get(f"/api/debates/{debate_id}")
    assert (await loaded.json())["hawk_response"] == "pay more"

    deleted = await client.delete(f"/api/debates/{debate_id}")
    assert deleted.status == 200
    assert (await client.get(f"/api/debates/{debate_id}")).status == 404
    assert (await client.delete(f"/api/debates/{debate_id}")).status == 404


async def test_save_debate_storage_failure(client, db_conn):
    db_conn.close()
    resp = await client.post("/api/debates", json={"topic": "Stamp duty"})
    assert resp.status == 500
    assert await resp.json() == {"error": "Failed to save debate"}


async def test_history_limit_must_be_integer(client):
    resp = await client.get("/api/debates", params={"limit": "many"})
    assert resp.status == 400


async def test_health(client):
    resp = await client.get("/api/health")
    assert await resp.json() == {"healthy": True}
