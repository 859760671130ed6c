"""End-to-end tests for the server-side session driver."""

import pytest

from taxdebate.core.debate_session import (
    ClientReplayStateMachine,
    DebateSession,
    EventChannel,
    GenerationMultiplexer,
    ReplayState,
    parse_request,
    plan,
)
from taxdebate.errors import ProviderError
from taxdebate.search import SearchContextProvider
from tests.conftest import SAMPLE_RESULTS, FakeGenerator, FakeSearchBackend, RecordingWriter


def _session(body, generator, backend=None):
    request = parse_request(body)
    search = SearchContextProvider(backend) if backend is not None else None
    return DebateSession(
        request, plan(request), multiplexer=GenerationMultiplexer(generator), search=search
    )


async def test_session_without_search_emits_no_search_frames(generator, writer):
    session = _session({"topic": "GST on vouchers"}, generator, FakeSearchBackend(SAMPLE_RESULTS))
    await session.run(EventChannel(writer.write, close=writer.close))

    types = [p["type"] for p in writer.payloads()]
    assert types[0] == "init"
    assert types[-1] == "done"
    assert "searching" not in types
    assert "sources" not in types
    assert writer.closed == 1
    assert session.status == "completed"


async def test_session_with_search_sends_sources_then_grounded_prompts(generator, writer):
    backend = FakeSearchBackend(SAMPLE_RESULTS)
    session = _session({"topic": "Pre-commencement expenses", "enableWebSearch": True}, generator, backend)
    await session.run(EventChannel(writer.write, close=writer.close))

    payloads = writer.payloads()
    assert [p["type"] for p in payloads[:3]] == ["searching", "sources", "init"]
    assert [s["url"] for s in payloads[1]["sources"]] == [r["url"] for r in SAMPLE_RESULTS]
    assert payloads[1]["sources"][1]["title"] == "Untitled"
    assert all("REFERENCE MATERIAL FROM WEB SEARCH" in c["instructions"] for c in generator.calls)
    assert len(session.sources) == 2


async def test_search_failure_degrades_to_ungrounded_debate(generator, writer):
    backend = FakeSearchBackend(error=ProviderError("exa down"))
    session = _session({"topic": "x", "enableWebSearch": True}, generator, backend)
    await session.run(EventChannel(writer.write, close=writer.close))

    types = [p["type"] for p in writer.payloads()]
    assert types[:2] == ["searching", "init"]
    assert types[-1] == "done"
    assert all("REFERENCE MATERIAL" not in c["instructions"] for c in generator.calls)


async def test_search_without_results_sends_no_sources_frame(generator, writer):
    session = _session({"topic": "x", "enableWebSearch": True}, generator, FakeSearchBackend([]))
    await session.run(EventChannel(writer.write, close=writer.close))
    assert "sources" not in [p["type"] for p in writer.payloads()]


async def test_streamed_bytes_replay_into_the_generated_buffers(writer):
    generator = FakeGenerator(
        {"minimizer": ["Claim ", "税务 ", "relief."], "compliance_hawk": ["Section ", "33."]}
    )
    session = _session({"topic": "x"}, generator)
    await session.run(EventChannel(writer.write, close=writer.close))

    machine = ClientReplayStateMachine(topic="x")
    data = writer.data
    for i in range(0, len(data), 3):
        machine.feed(data[i : i + 3])
    assert machine.close() is ReplayState.COMPLETED
    assert machine.buffers == {
        ("single", "minimizer"): "Claim 税务 relief.",
        ("single", "compliance_hawk"): "Section 33.",
    }


async def test_best_of_n_session_with_one_failure():
    generator = FakeGenerator(fail_after={("h-b", "compliance_hawk"): 1})
    writer = RecordingWriter()
    session = _session(
        {
            "topic": "x",
            "runConfigs": [
                {"id": "a", "minimizerModel": "m-a", "hawkModel": "h-a"},
                {"id": "b", "minimizerModel": "m-b", "hawkModel": "h-b"},
                {"id": "c", "minimizerModel": "m-c", "hawkModel": "h-c"},
            ],
        },
        generator,
    )
    await session.run(EventChannel(writer.write, close=writer.close))

    payloads = writer.payloads()
    assert payloads[0]["isMultiRun"] is True
    assert [r["id"] for r in payloads[0]["runs"]] == ["a", "b", "c"]
    errors = [p for p in payloads if p["type"] == "error"]
    assert [(e["runId"], e["personaId"]) for e in errors] == [("b", "compliance_hawk")]
    assert payloads[-1] == {"type": "done"}
    assert len(generator.calls) == 6


async def test_client_disconnect_cancels_generation():
    generator = FakeGenerator(
        {"minimizer": ["m1", "m2"], "compliance_hawk": ["h1"]},
        hang={"minimizer", "compliance_hawk"},
    )
    # init and two deltas go out; writing the third delta fails
    writer = RecordingWriter(fail_on=4)
    session = _session({"topic": "x"}, generator)

    with pytest.raises(ConnectionResetError):
        await session.run(EventChannel(writer.write, close=writer.close))

    assert session.status == "aborted"
    assert sorted(persona for _, persona in generator.cancelled) == ["compliance_hawk", "minimizer"]
    assert len(writer.chunks) == 3
    assert writer.closed == 0
