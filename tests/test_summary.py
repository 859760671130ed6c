"""Tests for summary fan-out and the persistence hand-off."""

import logging

import pytest

from taxdebate.core.debate_session import (
    DebateOutcome,
    PersistenceError,
    PersonaBinding,
    RunDescriptor,
    SourceDocument,
    SqliteDebateStore,
    SummaryFanout,
    build_record,
)
from taxdebate.personas import COMPLIANCE_HAWK, MINIMIZER
from tests.conftest import FailingStore, FakeStore, FakeSummarizer


def _run(run_id, min_model="m-model", hawk_model="h-model"):
    return RunDescriptor(
        id=run_id,
        personas=(
            PersonaBinding.for_persona(MINIMIZER, min_model),
            PersonaBinding.for_persona(COMPLIANCE_HAWK, hawk_model),
        ),
    )


def _single_outcome():
    return DebateOutcome(
        topic="Director fees",
        runs=[_run("single")],
        buffers={
            ("single", "minimizer"): "Treat it as capital.",
            ("single", "compliance_hawk"): "It is income.",
        },
        sources=[SourceDocument("IRAS", "https://www.iras.gov.sg/x")],
    )


def _multi_outcome():
    return DebateOutcome(
        topic="Transfer pricing",
        runs=[_run("a", "m-a", "h-a"), _run("b", "m-b", "h-b")],
        is_multi_run=True,
        buffers={
            ("a", "minimizer"): "A min",
            ("a", "compliance_hawk"): "A hawk",
            ("b", "minimizer"): "B min",
            ("b", "compliance_hawk"): "B hawk",
        },
    )


async def test_summarize_requests_one_summary_per_buffer():
    summarizer = FakeSummarizer()
    summaries = await SummaryFanout(summarizer).summarize(_multi_outcome().buffers)

    assert len(summarizer.requests) == 4
    assert summaries[("b", "compliance_hawk")] == "summary of b/compliance_hawk"
    assert ("a", "minimizer", "A min") in summarizer.requests


async def test_failed_summaries_are_left_out():
    summarizer = FakeSummarizer(fail_for={("a", "compliance_hawk")})
    summaries = await SummaryFanout(summarizer).summarize(_multi_outcome().buffers)

    assert set(summaries) == {
        ("a", "minimizer"),
        ("b", "minimizer"),
        ("b", "compliance_hawk"),
    }


async def test_empty_buffers_are_not_summarized():
    summarizer = FakeSummarizer()
    buffers = dict(_multi_outcome().buffers)
    buffers[("a", "compliance_hawk")] = ""
    buffers[("b", "minimizer")] = "  \n"
    summaries = await SummaryFanout(summarizer).summarize(buffers)

    assert sorted((r, p) for r, p, _ in summarizer.requests) == [
        ("a", "minimizer"),
        ("b", "compliance_hawk"),
    ]
    assert set(summaries) == {("a", "minimizer"), ("b", "compliance_hawk")}


async def test_run_without_summaries_still_persists():
    summarizer = FakeSummarizer()
    store = FakeStore()
    summaries, record = await SummaryFanout(summarizer, store).run(
        _single_outcome(), summarize=False
    )

    assert summaries == {}
    assert summarizer.requests == []
    assert store.saved == [record]
    assert record.id == "debate-1"
    assert record.minimizer_response == "Treat it as capital."
    assert record.minimizer_summary is None


async def test_run_persists_single_run_record():
    store = FakeStore()
    summaries, record = await SummaryFanout(FakeSummarizer(), store).run(_single_outcome())

    assert len(summaries) == 2
    assert store.saved == [record]
    assert record.id == "debate-1"
    assert record.is_multi_run is False
    assert record.minimizer_response == "Treat it as capital."
    assert record.hawk_response == "It is income."
    assert record.minimizer_summary == "summary of single/minimizer"
    assert record.minimizer_model == "m-model"
    assert record.sources == [{"title": "IRAS", "url": "https://www.iras.gov.sg/x"}]
    assert record.runs == []


async def test_persistence_failure_is_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING, logger="summary")
    summaries, record = await SummaryFanout(FakeSummarizer(), FailingStore()).run(_single_outcome())

    assert len(summaries) == 2
    assert record.id is None
    assert "Failed to save debate" in caplog.text
    assert "disk full" in caplog.text


async def test_run_without_store_only_summarizes():
    summaries, record = await SummaryFanout(FakeSummarizer()).run(_single_outcome())
    assert len(summaries) == 2
    assert record.id is None


def test_build_record_multi_run_shape():
    outcome = _multi_outcome()
    record = build_record(outcome, {("b", "compliance_hawk"): "B tl;dr"})

    assert record.is_multi_run is True
    assert record.minimizer_response == ""
    assert [r.id for r in record.runs] == ["a", "b"]
    run_b = record.runs[1]
    assert run_b.minimizer_model == "m-b"
    assert run_b.hawk_response == "B hawk"
    assert run_b.hawk_summary == "B tl;dr"
    assert run_b.minimizer_summary is None
    assert "minimizer_summary" not in run_b.to_payload()


def test_build_record_keeps_empty_buffers_for_failed_personas():
    outcome = _single_outcome()
    del outcome.buffers[("single", "compliance_hawk")]
    record = build_record(outcome, {})
    assert record.hawk_response == ""
    assert record.hawk_summary is None


async def test_sqlite_store_saves_and_wraps_errors(tmp_path, db_conn, repository):
    store = SqliteDebateStore(repository)
    record = build_record(_single_outcome(), {})
    debate_id = await store.save(record)

    assert repository.get(debate_id).topic == "Director fees"

    db_conn.close()
    with pytest.raises(PersistenceError):
        await store.save(build_record(_single_outcome(), {}))
