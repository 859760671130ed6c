"""Summary fan-out and hand-off to persistence.

One summarization request per non-empty buffer, all concurrent, each allowed
to fail on its own. Once every request has settled, the finished session is
handed to the store. Storage failures are logged only: by then the user has
already received the debate.
"""

from __future__ import annotations

import asyncio
import logging

from taxdebate.core.debate_session.api import BufferKey, DebateOutcome, RunDescriptor
from taxdebate.core.debate_session.ports import DebateStorePort, SummarizerPort
from taxdebate.db import DebateRecord, RunRecord
from taxdebate.personas import PersonaRole

log = logging.getLogger("summary")


def build_record(outcome: DebateOutcome, summaries: dict[BufferKey, str]) -> DebateRecord:
    def _texts(run: RunDescriptor, role: PersonaRole) -> tuple[str, str, str | None]:
        binding = run.binding(role)
        key = (run.id, binding.persona_id)
        return binding.model, outcome.buffers.get(key, ""), summaries.get(key)

    sources = [s.to_payload() for s in outcome.sources]

    if outcome.is_multi_run:
        runs: list[RunRecord] = []
        for run in outcome.runs:
            min_model, min_text, min_sum = _texts(run, PersonaRole.MINIMIZER)
            hawk_model, hawk_text, hawk_sum = _texts(run, PersonaRole.HAWK)
            runs.append(
                RunRecord(
                    id=run.id,
                    minimizer_model=min_model,
                    hawk_model=hawk_model,
                    minimizer_response=min_text,
                    hawk_response=hawk_text,
                    minimizer_summary=min_sum,
                    hawk_summary=hawk_sum,
                )
            )
        return DebateRecord(topic=outcome.topic, is_multi_run=True, runs=runs, sources=sources)

    if not outcome.runs:
        return DebateRecord(topic=outcome.topic, sources=sources)

    run = outcome.runs[0]
    min_model, min_text, min_sum = _texts(run, PersonaRole.MINIMIZER)
    hawk_model, hawk_text, hawk_sum = _texts(run, PersonaRole.HAWK)
    return DebateRecord(
        topic=outcome.topic,
        is_multi_run=False,
        minimizer_response=min_text,
        hawk_response=hawk_text,
        minimizer_summary=min_sum,
        hawk_summary=hawk_sum,
        minimizer_model=min_model,
        hawk_model=hawk_model,
        sources=sources,
    )


class SummaryFanout:
    def __init__(self, summarizer: SummarizerPort, store: DebateStorePort | None = None):
        self._summarizer = summarizer
        self._store = store

    async def _summarize_one(self, key: BufferKey, content: str) -> str | None:
        run_id, persona_id = key
        try:
            summary = await self._summarizer.summarize(
                content, run_id=run_id, persona_id=persona_id
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("Summary for %s/%s failed: %s: %s", run_id, persona_id, type(e).__name__, e)
            return None
        return summary or None

    async def summarize(self, buffers: dict[BufferKey, str]) -> dict[BufferKey, str]:
        """Return only the summaries that succeeded.

        Empty buffers (personas that failed before producing text) are skipped.
        """
        keys = [key for key, text in buffers.items() if text.strip()]
        results = await asyncio.gather(
            *(self._summarize_one(key, buffers[key]) for key in keys)
        )
        summaries = {key: text for key, text in zip(keys, results) if text}
        log.info("Summarized %d/%d buffer(s)", len(summaries), len(keys))
        return summaries

    async def run(
        self, outcome: DebateOutcome, *, summarize: bool = True
    ) -> tuple[dict[BufferKey, str], DebateRecord]:
        summaries = await self.summarize(outcome.buffers) if summarize else {}
        record = build_record(outcome, summaries)

        if self._store is not None:
            try:
                record.id = await self._store.save(record)
                log.info("Saved debate %s", record.id)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.warning("Failed to save debate %r", outcome.topic[:80], exc_info=True)

        return summaries, record
