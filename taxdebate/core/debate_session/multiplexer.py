"""Generation multiplexer.

Owns the fan-out/fan-in of one generation task per (run, persona):
- every task is a single sequential producer feeding a shared bounded queue
- the consuming coroutine turns queue items into tagged stream events
- one failing task yields a scoped ErrorEvent; siblings keep streaming

Closing the event iterator early (client gone, handler cancelled) cancels and
awaits every unfinished task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator

from taxdebate.core.debate_session.api import (
    BufferKey,
    Delta,
    Done,
    ErrorEvent,
    Init,
    PersonaBinding,
    RunDescriptor,
    StreamEvent,
)
from taxdebate.generation.ports import TextGenerator
from taxdebate.generation.prompts import build_persona_instructions, build_user_query
from taxdebate.personas import get_persona

log = logging.getLogger("debate")

DEFAULT_QUEUE_SIZE = 256


@dataclass(frozen=True)
class _GenerationTask:
    run_id: str
    binding: PersonaBinding
    instructions: str
    user_input: str

    @property
    def key(self) -> BufferKey:
        return (self.run_id, self.binding.persona_id)


@dataclass(frozen=True)
class _Fragment:
    task: _GenerationTask
    text: str


@dataclass(frozen=True)
class _Finished:
    task: _GenerationTask
    error: str | None = None


def build_tasks(
    runs: list[RunDescriptor], *, topic: str, context_text: str
) -> list[_GenerationTask]:
    user_input = build_user_query(topic)
    tasks: list[_GenerationTask] = []
    for run in runs:
        for binding in run.personas:
            persona = get_persona(binding.persona_id)
            base_instructions = persona.instructions if persona else ""
            tasks.append(
                _GenerationTask(
                    run_id=run.id,
                    binding=binding,
                    instructions=build_persona_instructions(base_instructions, context_text),
                    user_input=user_input,
                )
            )
    return tasks


class GenerationMultiplexer:
    def __init__(self, generator: TextGenerator, *, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._generator = generator
        self._queue_size = max(1, queue_size)

    async def _drive(
        self, task: _GenerationTask, queue: asyncio.Queue[_Fragment | _Finished]
    ) -> None:
        start = time.monotonic()
        fragments = 0
        error: str | None = None
        try:
            async for text in self._generator.stream(
                task.binding.model, task.instructions, task.user_input
            ):
                if not text:
                    continue
                fragments += 1
                await queue.put(_Fragment(task, text))
        except asyncio.CancelledError:
            log.debug("Generation %s/%s cancelled", *task.key)
            raise
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            log.warning(
                "Generation %s/%s (%s) failed after %d fragment(s): %s",
                task.run_id,
                task.binding.persona_id,
                task.binding.model,
                fragments,
                error,
            )
        else:
            log.info(
                "Generation %s/%s (%s) finished: %d fragment(s) in %.1fs",
                task.run_id,
                task.binding.persona_id,
                task.binding.model,
                fragments,
                time.monotonic() - start,
            )
        await queue.put(_Finished(task, error))

    async def stream(
        self,
        runs: list[RunDescriptor],
        *,
        topic: str,
        context_text: str = "",
        is_multi_run: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        """Yield Init, then interleaved Delta/ErrorEvent, then exactly one Done."""
        yield Init(runs=tuple(runs), is_multi_run=is_multi_run)

        queue: asyncio.Queue[_Fragment | _Finished] = asyncio.Queue(maxsize=self._queue_size)
        specs = build_tasks(runs, topic=topic, context_text=context_text)
        tasks = [
            asyncio.create_task(
                self._drive(spec, queue), name=f"generate:{spec.run_id}:{spec.binding.persona_id}"
            )
            for spec in specs
        ]
        pending = len(tasks)
        log.info("Started %d generation task(s) across %d run(s)", pending, len(runs))

        try:
            while pending:
                item = await queue.get()
                if isinstance(item, _Fragment):
                    yield Delta(
                        run_id=item.task.run_id,
                        persona_id=item.task.binding.persona_id,
                        fragment=item.text,
                        persona_name=item.task.binding.name,
                        color=item.task.binding.color,
                    )
                    continue

                pending -= 1
                if item.error is not None:
                    yield ErrorEvent(
                        message=item.error,
                        run_id=item.task.run_id,
                        persona_id=item.task.binding.persona_id,
                    )
            yield Done()
        finally:
            unfinished = [t for t in tasks if not t.done()]
            for t in unfinished:
                t.cancel()
            if unfinished:
                log.info("Cancelling %d unfinished generation task(s)", len(unfinished))
            await asyncio.gather(*tasks, return_exceptions=True)
