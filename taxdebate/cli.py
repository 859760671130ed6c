#!/usr/bin/env python3
"""Command line entry point.

    taxdebate serve
    taxdebate ask "Is a director's fee from a Singapore company taxable?" --search
    taxdebate ask TOPIC --run a:gpt-5.1-2025-11-13:gpt-5-2025-08-07 --run b:o3:o3
    taxdebate history
    taxdebate followup "Section 14 deduction" "Does this cover pre-commencement costs?"
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Iterable

import aiohttp

from taxdebate.client import DebateAPIError, DebateClient, DebateResult
from taxdebate.core.debate_session import ErrorEvent, ReplayState, Searching, Sources, StreamEvent
from taxdebate.personas import get_persona
from taxdebate.search.config import DEFAULT_RESULTS, SearchScope, SearchStrategy
from taxdebate.utils import configure_logging, get_server_config, load_env


def _parse_run(value: str) -> dict:
    parts = value.split(":")
    if len(parts) != 3 or not parts[0]:
        raise argparse.ArgumentTypeError(
            f"expected ID:MINIMIZER_MODEL:HAWK_MODEL, got {value!r}"
        )
    run_id, minimizer_model, hawk_model = parts
    entry: dict[str, str] = {"id": run_id}
    if minimizer_model:
        entry["minimizerModel"] = minimizer_model
    if hawk_model:
        entry["hawkModel"] = hawk_model
    return entry


def _parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Singapore tax debate: Minimizer vs Compliance Hawk")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--server", help="Debate server URL (default: DEBATE_SERVER_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the debate HTTP server")

    ask = sub.add_parser("ask", help="Stream a debate from a running server")
    ask.add_argument("topic")
    ask.add_argument("--search", action="store_true", help="Ground the debate in web search")
    ask.add_argument(
        "--mode",
        choices=[s.value for s in SearchScope],
        default=SearchScope.WIDE.value,
        help="Search domain scope (default: wide)",
    )
    ask.add_argument(
        "--type",
        dest="search_type",
        choices=[s.value for s in SearchStrategy],
        default=SearchStrategy.BALANCED.value,
        help="Search strategy (default: auto)",
    )
    ask.add_argument("--results", type=int, default=DEFAULT_RESULTS)
    ask.add_argument("--summaries", action="store_true", help="Request per-source summaries")
    ask.add_argument("--minimizer-model")
    ask.add_argument("--hawk-model")
    ask.add_argument(
        "--run",
        dest="runs",
        action="append",
        type=_parse_run,
        default=[],
        metavar="ID:MIN_MODEL:HAWK_MODEL",
        help="Add a Best-of-N run (repeatable)",
    )
    ask.add_argument("--no-summary", action="store_true", help="Skip TL;DR summaries")
    ask.add_argument("--no-save", action="store_true", help="Do not store the finished debate")

    history = sub.add_parser("history", help="List stored debates")
    history.add_argument("--limit", type=int, default=None)

    followup = sub.add_parser("followup", help="Ask about a highlighted passage")
    followup.add_argument("text")
    followup.add_argument("question")
    followup.add_argument("--persona", help="Persona context for the answer")

    return parser.parse_args(list(argv))


def build_debate_payload(args: argparse.Namespace) -> dict:
    payload: dict[str, object] = {
        "topic": args.topic,
        "enableWebSearch": bool(args.search),
        "searchMode": args.mode,
        "searchType": args.search_type,
        "numResults": args.results,
        "includeSummary": bool(args.summaries),
    }
    if args.minimizer_model:
        payload["minimizerModel"] = args.minimizer_model
    if args.hawk_model:
        payload["hawkModel"] = args.hawk_model
    if args.runs:
        payload["runConfigs"] = list(args.runs)
    return payload


def _print_progress(event: StreamEvent) -> None:
    if isinstance(event, Searching):
        print("Searching...", file=sys.stderr)
    elif isinstance(event, Sources):
        print(f"Found {len(event.sources)} source(s)", file=sys.stderr)
    elif isinstance(event, ErrorEvent):
        where = f" [{event.run_id}/{event.persona_id}]" if event.run_id else ""
        print(f"Error{where}: {event.message}", file=sys.stderr)


def _print_result(result: DebateResult) -> None:
    outcome = result.outcome
    for source_idx, source in enumerate(outcome.sources, start=1):
        print(f"[{source_idx}] {source.title} {source.url}")
    if outcome.sources:
        print()

    for run in outcome.runs:
        for binding in run.personas:
            key = (run.id, binding.persona_id)
            header = binding.name
            if outcome.is_multi_run:
                header = f"{run.id}: {header}"
            print(f"=== {header} ({binding.model}) ===")
            tldr = result.summaries.get(key)
            if tldr:
                print(f"TL;DR: {tldr}\n")
            print(outcome.buffers.get(key, "").strip() or "(no response)")
            print()

    if result.record and result.record.id:
        print(f"Saved as {result.record.id}")


async def _ask(client: DebateClient, args: argparse.Namespace) -> int:
    try:
        result = await client.run_debate(
            build_debate_payload(args),
            on_event=_print_progress,
            summarize=not args.no_summary,
            persist=not args.no_save,
        )
    except DebateAPIError as e:
        print(f"Debate failed: {e.message}", file=sys.stderr)
        return 1

    _print_result(result)
    if result.state is not ReplayState.COMPLETED:
        print(f"Stream ended early: {result.failure}", file=sys.stderr)
        return 1
    return 0


async def _history(client: DebateClient, limit: int) -> int:
    for record in await client.list_debates(limit):
        kind = f"best-of-{len(record.runs)}" if record.is_multi_run else "single"
        print(f"{record.id}  {record.created_at}  [{kind}]  {record.topic}")
    return 0


async def _followup(client: DebateClient, args: argparse.Namespace) -> int:
    persona_context = args.persona
    persona = get_persona(args.persona) if args.persona else None
    if persona is not None:
        persona_context = persona.name
    answer = await client.followup(args.text, args.question, persona_context)
    print(answer)
    return 0


def main(argv: Iterable[str]) -> int:
    args = _parse_args(argv)
    load_env()

    if args.command == "serve":
        from taxdebate import server

        server.run(args.verbose)
        return 0

    configure_logging(args.verbose)
    cfg = get_server_config()
    client = DebateClient(args.server or cfg["server_url"])

    try:
        if args.command == "ask":
            return asyncio.run(_ask(client, args))
        if args.command == "history":
            return asyncio.run(_history(client, args.limit or cfg["history_limit"]))
        if args.command == "followup":
            return asyncio.run(_followup(client, args))
    except DebateAPIError as e:
        print(f"Request failed: {e.message}", file=sys.stderr)
        return 1
    except aiohttp.ClientError as e:
        print(f"Cannot reach debate server: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 2


def run() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
