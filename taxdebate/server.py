#!/usr/bin/env python3
"""
Tax debate HTTP server.

Endpoints:
- POST /api/debate            stream a Minimizer vs Compliance Hawk debate (SSE frames)
- POST /api/summarize         one-shot TL;DR of a persona response
- POST /api/followup          answer a question about a highlighted passage
- GET/POST /api/debates       list / store finished debates
- GET/DELETE /api/debates/{id}
- GET /api/health
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import web

from taxdebate.core.debate_session import (
    DebateSession,
    EventChannel,
    GenerationMultiplexer,
    PersistenceError,
    SqliteDebateStore,
    ValidationError,
    parse_request,
    plan,
)
from taxdebate.core.debate_session.ports import SearchPort
from taxdebate.db import DebateRecord, DebateRepository, init_db
from taxdebate.generation import ChatCompletionsClient, GenerationConfig, TextGenerator
from taxdebate.generation.prompts import (
    SUMMARY_INSTRUCTIONS,
    build_followup_input,
    build_followup_instructions,
)
from taxdebate.search import ExaClient, SearchContextProvider
from taxdebate.utils import configure_logging, get_server_config, load_env

log = logging.getLogger("server")

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _json_error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> object:
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None


def create_app(
    *,
    generator: TextGenerator,
    repository: DebateRepository,
    search: SearchPort | None = None,
    generation_config: GenerationConfig | None = None,
    queue_size: int = 256,
    history_limit: int = 20,
) -> web.Application:
    generation_config = generation_config or GenerationConfig()
    multiplexer = GenerationMultiplexer(generator, queue_size=queue_size)
    store = SqliteDebateStore(repository)

    app = web.Application()

    async def handle_debate(request: web.Request) -> web.StreamResponse:
        try:
            debate_request = parse_request(await _read_json(request))
            runs = plan(debate_request)
        except ValidationError as e:
            return _json_error(str(e), 400)
        except Exception:
            log.exception("Debate API error")
            return _json_error("Failed to generate debate responses", 500)

        session = DebateSession(
            debate_request, runs, multiplexer=multiplexer, search=search
        )
        response = web.StreamResponse(status=200, headers=SSE_HEADERS)
        try:
            await response.prepare(request)
        except ConnectionResetError:
            log.info("Client went away before the debate stream started")
            return response
        except Exception:
            log.exception("Debate API error")
            return _json_error("Failed to generate debate responses", 500)

        channel = EventChannel(response.write, close=response.write_eof)
        try:
            await session.run(channel)
        except ConnectionResetError:
            log.info("Client disconnected mid-debate; generation cancelled")
        except asyncio.CancelledError:
            log.info("Debate request cancelled; generation cancelled")
            raise
        except Exception:
            # Headers are already sent; the client sees a stream without `done`.
            log.exception("Debate stream failed after it started")
        return response

    async def handle_summarize(request: web.Request) -> web.Response:
        try:
            body = await _read_json(request)
        except ValidationError as e:
            return _json_error(str(e), 400)
        if not isinstance(body, dict):
            return _json_error("Content is required", 400)

        content = body.get("content")
        if not isinstance(content, str) or not content:
            return _json_error("Content is required", 400)

        try:
            summary = await generator.complete(
                generation_config.resolve_summary_model(), SUMMARY_INSTRUCTIONS, content
            )
        except Exception as e:
            log.warning("Summarize API error: %s: %s", type(e).__name__, e)
            return _json_error("Failed to summarize", 500)

        payload: dict[str, object] = {"personaId": body.get("personaId"), "summary": summary}
        if "runId" in body:
            payload["runId"] = body.get("runId")
        return web.json_response(payload)

    async def handle_followup(request: web.Request) -> web.Response:
        try:
            body = await _read_json(request)
        except ValidationError as e:
            return _json_error(str(e), 400)
        body = body if isinstance(body, dict) else {}

        highlighted = body.get("highlightedText")
        question = body.get("question")
        if not isinstance(highlighted, str) or not highlighted or not isinstance(question, str) or not question:
            return _json_error("Highlighted text and question are required", 400)

        persona_context = body.get("personaContext")
        if not isinstance(persona_context, str):
            persona_context = None

        try:
            answer = await generator.complete(
                generation_config.resolve_followup_model(),
                build_followup_instructions(persona_context),
                build_followup_input(highlighted, question),
            )
        except Exception as e:
            log.warning("Followup API error: %s: %s", type(e).__name__, e)
            return _json_error("Failed to get answer", 500)
        return web.json_response({"answer": answer})

    async def handle_list_debates(request: web.Request) -> web.Response:
        try:
            limit = int(request.query.get("limit", history_limit))
        except ValueError:
            return _json_error("limit must be an integer", 400)
        limit = min(max(limit, 1), 200)
        records = repository.list_recent(limit)
        return web.json_response({"debates": [r.to_payload() for r in records]})

    async def handle_save_debate(request: web.Request) -> web.Response:
        try:
            body = await _read_json(request)
            if not isinstance(body, dict):
                raise ValidationError("Request body must be a JSON object")
            record = DebateRecord.from_payload(body)
        except ValueError as e:
            return _json_error(str(e), 400)
        try:
            debate_id = await store.save(record)
        except PersistenceError:
            log.exception("Failed to store debate")
            return _json_error("Failed to save debate", 500)
        return web.json_response({"id": debate_id, "created_at": record.created_at}, status=201)

    async def handle_get_debate(request: web.Request) -> web.Response:
        record = repository.get(request.match_info["debate_id"])
        if record is None:
            return _json_error("Debate not found", 404)
        return web.json_response(record.to_payload())

    async def handle_delete_debate(request: web.Request) -> web.Response:
        if not repository.delete(request.match_info["debate_id"]):
            return _json_error("Debate not found", 404)
        return web.json_response({"deleted": True})

    async def handle_health(request: web.Request) -> web.Response:
        return web.json_response({"healthy": True})

    app.router.add_post("/api/debate", handle_debate)
    app.router.add_post("/api/summarize", handle_summarize)
    app.router.add_post("/api/followup", handle_followup)
    app.router.add_get("/api/debates", handle_list_debates)
    app.router.add_post("/api/debates", handle_save_debate)
    app.router.add_get("/api/debates/{debate_id}", handle_get_debate)
    app.router.add_delete("/api/debates/{debate_id}", handle_delete_debate)
    app.router.add_get("/api/health", handle_health)
    return app


async def start_server(
    app: web.Application,
    *,
    host: str = "127.0.0.1",
    port: int = 8787,
) -> tuple[web.AppRunner, str, int]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    return runner, host, port


async def main() -> None:
    cfg = get_server_config()
    conn = init_db(cfg["db_path"])
    generation_config = GenerationConfig()
    if not generation_config.resolve_api_key():
        log.warning("OPENAI_API_KEY is not set; generation requests may be rejected")

    app = create_app(
        generator=ChatCompletionsClient(generation_config),
        repository=DebateRepository(conn),
        search=SearchContextProvider(ExaClient()),
        generation_config=generation_config,
        queue_size=cfg["queue_size"],
        history_limit=cfg["history_limit"],
    )
    runner, host, port = await start_server(app, host=cfg["host"], port=cfg["port"])
    log.info(f"Debate server listening on http://{host}:{port}")

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()
        conn.close()


def run(verbose: bool = False) -> None:
    load_env()
    configure_logging(verbose)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    run()
