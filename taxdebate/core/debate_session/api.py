"""Public API for debate sessions.

This module is the stable boundary between:
- the wire protocol (JSON frames on the event stream)
- the orchestration core (planner, multiplexer, channel, replay)

Wire payloads are validated once, here, and turned into frozen event
dataclasses. Everything downstream dispatches on the event type rather than
probing dicts for optional keys.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from taxdebate.core.debate_session.errors import ProtocolError
from taxdebate.personas import PERSONAS, Persona, PersonaRole, get_persona

# (run id, persona id)
BufferKey = tuple[str, str]

SINGLE_RUN_ID = "single"


@dataclass(frozen=True)
class PersonaBinding:
    role: PersonaRole
    persona_id: str
    name: str
    color: str
    model: str

    @classmethod
    def for_persona(cls, persona: Persona, model: str | None = None) -> PersonaBinding:
        return cls(
            role=persona.role,
            persona_id=persona.id,
            name=persona.name,
            color=persona.color,
            model=model or persona.resolve_default_model(),
        )

    def to_payload(self) -> dict:
        return {
            "id": self.persona_id,
            "name": self.name,
            "color": self.color,
            "model": self.model,
        }


@dataclass(frozen=True)
class RunDescriptor:
    id: str
    personas: tuple[PersonaBinding, ...]

    def binding(self, role: PersonaRole) -> PersonaBinding:
        for binding in self.personas:
            if binding.role == role:
                return binding
        raise KeyError(role)

    def keys(self) -> list[BufferKey]:
        return [(self.id, b.persona_id) for b in self.personas]

    def to_payload(self) -> dict:
        return {"id": self.id, "personas": [b.to_payload() for b in self.personas]}


@dataclass(frozen=True)
class SourceDocument:
    title: str
    url: str
    text: str | None = None
    summary: str | None = None

    def to_payload(self) -> dict:
        payload: dict[str, object] = {"title": self.title, "url": self.url}
        if self.text is not None:
            payload["text"] = self.text
        if self.summary is not None:
            payload["summary"] = self.summary
        return payload


# -----------------
# Stream events
# -----------------


@dataclass(frozen=True)
class Searching:
    pass


@dataclass(frozen=True)
class Sources:
    sources: tuple[SourceDocument, ...] = ()


@dataclass(frozen=True)
class Init:
    runs: tuple[RunDescriptor, ...]
    is_multi_run: bool = False


@dataclass(frozen=True)
class Delta:
    run_id: str
    persona_id: str
    fragment: str
    persona_name: str = ""
    color: str = ""

    @property
    def key(self) -> BufferKey:
        return (self.run_id, self.persona_id)


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    run_id: str | None = None
    persona_id: str | None = None


@dataclass(frozen=True)
class Done:
    pass


StreamEvent = Searching | Sources | Init | Delta | ErrorEvent | Done


@dataclass
class DebateOutcome:
    """What a finished (or abandoned) stream leaves behind."""

    topic: str
    runs: list[RunDescriptor] = field(default_factory=list)
    is_multi_run: bool = False
    buffers: dict[BufferKey, str] = field(default_factory=dict)
    sources: list[SourceDocument] = field(default_factory=list)
    errors: list[ErrorEvent] = field(default_factory=list)


# -----------------
# Wire encoding
# -----------------


def event_to_payload(event: StreamEvent) -> dict:
    if isinstance(event, Searching):
        return {"type": "searching"}
    if isinstance(event, Sources):
        return {"type": "sources", "sources": [s.to_payload() for s in event.sources]}
    if isinstance(event, Init):
        return {
            "type": "init",
            "isMultiRun": event.is_multi_run,
            "runs": [run.to_payload() for run in event.runs],
        }
    if isinstance(event, Delta):
        return {
            "type": "delta",
            "runId": event.run_id,
            "personaId": event.persona_id,
            "personaName": event.persona_name,
            "color": event.color,
            "delta": event.fragment,
        }
    if isinstance(event, ErrorEvent):
        payload: dict[str, object] = {"type": "error", "message": event.message}
        if event.run_id is not None:
            payload["runId"] = event.run_id
        if event.persona_id is not None:
            payload["personaId"] = event.persona_id
        return payload
    if isinstance(event, Done):
        return {"type": "done"}
    raise TypeError(f"Not a stream event: {event!r}")


def _preview(payload: object) -> str:
    return json.dumps(payload, default=str)[:200]


def _require_str(payload: dict, key: str, *, allow_empty: bool = False) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or (not value and not allow_empty):
        raise ProtocolError(f"'{key}' must be a string", payload_preview=_preview(payload))
    return value


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None


def source_from_payload(raw: object) -> SourceDocument:
    if not isinstance(raw, dict):
        raise ProtocolError("source entry must be an object", payload_preview=_preview(raw))
    return SourceDocument(
        title=_optional_str(raw, "title") or "Untitled",
        url=_optional_str(raw, "url") or "",
        text=_optional_str(raw, "text"),
        summary=_optional_str(raw, "summary"),
    )


def _binding_from_payload(raw: object) -> PersonaBinding:
    if not isinstance(raw, dict):
        raise ProtocolError("persona entry must be an object", payload_preview=_preview(raw))
    persona_id = _require_str(raw, "id")
    persona = get_persona(persona_id)
    if persona is None:
        known = ", ".join(p.id for p in PERSONAS)
        raise ProtocolError(
            f"unknown persona '{persona_id}' (expected one of: {known})",
            payload_preview=_preview(raw),
        )
    return PersonaBinding(
        role=persona.role,
        persona_id=persona_id,
        name=_optional_str(raw, "name") or persona.name,
        color=_optional_str(raw, "color") or persona.color,
        model=_optional_str(raw, "model") or "",
    )


def _run_from_payload(raw: object) -> RunDescriptor:
    if not isinstance(raw, dict):
        raise ProtocolError("run entry must be an object", payload_preview=_preview(raw))
    run_id = _require_str(raw, "id")
    personas_raw = raw.get("personas")
    if not isinstance(personas_raw, list) or not personas_raw:
        raise ProtocolError("run personas must be a non-empty list", payload_preview=_preview(raw))
    personas = tuple(_binding_from_payload(p) for p in personas_raw)
    if len({b.persona_id for b in personas}) != len(personas):
        raise ProtocolError(f"duplicate persona in run '{run_id}'", payload_preview=_preview(raw))
    return RunDescriptor(id=run_id, personas=personas)


def event_from_payload(payload: object) -> StreamEvent | None:
    """Validate a decoded frame. Returns None for unknown event types."""
    if not isinstance(payload, dict):
        raise ProtocolError("frame payload must be an object", payload_preview=_preview(payload))

    event_type = payload.get("type")
    if not isinstance(event_type, str):
        raise ProtocolError("frame is missing 'type'", payload_preview=_preview(payload))

    if event_type == "searching":
        return Searching()

    if event_type == "sources":
        raw_sources = payload.get("sources")
        if not isinstance(raw_sources, list):
            raise ProtocolError("'sources' must be a list", payload_preview=_preview(payload))
        return Sources(sources=tuple(source_from_payload(s) for s in raw_sources))

    if event_type == "init":
        raw_runs = payload.get("runs")
        if not isinstance(raw_runs, list) or not raw_runs:
            raise ProtocolError("'runs' must be a non-empty list", payload_preview=_preview(payload))
        runs = tuple(_run_from_payload(r) for r in raw_runs)
        if len({r.id for r in runs}) != len(runs):
            raise ProtocolError("duplicate run id in init", payload_preview=_preview(payload))
        return Init(runs=runs, is_multi_run=bool(payload.get("isMultiRun", False)))

    if event_type == "delta":
        return Delta(
            run_id=_require_str(payload, "runId"),
            persona_id=_require_str(payload, "personaId"),
            fragment=_require_str(payload, "delta", allow_empty=True),
            persona_name=_optional_str(payload, "personaName") or "",
            color=_optional_str(payload, "color") or "",
        )

    if event_type == "error":
        return ErrorEvent(
            message=_optional_str(payload, "message") or "Unknown error",
            run_id=_optional_str(payload, "runId"),
            persona_id=_optional_str(payload, "personaId"),
        )

    if event_type == "done":
        return Done()

    return None
