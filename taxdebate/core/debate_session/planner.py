"""Request validation and run planning.

Pure data transformation: nothing here starts generation or search.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from taxdebate.core.debate_session.api import SINGLE_RUN_ID, PersonaBinding, RunDescriptor
from taxdebate.core.debate_session.errors import ValidationError
from taxdebate.personas import COMPLIANCE_HAWK, MINIMIZER
from taxdebate.search.config import (
    DEFAULT_RESULTS,
    SearchScope,
    SearchSettings,
    SearchStrategy,
    clamp_num_results,
)


@dataclass(frozen=True)
class RunConfig:
    id: str
    minimizer_model: str | None = None
    hawk_model: str | None = None


@dataclass(frozen=True)
class DebateRequest:
    topic: str
    minimizer_model: str | None = None
    hawk_model: str | None = None
    enable_web_search: bool = False
    search: SearchSettings = field(default_factory=SearchSettings)
    run_configs: tuple[RunConfig, ...] = ()

    @property
    def is_multi_run(self) -> bool:
        return bool(self.run_configs)


def _optional_model(body: dict, key: str) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip() or None


def _optional_bool(body: dict, key: str, default: bool = False) -> bool:
    value = body.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


def _enum_value(body: dict, key: str, enum_cls, default):
    value = body.get(key)
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{key} must be one of: {allowed}") from None


def _num_results(body: dict) -> int:
    value = body.get("numResults")
    if value is None:
        return DEFAULT_RESULTS
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("numResults must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("numResults must be a number")
    return clamp_num_results(int(value))


def _run_configs(body: dict) -> tuple[RunConfig, ...]:
    raw = body.get("runConfigs")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("runConfigs must be a list")

    configs: list[RunConfig] = []
    seen: set[str] = set()
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"runConfigs[{idx}] must be an object")
        run_id = entry.get("id")
        if not isinstance(run_id, str) or not run_id.strip():
            raise ValidationError(f"runConfigs[{idx}].id is required")
        run_id = run_id.strip()
        if run_id in seen:
            raise ValidationError(f"Duplicate run id: {run_id}")
        seen.add(run_id)
        configs.append(
            RunConfig(
                id=run_id,
                minimizer_model=_optional_model(entry, "minimizerModel"),
                hawk_model=_optional_model(entry, "hawkModel"),
            )
        )
    return tuple(configs)


def _require_topic(topic: object) -> str:
    if not isinstance(topic, str) or not topic.strip():
        raise ValidationError("Topic is required")
    return topic.strip()


def parse_request(body: object) -> DebateRequest:
    """Validate a decoded JSON request body."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    topic = _require_topic(body.get("topic"))
    search = SearchSettings(
        scope=_enum_value(body, "searchMode", SearchScope, SearchScope.WIDE),
        strategy=_enum_value(body, "searchType", SearchStrategy, SearchStrategy.BALANCED),
        num_results=_num_results(body),
        include_summary=_optional_bool(body, "includeSummary"),
    )
    return DebateRequest(
        topic=topic,
        minimizer_model=_optional_model(body, "minimizerModel"),
        hawk_model=_optional_model(body, "hawkModel"),
        enable_web_search=_optional_bool(body, "enableWebSearch"),
        search=search,
        run_configs=_run_configs(body),
    )


def _make_run(run_id: str, minimizer_model: str | None, hawk_model: str | None) -> RunDescriptor:
    return RunDescriptor(
        id=run_id,
        personas=(
            PersonaBinding.for_persona(MINIMIZER, minimizer_model),
            PersonaBinding.for_persona(COMPLIANCE_HAWK, hawk_model),
        ),
    )


def plan(request: DebateRequest) -> list[RunDescriptor]:
    """Expand a request into one run (single) or one run per config (Best-of-N)."""
    _require_topic(request.topic)

    if request.is_multi_run:
        ids = [cfg.id for cfg in request.run_configs]
        if len(set(ids)) != len(ids):
            raise ValidationError("Run ids must be unique")
        return [
            _make_run(cfg.id, cfg.minimizer_model, cfg.hawk_model)
            for cfg in request.run_configs
        ]

    return [_make_run(SINGLE_RUN_ID, request.minimizer_model, request.hawk_model)]
