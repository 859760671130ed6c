"""Generation backend configuration, resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationConfig:
    base_url: str | None = None
    api_key: str | None = None
    summary_model: str | None = None
    followup_model: str | None = None
    connect_timeout_s: float | None = None
    read_timeout_s: float | None = None

    def resolve_base_url(self) -> str:
        return (self.base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com")).rstrip("/")

    def resolve_api_key(self) -> str:
        return (self.api_key or os.getenv("OPENAI_API_KEY") or "").strip()

    def resolve_summary_model(self) -> str:
        return self.summary_model or os.getenv(
            "DEBATE_SUMMARY_MODEL", "gpt-5-nano-2025-08-07"
        )

    def resolve_followup_model(self) -> str:
        return self.followup_model or os.getenv(
            "DEBATE_FOLLOWUP_MODEL", "gpt-5-2025-08-07"
        )

    def resolve_connect_timeout_s(self) -> float:
        if self.connect_timeout_s is not None:
            return float(self.connect_timeout_s)
        return float(os.getenv("DEBATE_GENERATION_CONNECT_TIMEOUT_S", "30"))

    def resolve_read_timeout_s(self) -> float:
        if self.read_timeout_s is not None:
            return float(self.read_timeout_s)
        return float(os.getenv("DEBATE_GENERATION_READ_TIMEOUT_S", "600"))

    def resolve_max_buffer_bytes(self) -> int:
        return int(os.getenv("DEBATE_GENERATION_MAX_BUFFER_BYTES", str(16 * 1024 * 1024)))
