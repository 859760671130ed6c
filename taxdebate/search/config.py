"""Search configuration: request settings plus backend wiring from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

MIN_RESULTS = 3
MAX_RESULTS = 15
DEFAULT_RESULTS = 5

TRUSTED_DOMAINS = (
    "iras.gov.sg",
    "singaporelegaladvice.com",
    "kpmg.com",
    "pwc.com",
    "ey.com",
    "deloitte.com",
)

WIDE_DOMAINS = TRUSTED_DOMAINS + (
    "taxathand.com",
    "accaglobal.com",
    "lexology.com",
    "mondaq.com",
    "tax.thomsonreuters.com",
    "internationaltaxreview.com",
    "mof.gov.sg",
    "edb.gov.sg",
)

SUMMARY_QUERY = "Key tax implications and rulings"


class SearchScope(str, Enum):
    TRUSTED = "trusted"
    WIDE = "wide"
    UNRESTRICTED = "all"

    def include_domains(self) -> tuple[str, ...] | None:
        if self is SearchScope.TRUSTED:
            return TRUSTED_DOMAINS
        if self is SearchScope.WIDE:
            return WIDE_DOMAINS
        return None


class SearchStrategy(str, Enum):
    FAST = "fast"
    BALANCED = "auto"
    DEEP = "neural"


def clamp_num_results(value: int) -> int:
    return min(max(int(value), MIN_RESULTS), MAX_RESULTS)


@dataclass(frozen=True)
class SearchSettings:
    scope: SearchScope = SearchScope.WIDE
    strategy: SearchStrategy = SearchStrategy.BALANCED
    num_results: int = DEFAULT_RESULTS
    include_summary: bool = False

    @property
    def result_count(self) -> int:
        return clamp_num_results(self.num_results)


@dataclass(frozen=True)
class SearchConfig:
    api_key: str | None = None
    base_url: str | None = None
    timeout_s: float | None = None
    max_characters: int | None = None

    def resolve_api_key(self) -> str:
        return (self.api_key or os.getenv("EXA_API_KEY") or "").strip()

    def resolve_base_url(self) -> str:
        return (self.base_url or os.getenv("EXA_BASE_URL", "https://api.exa.ai")).rstrip("/")

    def resolve_timeout_s(self) -> float:
        if self.timeout_s is not None:
            return float(self.timeout_s)
        return float(os.getenv("DEBATE_SEARCH_TIMEOUT_S", "30"))

    def resolve_max_characters(self) -> int:
        if self.max_characters is not None:
            return int(self.max_characters)
        return int(os.getenv("DEBATE_SEARCH_MAX_CHARACTERS", "3000"))
