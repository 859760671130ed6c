"""Search collaborator: Exa-backed reference material for debate prompts."""

from taxdebate.search.client import ExaClient
from taxdebate.search.config import (
    SearchConfig,
    SearchScope,
    SearchSettings,
    SearchStrategy,
    clamp_num_results,
)
from taxdebate.search.provider import SearchContext, SearchContextProvider

__all__ = [
    "ExaClient",
    "SearchConfig",
    "SearchContext",
    "SearchContextProvider",
    "SearchScope",
    "SearchSettings",
    "SearchStrategy",
    "clamp_num_results",
]
