"""HTTP client for the Exa search API."""

from __future__ import annotations

import json
import logging

import aiohttp

from taxdebate.errors import ProviderError, ProviderHTTPError, ProviderProtocolError
from taxdebate.search.config import SUMMARY_QUERY, SearchConfig, SearchSettings

log = logging.getLogger("search")


class ExaClient:
    """Thin `search` (with contents) wrapper over aiohttp."""

    def __init__(
        self,
        config: SearchConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ):
        self._config = config or SearchConfig()
        self._session = session

    def _make_url(self, path: str) -> str:
        return f"{self._config.resolve_base_url()}{path}"

    def build_payload(self, query: str, settings: SearchSettings) -> dict:
        contents: dict[str, object] = {
            "text": {"maxCharacters": self._config.resolve_max_characters()},
        }
        if settings.include_summary:
            contents["summary"] = {"query": SUMMARY_QUERY}

        payload: dict[str, object] = {
            "query": query,
            "type": settings.strategy.value,
            "numResults": settings.result_count,
            "contents": contents,
        }
        domains = settings.scope.include_domains()
        if domains:
            payload["includeDomains"] = list(domains)
        return payload

    async def _post(self, session: aiohttp.ClientSession, url: str, payload: dict) -> object:
        headers = {
            "x-api-key": self._config.resolve_api_key(),
            "Content-Type": "application/json",
        }
        async with session.post(url, json=payload, headers=headers) as resp:
            text = await resp.text()
            if resp.status >= 400:
                raise ProviderHTTPError(
                    resp.status, method="POST", url=url, detail=text.strip() or resp.reason
                )
            try:
                return json.loads(text)
            except json.JSONDecodeError as e:
                raise ProviderProtocolError(
                    "search response is not JSON", payload_preview=text[:200]
                ) from e

    async def search_and_contents(self, query: str, settings: SearchSettings) -> list[dict]:
        if not self._config.resolve_api_key():
            raise ProviderError("EXA_API_KEY is not configured")

        url = self._make_url("/search")
        payload = self.build_payload(query, settings)
        log.debug("Exa search type=%s n=%d", payload["type"], payload["numResults"])

        if self._session is not None:
            data = await self._post(self._session, url, payload)
        else:
            timeout = aiohttp.ClientTimeout(total=self._config.resolve_timeout_s())
            async with aiohttp.ClientSession(timeout=timeout) as session:
                data = await self._post(session, url, payload)

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ProviderProtocolError(
                "search response has no 'results' list",
                payload_preview=json.dumps(data, default=str)[:200],
            )
        return [r for r in results if isinstance(r, dict)]
