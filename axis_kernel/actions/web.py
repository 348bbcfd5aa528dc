"""Web search providers used by ``SEARCH:`` commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Protocol

import httpx
from ddgs import DDGS

from axis_kernel.errors import CapabilityError

WIKIPEDIA_API = "https://en.wikipedia.org/w/api.php"


@dataclass(frozen=True)
class SearchResult:
    title: str
    link: str
    snippet: str = ""


class SearchProvider(Protocol):
    name: str

    async def search(self, query: str) -> List[SearchResult]: ...


class EncyclopediaSearch:
    """MediaWiki ``opensearch`` lookup; good for definitions and people."""

    name = "Wikipedia"

    def __init__(self, endpoint: str = WIKIPEDIA_API, max_results: int = 5, timeout: float = 10.0) -> None:
        self.endpoint = endpoint
        self.max_results = max_results
        self.timeout = timeout

    async def search(self, query: str) -> List[SearchResult]:
        params = {
            "action": "opensearch",
            "search": query.strip(),
            "limit": str(self.max_results),
            "namespace": "0",
            "format": "json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers={"User-Agent": "axis-kernel"}) as client:
                resp = await client.get(self.endpoint, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CapabilityError(str(exc)) from exc
        if not isinstance(data, list) or len(data) < 4:
            return []
        titles, snippets, links = data[1], data[2], data[3]
        return [
            SearchResult(title=title, link=link, snippet=snippet)
            for title, snippet, link in zip(titles, snippets, links)
        ]


class DuckDuckGoSearch:
    name = "DuckDuckGo"

    def __init__(self, max_results: int = 5) -> None:
        self.max_results = max_results

    def _search_sync(self, query: str) -> List[SearchResult]:
        results: List[SearchResult] = []
        with DDGS() as ddgs:
            for hit in ddgs.text(query.strip(), max_results=self.max_results) or []:
                results.append(
                    SearchResult(
                        title=hit.get("title", ""),
                        link=hit.get("href", ""),
                        snippet=hit.get("body", ""),
                    )
                )
        return results

    async def search(self, query: str) -> List[SearchResult]:
        try:
            return await asyncio.to_thread(self._search_sync, query)
        except Exception as exc:  # noqa: BLE001
            raise CapabilityError(str(exc)) from exc


__all__ = ["SearchResult", "SearchProvider", "EncyclopediaSearch", "DuckDuckGoSearch"]
