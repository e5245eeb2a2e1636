"""Web search collaborator backed by the Tavily search API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from tavily import AsyncTavilyClient


@dataclass(frozen=True)
class SearchResult:
    title: str
    content: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "content": self.content, "url": self.url}


@dataclass(frozen=True)
class SearchResults:
    query: str
    results: List[SearchResult] = field(default_factory=list)

    def text_blob(self) -> str:
        """Title and content of every hit joined into one string."""
        return " ".join(f"{r.title} {r.content}" for r in self.results)


class SearchClient(Protocol):
    async def search(self, query: str, max_results: int = 5, depth: str = "advanced") -> SearchResults:
        ...


class TavilySearchClient:
    """Adapts ``AsyncTavilyClient.search`` replies to :class:`SearchResults`."""

    def __init__(
        self,
        api_key: str,
        *,
        proxy_url: Optional[str] = None,
        client: Optional[AsyncTavilyClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("TAVILY_API_KEY is required for web search.")
        if client is None:
            proxies = {"http": proxy_url, "https": proxy_url} if proxy_url else None
            client = AsyncTavilyClient(api_key=api_key, proxies=proxies)
        self._client = client

    async def search(self, query: str, max_results: int = 5, depth: str = "advanced") -> SearchResults:
        payload = await self._client.search(
            query=query,
            max_results=max_results,
            search_depth=depth,
            include_answer=False,
        )
        hits = [_to_result(item) for item in payload.get("results") or []]
        return SearchResults(query=query, results=hits)


def _to_result(item: Mapping[str, Any]) -> SearchResult:
    return SearchResult(
        title=str(item.get("title") or ""),
        content=str(item.get("content") or ""),
        url=str(item.get("url") or ""),
    )
