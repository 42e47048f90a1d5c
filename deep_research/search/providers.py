"""
Search providers.

Exa (neural web search), Perplexity (answer engine with citations) and
Semantic Scholar (academic papers). Each provider has a `search` method
returning a ProviderResult and an `is_configured` check. HTTP calls are
retried on rate limiting and gateway errors.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from deep_research.search.schemas import ProviderResult, SearchSource
from deep_research.search.source_types import detect_source_type, hostname


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 502, 503}


def _is_retryable(exc: BaseException) -> bool:
    """Only retry HTTP errors that signal a transient upstream condition."""
    return (
        isinstance(exc, httpx.HTTPStatusError)
        and exc.response.status_code in RETRYABLE_STATUS_CODES
    )


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)


class SearchProvider:
    """Base class holding a lazily created httpx client."""

    name = "base"

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def is_configured(self) -> bool:
        return True

    async def search(self, query: str) -> ProviderResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


# ======================================================================
# Exa
# ======================================================================


class ExaSearch(SearchProvider):
    """Web search via the Exa API with full text and highlights."""

    name = "exa"
    API_URL = "https://api.exa.ai/search"

    def __init__(
        self,
        api_key: Optional[str] = None,
        num_results: int = 8,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_key = api_key if api_key is not None else os.getenv("EXA_API_KEY", "")
        self.num_results = num_results

    def is_configured(self) -> bool:
        return bool(self.api_key) and not self.api_key.startswith("your_")

    @_retry_transient
    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._get_client().post(
            self.API_URL,
            headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
            json=payload,
        )
        response.raise_for_status()
        return response.json()

    def _parse_response(self, data: Dict[str, Any]) -> List[SearchSource]:
        sources = []
        for result in data.get("results") or []:
            url = result.get("url")
            if not url:
                continue
            text = result.get("text") or ""
            highlights = result.get("highlights") or []
            sources.append(
                SearchSource(
                    url=url,
                    title=result.get("title") or hostname(url),
                    snippet=highlights[0] if highlights else text[:400],
                    full_text=text[:2000] or None,
                    image=result.get("image"),
                    source_type=detect_source_type(url),
                    published_date=result.get("publishedDate"),
                    author=result.get("author"),
                    provider="exa",
                )
            )
        return sources

    async def search(self, query: str) -> ProviderResult:
        """
        Search Exa.

        Args:
            query: Search query

        Returns:
            ProviderResult with one source per result
        """
        data = await self._post(
            {
                "query": query,
                "type": "auto",
                "num_results": self.num_results,
                "contents": {"text": True, "highlights": True},
                "use_autoprompt": True,
            }
        )
        return ProviderResult(provider=self.name, sources=self._parse_response(data))


# ======================================================================
# Perplexity
# ======================================================================


class PerplexitySearch(SearchProvider):
    """
    Answer-engine search via Perplexity's OpenAI-compatible API.

    The answer text becomes the vertical's synthesis; each returned
    citation URL becomes a source.
    """

    name = "perplexity"
    API_URL = "https://api.perplexity.ai/chat/completions"
    MODEL_SONAR = "sonar"

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_tokens: int = 1500,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_key = (
            api_key if api_key is not None else os.getenv("PERPLEXITY_API_KEY", "")
        )
        self.max_tokens = max_tokens

    def is_configured(self) -> bool:
        return bool(self.api_key) and not self.api_key.startswith("your_")

    @_retry_transient
    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._get_client().post(
            self.API_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
        )
        response.raise_for_status()
        return response.json()

    def _parse_response(self, data: Dict[str, Any]) -> ProviderResult:
        answer = ""
        if data.get("choices"):
            answer = data["choices"][0].get("message", {}).get("content", "") or ""

        sources = []
        for url in data.get("citations") or []:
            url = url if isinstance(url, str) else str(url)
            title = f"Source from {hostname(url)}"
            sources.append(
                SearchSource(
                    url=url,
                    title=title,
                    snippet="",
                    source_type=detect_source_type(url),
                    provider="perplexity",
                )
            )

        return ProviderResult(provider=self.name, sources=sources, synthesis=answer)

    async def search(self, query: str) -> ProviderResult:
        """
        Ask Perplexity to research a query.

        Args:
            query: Search query

        Returns:
            ProviderResult with citation sources and the answer as synthesis
        """
        data = await self._post(
            {
                "model": self.MODEL_SONAR,
                "messages": [{"role": "user", "content": f"Research: {query}"}],
                "temperature": 0.5,
                "max_tokens": self.max_tokens,
                "return_citations": True,
            }
        )
        return self._parse_response(data)


# ======================================================================
# Semantic Scholar
# ======================================================================


class SemanticScholarSearch(SearchProvider):
    """Academic paper search via the Semantic Scholar Graph API (key optional)."""

    name = "semantic_scholar"
    API_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
    FIELDS = "title,abstract,url,year,authors,citationCount"

    def __init__(
        self,
        api_key: Optional[str] = None,
        limit: int = 5,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.api_key = (
            api_key if api_key is not None else os.getenv("SEMANTIC_SCHOLAR_API_KEY", "")
        )
        self.limit = limit

    @_retry_transient
    async def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        response = await self._get_client().get(self.API_URL, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    def _parse_response(self, data: Dict[str, Any]) -> List[SearchSource]:
        sources = []
        for paper in data.get("data") or []:
            url = paper.get("url")
            if not url:
                continue
            year = paper.get("year")
            authors = paper.get("authors") or []
            sources.append(
                SearchSource(
                    url=url,
                    title=paper.get("title") or "Untitled paper",
                    snippet=(paper.get("abstract") or "")[:400],
                    source_type="academic",
                    published_date=str(year) if year else None,
                    author=authors[0].get("name") if authors else None,
                    provider="semantic_scholar",
                )
            )
        return sources

    async def search(self, query: str) -> ProviderResult:
        """
        Search Semantic Scholar for papers.

        Args:
            query: Search query

        Returns:
            ProviderResult with one academic source per paper that has a URL
        """
        data = await self._get({"query": query, "limit": self.limit, "fields": self.FIELDS})
        return ProviderResult(provider=self.name, sources=self._parse_response(data))


def build_providers(
    exa_results: int = 8,
    scholar_results: int = 5,
    perplexity_max_tokens: int = 1500,
    enable_semantic_scholar: bool = True,
) -> List[SearchProvider]:
    """
    Build the list of providers that are usable with the current environment.

    Exa and Perplexity are included only when their API keys are set;
    Semantic Scholar needs no key.

    Returns:
        Configured providers in query order
    """
    providers: List[SearchProvider] = []

    exa = ExaSearch(num_results=exa_results)
    if exa.is_configured():
        providers.append(exa)

    perplexity = PerplexitySearch(max_tokens=perplexity_max_tokens)
    if perplexity.is_configured():
        providers.append(perplexity)

    if enable_semantic_scholar:
        providers.append(SemanticScholarSearch(limit=scholar_results))

    logger.info(f"Search providers configured: {[p.name for p in providers]}")
    return providers


async def close_providers(providers: List[SearchProvider]) -> None:
    """Close the HTTP clients of providers built for a single run."""
    for provider in providers:
        await provider.aclose()


def provider_status(enable_semantic_scholar: bool = True) -> Dict[str, bool]:
    """Which providers the current environment can use, without building them."""
    return {
        ExaSearch.name: ExaSearch().is_configured(),
        PerplexitySearch.name: PerplexitySearch().is_configured(),
        SemanticScholarSearch.name: enable_semantic_scholar,
    }
