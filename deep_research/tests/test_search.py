"""
Tests for search providers and per-vertical aggregation.

HTTP providers run against httpx.MockTransport; no network access.
"""

import asyncio
import json

import httpx
import pytest

from deep_research.search.aggregate import merge_sources, search_vertical, vertical_query
from deep_research.search.providers import (
    ExaSearch,
    PerplexitySearch,
    SemanticScholarSearch,
    build_providers,
)
from deep_research.search.schemas import SearchSource
from deep_research.shared.contracts.research_output import ResearchVertical


# ============================================================================
# Test Fixtures
# ============================================================================


def _make_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _make_vertical(queries=None):
    return ResearchVertical(
        id="v1",
        name="Chemistry",
        search_queries=queries if queries is not None else ["solid electrolytes"],
    )


def _make_source(url, **kwargs):
    return SearchSource(url=url, title=kwargs.pop("title", url), provider="exa", **kwargs)


# ============================================================================
# TestExa
# ============================================================================


class TestExa:
    """Tests for ExaSearch."""

    def test_parses_results(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "url": "https://arxiv.org/abs/1",
                            "title": "Paper",
                            "text": "t" * 3000,
                            "highlights": ["Key sentence"],
                            "image": "https://img/1.png",
                            "publishedDate": "2024-01-01",
                            "author": "Ada",
                        },
                        {"url": "https://example.com/x", "title": "Page", "text": "w" * 500},
                        {"title": "No url"},
                    ]
                },
            )

        exa = ExaSearch(api_key="test-key", client=_make_client(handler))
        result = asyncio.run(exa.search("solid electrolytes"))

        body = json.loads(requests[0].content)
        assert requests[0].headers["x-api-key"] == "test-key"
        assert body["query"] == "solid electrolytes"
        assert body["num_results"] == 8

        assert len(result.sources) == 2
        first, second = result.sources
        assert first.snippet == "Key sentence"
        assert len(first.full_text) == 2000
        assert first.source_type == "academic"
        assert first.image == "https://img/1.png"
        assert first.author == "Ada"
        assert second.snippet == "w" * 400
        assert second.provider == "exa"

    def test_not_configured_without_key(self, monkeypatch):
        monkeypatch.delenv("EXA_API_KEY", raising=False)
        assert ExaSearch().is_configured() is False
        assert ExaSearch(api_key="your_exa_key").is_configured() is False

    def test_retries_on_503(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"results": []})

        exa = ExaSearch(api_key="k", client=_make_client(handler))
        result = asyncio.run(exa.search("q"))
        assert len(calls) == 2
        assert result.sources == []

    def test_no_retry_on_client_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"error": "bad key"})

        exa = ExaSearch(api_key="k", client=_make_client(handler))
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(exa.search("q"))
        assert len(calls) == 1


# ============================================================================
# TestPerplexity
# ============================================================================


class TestPerplexity:
    """Tests for PerplexitySearch."""

    def test_answer_and_citations(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "Electrolytes are improving."}}],
                    "citations": ["https://www.reuters.com/a", "https://example.com/b"],
                },
            )

        perplexity = PerplexitySearch(api_key="k", client=_make_client(handler))
        result = asyncio.run(perplexity.search("solid electrolytes"))

        body = json.loads(requests[0].content)
        assert body["model"] == "sonar"
        assert body["messages"][0]["content"] == "Research: solid electrolytes"
        assert body["max_tokens"] == 1500
        assert requests[0].headers["authorization"] == "Bearer k"

        assert result.synthesis == "Electrolytes are improving."
        assert [s.title for s in result.sources] == [
            "Source from reuters.com",
            "Source from example.com",
        ]
        assert result.sources[0].source_type == "news"
        assert result.sources[1].provider == "perplexity"


# ============================================================================
# TestSemanticScholar
# ============================================================================


class TestSemanticScholar:
    """Tests for SemanticScholarSearch."""

    def test_papers(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "title": "Sulfide electrolytes",
                            "abstract": "a" * 600,
                            "url": "https://www.semanticscholar.org/paper/1",
                            "year": 2023,
                            "authors": [{"name": "Grace"}, {"name": "Alan"}],
                        },
                        {"title": "No url", "year": 2020},
                    ]
                },
            )

        scholar = SemanticScholarSearch(api_key="", client=_make_client(handler))
        result = asyncio.run(scholar.search("solid electrolytes"))

        params = requests[0].url.params
        assert params["limit"] == "5"
        assert params["fields"] == "title,abstract,url,year,authors,citationCount"
        assert "x-api-key" not in requests[0].headers

        assert len(result.sources) == 1
        paper = result.sources[0]
        assert paper.source_type == "academic"
        assert paper.published_date == "2023"
        assert paper.author == "Grace"
        assert len(paper.snippet) == 400


# ============================================================================
# TestBuildProviders
# ============================================================================


class TestBuildProviders:
    """Tests for build_providers."""

    def test_only_configured_providers(self, monkeypatch):
        monkeypatch.delenv("EXA_API_KEY", raising=False)
        monkeypatch.setenv("PERPLEXITY_API_KEY", "pplx-key")
        names = [p.name for p in build_providers()]
        assert names == ["perplexity", "semantic_scholar"]

    def test_semantic_scholar_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("EXA_API_KEY", "exa-key")
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
        names = [p.name for p in build_providers(enable_semantic_scholar=False)]
        assert names == ["exa"]


# ============================================================================
# TestAggregate
# ============================================================================


class TestAggregate:
    """Tests for per-vertical aggregation."""

    def test_vertical_query(self):
        assert vertical_query(_make_vertical(["  first ", "second"])) == "first"
        assert vertical_query(_make_vertical(["  "])) == "Chemistry"

    def test_merge_dedups_and_fills_gaps(self):
        merged = merge_sources(
            [
                [_make_source("https://www.example.com/a/", snippet="")],
                [
                    _make_source("https://example.com/a", snippet="filled", image="https://img"),
                    _make_source("https://example.com/b"),
                ],
            ],
            limit=12,
        )
        assert [s.url for s in merged] == ["https://www.example.com/a/", "https://example.com/b"]
        assert merged[0].snippet == "filled"
        assert merged[0].image == "https://img"

    def test_merge_limit(self):
        merged = merge_sources([[_make_source(f"https://x.com/{i}") for i in range(20)]], limit=12)
        assert len(merged) == 12

    def test_search_vertical_tolerates_provider_failure(self, provider_factory):
        good = provider_factory(name="exa")
        bad = provider_factory(name="perplexity", fail_queries=["solid electrolytes"])
        result = asyncio.run(search_vertical(_make_vertical(), [good, bad]))

        assert result.error is None
        assert len(result.sources) == 2
        assert result.provider_counts == {"exa": 2}

    def test_search_vertical_all_failed(self, provider_factory):
        bad = provider_factory(fail_queries=["solid electrolytes"])
        result = asyncio.run(search_vertical(_make_vertical(), [bad]))

        assert result.sources == []
        assert "exa unavailable" in result.error

    def test_search_vertical_collects_synthesis(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "Summary."}}],
                    "citations": ["https://example.com/c"],
                },
            )

        perplexity = PerplexitySearch(api_key="k", client=_make_client(handler))
        result = asyncio.run(search_vertical(_make_vertical(), [perplexity]))
        assert result.synthesis == "Summary."
        assert result.query == "solid electrolytes"
