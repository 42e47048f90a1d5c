"""
Web and academic search for research verticals.

Providers (Exa, Perplexity, Semantic Scholar) are queried concurrently per
vertical and merged into one deduplicated source list.
"""

from deep_research.search.aggregate import search_vertical
from deep_research.search.providers import build_providers
from deep_research.search.schemas import SearchSource, VerticalSearchResult

__all__ = ["search_vertical", "build_providers", "SearchSource", "VerticalSearchResult"]
