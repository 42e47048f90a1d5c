"""
Per-vertical search across all configured providers.

Providers are queried concurrently; a failing provider is logged and
contributes nothing. Results are merged in provider order and
deduplicated by normalized URL.
"""

import asyncio
import logging
from typing import Dict, List, Sequence

from deep_research.search.providers import SearchProvider
from deep_research.search.schemas import SearchSource, VerticalSearchResult
from deep_research.search.source_types import normalize_url
from deep_research.shared.contracts.research_output import ResearchVertical


logger = logging.getLogger(__name__)


def vertical_query(vertical: ResearchVertical) -> str:
    """The query sent to providers: the first search query, else the vertical name."""
    for query in vertical.search_queries:
        if query and query.strip():
            return query.strip()
    return vertical.name


def merge_sources(batches: Sequence[List[SearchSource]], limit: int) -> List[SearchSource]:
    """
    Merge source lists, dropping URL duplicates and keeping the first hit.

    A later duplicate fills fields the kept source lacks (snippet, full
    text, image, author, date) so provider results complement each other.

    Args:
        batches: Source lists in priority order
        limit: Maximum number of sources to keep

    Returns:
        Deduplicated sources, at most `limit` long
    """
    merged: Dict[str, SearchSource] = {}
    for sources in batches:
        for source in sources:
            key = normalize_url(source.url)
            kept = merged.get(key)
            if kept is None:
                merged[key] = source.model_copy()
                continue
            updates = {}
            for field_name in ("snippet", "full_text", "image", "author", "published_date"):
                if not getattr(kept, field_name) and getattr(source, field_name):
                    updates[field_name] = getattr(source, field_name)
            if updates:
                merged[key] = kept.model_copy(update=updates)

    return list(merged.values())[:limit]


async def search_vertical(
    vertical: ResearchVertical,
    providers: Sequence[SearchProvider],
    max_sources: int = 12,
) -> VerticalSearchResult:
    """
    Search a single vertical with every provider concurrently.

    Args:
        vertical: Vertical to search
        providers: Providers to query
        max_sources: Cap on merged sources

    Returns:
        VerticalSearchResult; `error` is set only when every provider failed
    """
    query = vertical_query(vertical)
    _log = f"[vertical={vertical.id}] "

    outcomes = await asyncio.gather(
        *(provider.search(query) for provider in providers),
        return_exceptions=True,
    )

    batches: List[List[SearchSource]] = []
    syntheses: List[str] = []
    provider_counts: Dict[str, int] = {}
    failures: List[str] = []

    for provider, outcome in zip(providers, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"{_log}{provider.name} search failed for '{vertical.name}': {outcome}")
            failures.append(f"{provider.name}: {outcome}")
            continue
        provider_counts[provider.name] = len(outcome.sources)
        batches.append(outcome.sources)
        if outcome.synthesis:
            syntheses.append(outcome.synthesis.strip())

    sources = merge_sources(batches, max_sources)
    error = None
    if providers and len(failures) == len(providers):
        error = "All search providers failed: " + "; ".join(failures)

    logger.info(
        f"{_log}Vertical '{vertical.name}': {len(sources)} sources found "
        f"| providers={provider_counts}, failures={len(failures)}"
    )

    return VerticalSearchResult(
        vertical_id=vertical.id,
        query=query,
        sources=sources,
        synthesis="\n\n".join(syntheses),
        provider_counts=provider_counts,
        error=error,
    )
