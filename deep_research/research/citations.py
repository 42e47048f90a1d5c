"""
Citation registry and attribution.

Search results from every vertical are folded into one numbered citation
list. A URL found by several verticals gets a single id and records all of
them. Section evidence is labelled with these global ids so that every
inline [n] in generated prose can be checked against the list.
"""

from typing import Dict, List, Sequence, Tuple

from deep_research.research.schemas import PlannedSection
from deep_research.search.schemas import SearchSource, VerticalSearchResult
from deep_research.search.source_types import normalize_url
from deep_research.shared.contracts.research_output import (
    HeroImage,
    ResearchCitation,
    SectionCitation,
    SectionImage,
)


Evidence = List[Tuple[str, SearchSource]]


def build_citation_registry(vertical_results: Sequence[VerticalSearchResult]) -> List[ResearchCitation]:
    """
    Assign sequential citation ids to every unique source URL.

    Args:
        vertical_results: Search results in plan order

    Returns:
        Citations numbered "1".."N" in first-seen order
    """
    by_url: Dict[str, ResearchCitation] = {}
    for result in vertical_results:
        for source in result.sources:
            key = normalize_url(source.url)
            citation = by_url.get(key)
            if citation is None:
                by_url[key] = ResearchCitation(
                    id=str(len(by_url) + 1),
                    url=source.url,
                    title=source.title,
                    snippet=(source.snippet or source.full_text or "")[:200],
                    source_type=source.source_type,
                    author=source.author,
                    date=source.published_date,
                    vertical_ids=[result.vertical_id],
                )
            elif result.vertical_id not in citation.vertical_ids:
                citation.vertical_ids.append(result.vertical_id)
    return list(by_url.values())


def citation_ids_by_url(citations: Sequence[ResearchCitation]) -> Dict[str, str]:
    """Map normalized URL to citation id."""
    return {normalize_url(c.url): c.id for c in citations}


def select_section_evidence(
    section: PlannedSection,
    vertical_results: Sequence[VerticalSearchResult],
    citations: Sequence[ResearchCitation],
    limit: int = 6,
) -> Evidence:
    """
    Pick the sources a section may cite, labelled with global citation ids.

    Uses the section's own vertical; if that vertical found nothing, the
    first vertical with sources stands in. Sources without a registered
    citation are skipped.

    Args:
        section: Planned section
        vertical_results: Search results in plan order
        citations: Global citation list
        limit: Maximum evidence sources

    Returns:
        (citation id, source) pairs
    """
    sources: List[SearchSource] = []
    own = next((r for r in vertical_results if r.vertical_id == section.vertical_id), None)
    if own is not None and own.sources:
        sources = own.sources
    else:
        fallback = next((r for r in vertical_results if r.sources), None)
        if fallback is not None:
            sources = fallback.sources

    ids = citation_ids_by_url(citations)
    evidence: Evidence = []
    for source in sources:
        citation_id = ids.get(normalize_url(source.url))
        if citation_id is None:
            continue
        evidence.append((citation_id, source))
        if len(evidence) >= limit:
            break
    return evidence


def verify_citations(refs: Sequence[str], evidence: Evidence) -> Tuple[List[str], List[str]]:
    """
    Split inline references into those backed by the section's evidence and the rest.

    Returns:
        Tuple of (verified ids, unverified ids), each in input order
    """
    allowed = {citation_id for citation_id, _ in evidence}
    verified = [ref for ref in refs if ref in allowed]
    unverified = [ref for ref in refs if ref not in allowed]
    return verified, unverified


def section_citations_from(evidence: Evidence) -> List[SectionCitation]:
    """Evidence as display citations with snippets trimmed to 150 chars."""
    return [
        SectionCitation(url=s.url, title=s.title, snippet=s.snippet[:150] or None)
        for _, s in evidence
    ]


def section_images_from(evidence: Evidence, limit: int = 2) -> List[SectionImage]:
    """First images found in the evidence."""
    return [
        SectionImage(url=s.image, source_url=s.url, source_title=s.title)
        for _, s in evidence
        if s.image
    ][:limit]


def collect_hero_images(
    vertical_results: Sequence[VerticalSearchResult],
    limit: int = 4,
) -> List[HeroImage]:
    """First `limit` source images across all verticals, one per image URL."""
    images: List[HeroImage] = []
    seen = set()
    for result in vertical_results:
        for source in result.sources:
            if not source.image or source.image in seen:
                continue
            seen.add(source.image)
            images.append(HeroImage(url=source.image, title=source.title, source_url=source.url))
            if len(images) >= limit:
                return images
    return images
