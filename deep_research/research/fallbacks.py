"""
Fallback structures used when an LLM stage fails.

The pipeline always continues with something usable: a generic plan built
from the query, or one section per vertical when the planner suggested none.
"""

from typing import List

from deep_research.research.schemas import PlannedSection, ResearchPlan, SynthesisResult
from deep_research.shared.contracts.research_output import ResearchCitation, ResearchVertical


FALLBACK_METHODOLOGY = "Multi-source web research"
FALLBACK_ABSTRACT = "Research synthesis could not be completed."


def fallback_verticals(query: str) -> List[ResearchVertical]:
    """Four generic verticals derived from the query."""
    return [
        ResearchVertical(
            id="v1", name="Overview", description="General context",
            search_queries=[query],
        ),
        ResearchVertical(
            id="v2", name="Current State", description="Latest developments",
            search_queries=[f"{query} latest developments"],
        ),
        ResearchVertical(
            id="v3", name="Applications", description="Real-world uses",
            search_queries=[f"{query} applications use cases"],
        ),
        ResearchVertical(
            id="v4", name="Challenges", description="Known issues",
            search_queries=[f"{query} challenges problems"],
        ),
    ]


def sections_from_verticals(verticals: List[ResearchVertical]) -> List[PlannedSection]:
    """One section per vertical, headed by the vertical name."""
    return [
        PlannedSection(
            id=f"s{i + 1}",
            heading=vertical.name,
            vertical_id=vertical.id,
            description=vertical.description,
        )
        for i, vertical in enumerate(verticals)
    ]


def fallback_plan(query: str) -> ResearchPlan:
    """
    Plan used when the planning LLM call fails or returns unusable JSON.

    Args:
        query: The user's research query

    Returns:
        ResearchPlan flagged with is_fallback=True
    """
    verticals = fallback_verticals(query)
    return ResearchPlan(
        title=query,
        query=query,
        verticals=verticals,
        suggested_sections=sections_from_verticals(verticals),
        methodology=FALLBACK_METHODOLOGY,
        is_fallback=True,
    )


def fallback_synthesis(all_citations: List[ResearchCitation]) -> SynthesisResult:
    """Synthesis used when the synthesis LLM call fails; citations are kept."""
    return SynthesisResult(
        abstract=FALLBACK_ABSTRACT,
        key_findings=[],
        total_sources=len(all_citations),
        all_citations=all_citations,
        is_fallback=True,
    )
