"""
Prompt builders for the research pipeline.

These functions construct the actual prompts sent to the LLM from the
plan and the retrieved evidence.
"""

from typing import Dict, List, Sequence, Tuple

from deep_research.research.prompts.templates import (
    SectionPromptConfig,
    PLANNING_PROMPT_TEMPLATE,
    SYNTHESIS_PROMPT_TEMPLATE,
    SECTION_PROMPT_TEMPLATE,
)
from deep_research.research.schemas import PlannedSection, ResearchPlan
from deep_research.search.schemas import SearchSource, VerticalSearchResult


def build_planning_prompt(query: str, max_verticals: int = 6, max_sections: int = 15) -> str:
    """
    Build the planning prompt for a research query.

    Args:
        query: The user's research query
        max_verticals: Upper bound on verticals to request
        max_sections: Upper bound on sections to request

    Returns:
        Planning prompt string
    """
    return PLANNING_PROMPT_TEMPLATE.format(
        query=query,
        min_verticals=min(4, max_verticals),
        max_verticals=max_verticals,
        max_sections=max(10, max_sections),
    )


def build_synthesis_context(
    plan: ResearchPlan,
    vertical_results: Sequence[VerticalSearchResult],
) -> str:
    """
    Build the findings context for the synthesis prompt.

    Each vertical contributes its answer-engine synthesis when one exists,
    otherwise its top three sources as "- title: snippet" lines.

    Args:
        plan: Research plan (for vertical names)
        vertical_results: Search results in plan order

    Returns:
        Context string (not truncated)
    """
    names: Dict[str, str] = {v.id: v.name for v in plan.verticals}
    blocks = []
    for result in vertical_results:
        name = names.get(result.vertical_id, "Research Angle")
        if result.synthesis:
            body = result.synthesis
        else:
            body = "\n".join(f"- {s.title}: {s.snippet}" for s in result.sources[:3])
        blocks.append(f"### {name}\n{body}")
    return "\n\n".join(blocks)


def build_synthesis_prompt(
    plan: ResearchPlan,
    vertical_results: Sequence[VerticalSearchResult],
    max_context_chars: int = 6000,
) -> str:
    """
    Build the synthesis prompt.

    Args:
        plan: Research plan
        vertical_results: Search results in plan order
        max_context_chars: Truncation limit for the findings context

    Returns:
        Synthesis prompt string
    """
    context = build_synthesis_context(plan, vertical_results)[:max_context_chars]
    return SYNTHESIS_PROMPT_TEMPLATE.format(title=plan.title, source_context=context)


def format_source_line(citation_id: str, source: SearchSource) -> str:
    """Render one evidence source as "[id] title: excerpt"."""
    excerpt = source.snippet or (source.full_text or "")[:300]
    return f"[{citation_id}] {source.title}: {excerpt}"


def build_section_prompt(
    section: PlannedSection,
    plan: ResearchPlan,
    evidence: Sequence[Tuple[str, SearchSource]],
    all_headings: List[str],
) -> str:
    """
    Build the prompt for writing one section.

    Evidence is labelled with global citation ids, so inline references in
    the generated prose resolve against the document's citation list.

    Args:
        section: Section to write
        plan: Research plan
        evidence: (citation id, source) pairs available to the section
        all_headings: Headings of every section, for document structure

    Returns:
        Section prompt string
    """
    vertical_name = next(
        (v.name for v in plan.verticals if v.id == section.vertical_id), "main"
    )
    config = SectionPromptConfig(
        document_title=plan.title,
        heading=section.heading,
        description=section.description,
        vertical_name=vertical_name,
        structure=all_headings,
        source_lines=[format_source_line(cid, source) for cid, source in evidence],
    )
    return config.format_prompt(SECTION_PROMPT_TEMPLATE)
