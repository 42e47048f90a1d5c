"""
Sections node for the research LangGraph workflow.

Writes every planned section in fixed-size batches. Each section is
grounded in its vertical's sources, labelled with global citation ids,
and its inline references are checked against that evidence afterwards.
A failing section is marked failed; the others continue.
"""

import asyncio
import logging
import time
from typing import Dict, Any, List, Optional, Sequence, Tuple

from langchain_core.runnables import RunnableConfig

from deep_research.research import events
from deep_research.research.citations import (
    section_citations_from,
    section_images_from,
    select_section_evidence,
    verify_citations,
)
from deep_research.research.graph.config import ResearchGraphConfig, DEFAULT_CONFIG
from deep_research.research.nodes.finalize import estimate_read_time, total_words
from deep_research.research.nodes.searching import batched
from deep_research.research.prompts.builders import build_section_prompt
from deep_research.research.prompts.templates import SECTION_SYSTEM_PROMPT
from deep_research.research.response_parser import count_words, extract_citation_refs
from deep_research.research.runtime import (
    emit,
    get_debug_logger,
    get_graph_config,
    get_llm_client,
)
from deep_research.research.schemas import (
    PlannedSection,
    ResearchPlan,
    ResearchState,
    SynthesisResult,
)
from deep_research.search.schemas import SearchSource, VerticalSearchResult
from deep_research.shared.contracts.research_output import (
    ResearchCitation,
    ResearchOutputV1,
    ResearchSection,
)
from deep_research.shared.llm.client import get_llm_response_with_usage
from deep_research.shared.logging.debug_logger import DebugLogger


logger = logging.getLogger(__name__)


async def generate_research_section(
    section: PlannedSection,
    plan: ResearchPlan,
    vertical_results: Sequence[VerticalSearchResult],
    citations: Sequence[ResearchCitation],
    all_headings: List[str],
    graph_config: ResearchGraphConfig = DEFAULT_CONFIG,
    client: Optional[Any] = None,
    debug_logger: Optional[DebugLogger] = None,
) -> ResearchSection:
    """
    Write one section from its evidence.

    Never raises: any failure (HTTP, empty content, missing API key)
    returns the section with status "failed" and the error message.

    Args:
        section: Planned section
        plan: Research plan
        vertical_results: Search results in plan order
        citations: Global citation list
        all_headings: Every section heading, for document structure
        graph_config: Limits and LLM settings
        client: Optional LLM client
        debug_logger: Optional per-session debug logger

    Returns:
        ResearchSection with status "completed" or "failed"
    """
    evidence = select_section_evidence(
        section, vertical_results, citations, limit=graph_config.max_sources_per_section
    )
    base = ResearchSection(
        id=section.id,
        heading=section.heading,
        vertical_id=section.vertical_id,
        description=section.description,
        section_citations=section_citations_from(evidence),
        section_images=section_images_from(evidence),
    )

    system_prompt = SECTION_SYSTEM_PROMPT
    user_prompt = build_section_prompt(section, plan, evidence, all_headings)

    try:
        start_time = time.perf_counter()
        content, usage = await get_llm_response_with_usage(
            user_prompt,
            system_prompt,
            model=graph_config.model,
            temperature=graph_config.section_temperature,
            max_tokens=graph_config.section_max_tokens,
            client=client,
        )
        duration_ms = (time.perf_counter() - start_time) * 1000

        if debug_logger:
            debug_logger.log_llm_call(
                stage="section",
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                response=content,
                duration_ms=duration_ms,
                input_tokens=usage["input_tokens"],
                output_tokens=usage["output_tokens"],
                model=graph_config.model,
                item_id=section.id,
            )
    except Exception as e:
        logger.error(f"[section={section.id}] Generation failed: {e}")
        return base.model_copy(update={"status": "failed", "error": str(e) or type(e).__name__})

    verified, unverified = verify_citations(extract_citation_refs(content), evidence)
    if unverified:
        logger.warning(
            f"[section={section.id}] Citations without matching evidence: {unverified}"
        )

    return base.model_copy(
        update={
            "content": content,
            "word_count": count_words(content),
            "citations": verified,
            "unverified_citations": unverified,
            "status": "completed",
        }
    )


async def sections_node(state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Generate all planned sections.

    Args:
        state: Current research state (needs plan, vertical_results, synthesis)
        config: Runnable config carrying per-run dependencies

    Returns:
        Dictionary with state updates (sections)
    """
    session_id = state.get("session_id") or "unknown"
    graph_config = get_graph_config(config)
    plan = ResearchPlan.model_validate(state["plan"])
    synthesis = SynthesisResult.model_validate(state["synthesis"])
    vertical_results = [
        VerticalSearchResult.model_validate(r) for r in state.get("vertical_results") or []
    ]
    client = get_llm_client(config)
    debug_logger = get_debug_logger(config, state.get("session_id"))
    headings = [s.heading for s in plan.suggested_sections]
    _log = f"[session={session_id}] [graph=research] [node=sections] "

    logger.info(
        f"{_log}Entering node | sections={len(plan.suggested_sections)}, "
        f"batch_size={graph_config.parallel_sections}"
    )
    await emit(config, events.phase_event("sections"))

    async def _generate(section: PlannedSection) -> ResearchSection:
        await emit(config, events.section_start_event(section.id, section.heading))
        result = await generate_research_section(
            section,
            plan,
            vertical_results,
            synthesis.all_citations,
            headings,
            graph_config=graph_config,
            client=client,
            debug_logger=debug_logger,
        )
        if result.status == "completed":
            await emit(
                config,
                events.section_complete_event(result.id, result.content, result.word_count),
            )
        else:
            await emit(
                config,
                events.section_error_event(result.id, result.error or "Generation failed"),
            )
        return result

    sections: List[ResearchSection] = []
    for batch in batched(plan.suggested_sections, graph_config.parallel_sections):
        sections.extend(await asyncio.gather(*(_generate(s) for s in batch)))

    errors = [f"section:{s.id}: {s.error}" for s in sections if s.status == "failed"]
    logger.info(
        f"{_log}Node finished | completed={len(sections) - len(errors)}, failed={len(errors)}"
    )

    return {
        "sections": [s.model_dump() for s in sections],
        "current_stage": "sections",
        "errors": errors,
        "messages": [
            {
                "role": "system",
                "agent": "sections",
                "content": f"Generated {len(sections) - len(errors)} of {len(sections)} sections.",
            }
        ],
    }


# =============================================================================
# Retry against a stored document
# =============================================================================


def results_from_citations(metadata: ResearchOutputV1) -> List[VerticalSearchResult]:
    """
    Rebuild per-vertical evidence from a stored document's citation list.

    Stored documents keep citations, not raw search results, so each
    citation becomes a source of every vertical that surfaced it.
    """
    results = []
    for vertical in metadata.verticals:
        sources = [
            SearchSource(
                url=c.url,
                title=c.title,
                snippet=c.snippet,
                source_type=c.source_type,
                published_date=c.date,
                author=c.author,
            )
            for c in metadata.all_citations
            if vertical.id in c.vertical_ids
        ]
        results.append(VerticalSearchResult(vertical_id=vertical.id, sources=sources))
    return results


def plan_from_metadata(metadata: ResearchOutputV1) -> ResearchPlan:
    return ResearchPlan(
        title=metadata.title,
        query=metadata.query,
        verticals=metadata.verticals,
        suggested_sections=[
            PlannedSection(
                id=s.id, heading=s.heading, vertical_id=s.vertical_id, description=s.description
            )
            for s in metadata.sections
        ],
        methodology=metadata.methodology,
    )


async def retry_research_section(
    metadata: ResearchOutputV1,
    section_id: str,
    graph_config: ResearchGraphConfig = DEFAULT_CONFIG,
    client: Optional[Any] = None,
) -> Tuple[ResearchOutputV1, ResearchSection]:
    """
    Regenerate one section of a stored research document.

    Args:
        metadata: Stored research document
        section_id: Section to regenerate
        graph_config: Limits and LLM settings
        client: Optional LLM client

    Returns:
        Tuple of (updated document with recomputed metrics, regenerated section)

    Raises:
        KeyError: If the document has no such section
        ValueError: If the document has no verticals to draw evidence from
    """
    section = next((s for s in metadata.sections if s.id == section_id), None)
    if section is None:
        raise KeyError(section_id)
    if not metadata.verticals:
        raise ValueError("Research document has no verticals")

    plan = plan_from_metadata(metadata)
    planned = next(s for s in plan.suggested_sections if s.id == section_id)
    result = await generate_research_section(
        planned,
        plan,
        results_from_citations(metadata),
        metadata.all_citations,
        [s.heading for s in metadata.sections],
        graph_config=graph_config,
        client=client,
    )
    # Citations carry no images; keep the ones found during the original run
    if not result.section_images:
        result = result.model_copy(update={"section_images": section.section_images})
    logger.info(f"[section={section_id}] Retry finished | status={result.status}")

    sections = [result if s.id == section_id else s for s in metadata.sections]
    word_count = total_words(sections)
    updated = metadata.model_copy(
        update={
            "sections": sections,
            "total_word_count": word_count,
            "estimated_read_time": estimate_read_time(word_count, graph_config.words_per_minute),
        }
    )
    return updated, result
