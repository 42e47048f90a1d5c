"""
Finalize node for the research LangGraph workflow.

Assembles the finished research document: reading metrics, hero images,
final vertical statuses and the surface state.
"""

import logging
import math
from typing import Dict, Any, List, Sequence

from langchain_core.runnables import RunnableConfig

from deep_research.research import events
from deep_research.research.citations import collect_hero_images
from deep_research.research.runtime import emit, get_debug_logger, get_graph_config
from deep_research.research.schemas import ResearchPlan, ResearchState, SynthesisResult
from deep_research.search.schemas import VerticalSearchResult
from deep_research.shared.contracts.research_output import (
    ResearchOutputV1,
    ResearchSection,
    SurfaceState,
)
from deep_research.shared.logging.config import log_stage_transition


logger = logging.getLogger(__name__)

DEFAULT_LIMITATIONS = [
    "Research is based on publicly available sources",
    "May not include latest developments",
]


def estimate_read_time(total_word_count: int, words_per_minute: int = 200) -> int:
    """Reading time in whole minutes, rounded up."""
    if total_word_count <= 0:
        return 0
    return math.ceil(total_word_count / max(1, words_per_minute))


def total_words(sections: Sequence[ResearchSection]) -> int:
    return sum(s.word_count for s in sections)


def build_research_output(
    plan: ResearchPlan,
    synthesis: SynthesisResult,
    sections: List[ResearchSection],
    vertical_results: Sequence[VerticalSearchResult],
    words_per_minute: int = 200,
    max_hero_images: int = 4,
) -> ResearchOutputV1:
    """
    Assemble the finished research document.

    Args:
        plan: Research plan (verticals carry their search status)
        synthesis: Synthesis with abstract, findings and the citation list
        sections: Generated sections in plan order
        vertical_results: Search results in plan order
        words_per_minute: Reading speed for the read-time estimate
        max_hero_images: Cap on document-level images

    Returns:
        ResearchOutputV1
    """
    counts = {r.vertical_id: len(r.sources) for r in vertical_results}
    verticals = []
    for vertical in plan.verticals:
        if vertical.status == "error":
            verticals.append(vertical)
            continue
        verticals.append(
            vertical.model_copy(
                update={"status": "completed", "sources_count": counts.get(vertical.id, 0)}
            )
        )

    word_count = total_words(sections)
    return ResearchOutputV1(
        title=plan.title,
        query=plan.query,
        abstract=synthesis.abstract,
        key_findings=synthesis.key_findings,
        methodology=plan.methodology,
        limitations=list(DEFAULT_LIMITATIONS),
        verticals=verticals,
        sections=sections,
        all_citations=synthesis.all_citations,
        hero_images=collect_hero_images(vertical_results, limit=max_hero_images),
        total_sources=len(synthesis.all_citations),
        total_word_count=word_count,
        estimated_read_time=estimate_read_time(word_count, words_per_minute),
    )


async def finalize_node(state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Build the final research document and surface state.

    Args:
        state: Current research state (needs plan, vertical_results, synthesis, sections)
        config: Runnable config carrying per-run dependencies

    Returns:
        Dictionary with state updates (research_output, surface_state)
    """
    session_id = state.get("session_id") or "unknown"
    graph_config = get_graph_config(config)
    _log = f"[session={session_id}] [graph=research] [node=finalize] "

    await emit(config, events.phase_event("finalizing"))

    plan = ResearchPlan.model_validate(state["plan"])
    synthesis = SynthesisResult.model_validate(state["synthesis"])
    sections = [ResearchSection.model_validate(s) for s in state.get("sections") or []]
    vertical_results = [
        VerticalSearchResult.model_validate(r) for r in state.get("vertical_results") or []
    ]

    output = build_research_output(
        plan,
        synthesis,
        sections,
        vertical_results,
        words_per_minute=graph_config.words_per_minute,
        max_hero_images=graph_config.max_hero_images,
    )
    surface_state = SurfaceState(metadata=output, is_skeleton=False)

    failed = [s.id for s in sections if s.status == "failed"]
    logger.info(
        f"{_log}Document ready | sections={len(sections)}, failed={failed}, "
        f"words={output.total_word_count}, read_time={output.estimated_read_time}min, "
        f"sources={output.total_sources}"
    )
    log_stage_transition(
        "research_complete",
        state,
        extra={"total_word_count": output.total_word_count, "failed_sections": failed},
        logger=logger,
    )

    debug_logger = get_debug_logger(config, state.get("session_id"))
    if debug_logger:
        debug_logger.log_session_summary(
            total_sections=len(sections), total_sources=output.total_sources
        )

    return {
        "research_output": output.model_dump(),
        "surface_state": surface_state.model_dump(),
        "current_stage": "complete",
        "messages": [
            {
                "role": "system",
                "agent": "finalize",
                "content": (
                    f"Research complete: {len(sections)} sections, "
                    f"{output.total_word_count} words, {output.total_sources} sources."
                ),
            }
        ],
    }
