"""
Searching node for the research LangGraph workflow.

Searches every vertical of the plan in fixed-size batches; each batch runs
concurrently and completes before the next one starts. A failing vertical
is recorded and the remaining verticals continue.
"""

import asyncio
import logging
import time
from typing import Dict, Any, List, Sequence

from langchain_core.runnables import RunnableConfig

from deep_research.research import events
from deep_research.research.runtime import (
    emit,
    get_debug_logger,
    get_graph_config,
    get_providers,
    has_injected_providers,
)
from deep_research.research.schemas import ResearchPlan, ResearchState
from deep_research.search.aggregate import search_vertical, vertical_query
from deep_research.search.providers import SearchProvider, close_providers
from deep_research.search.schemas import VerticalSearchResult
from deep_research.shared.contracts.research_output import ResearchVertical


logger = logging.getLogger(__name__)


def batched(items: Sequence, size: int) -> List[Sequence]:
    """Split items into consecutive batches of at most `size`."""
    size = max(1, size)
    return [items[i: i + size] for i in range(0, len(items), size)]


async def _search_one(
    vertical: ResearchVertical,
    providers: Sequence[SearchProvider],
    max_sources: int,
    config: RunnableConfig,
    session_id: str,
) -> VerticalSearchResult:
    _log = f"[session={session_id}] [graph=research] [node=searching] "
    await emit(config, events.vertical_start_event(vertical.id, vertical.name))

    start_time = time.perf_counter()
    try:
        result = await search_vertical(vertical, providers, max_sources=max_sources)
    except Exception as e:
        logger.exception(f"{_log}Search failed for vertical '{vertical.name}': {e}")
        result = VerticalSearchResult(
            vertical_id=vertical.id,
            query=vertical_query(vertical),
            error=str(e),
        )
    duration_ms = (time.perf_counter() - start_time) * 1000

    debug_logger = get_debug_logger(config, session_id)
    if debug_logger:
        debug_logger.log_search_call(
            vertical_id=vertical.id,
            query=result.query,
            duration_ms=duration_ms,
            sources_count=len(result.sources),
            providers=result.provider_counts,
            error=result.error,
        )

    if result.error:
        await emit(config, events.vertical_error_event(vertical.id, result.error))
    else:
        await emit(config, events.vertical_complete_event(vertical.id, len(result.sources)))
    return result


async def searching_node(state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Search all verticals of the plan.

    Args:
        state: Current research state (needs `plan`)
        config: Runnable config carrying per-run dependencies

    Returns:
        Dictionary with state updates (vertical_results, plan with vertical statuses)
    """
    session_id = state.get("session_id") or "unknown"
    graph_config = get_graph_config(config)
    plan = ResearchPlan.model_validate(state["plan"])
    providers = get_providers(config)
    _log = f"[session={session_id}] [graph=research] [node=searching] "

    logger.info(
        f"{_log}Entering node | verticals={len(plan.verticals)}, "
        f"providers={[p.name for p in providers]}, batch_size={graph_config.parallel_searches}"
    )
    await emit(config, events.phase_event("searching"))

    results: List[VerticalSearchResult] = []
    try:
        for batch in batched(plan.verticals, graph_config.parallel_searches):
            batch_results = await asyncio.gather(
                *(
                    _search_one(
                        vertical,
                        providers,
                        graph_config.max_sources_per_vertical,
                        config,
                        session_id,
                    )
                    for vertical in batch
                )
            )
            results.extend(batch_results)
    finally:
        if not has_injected_providers(config):
            await close_providers(providers)

    by_id = {r.vertical_id: r for r in results}
    verticals = []
    errors = []
    for vertical in plan.verticals:
        result = by_id[vertical.id]
        if result.error:
            errors.append(f"search:{vertical.id}: {result.error}")
            verticals.append(vertical.model_copy(update={"status": "error", "sources_count": 0}))
        else:
            verticals.append(
                vertical.model_copy(
                    update={"status": "completed", "sources_count": len(result.sources)}
                )
            )
    plan = plan.model_copy(update={"verticals": verticals})

    total_sources = sum(len(r.sources) for r in results)
    logger.info(
        f"{_log}Node finished | sources={total_sources}, failed_verticals={len(errors)}"
    )

    return {
        "plan": plan.model_dump(),
        "vertical_results": [r.model_dump() for r in results],
        "current_stage": "searching",
        "errors": errors,
        "messages": [
            {
                "role": "system",
                "agent": "searching",
                "content": (
                    f"Searched {len(results)} verticals and found {total_sources} sources."
                ),
            }
        ],
    }
