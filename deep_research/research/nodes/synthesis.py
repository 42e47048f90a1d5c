"""
Synthesis node for the research LangGraph workflow.

Builds the global citation registry from all search results and asks the
LLM for an abstract and key findings.
"""

import logging
import time
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from deep_research.research import events
from deep_research.research.citations import build_citation_registry
from deep_research.research.fallbacks import fallback_synthesis
from deep_research.research.prompts.builders import build_synthesis_prompt
from deep_research.research.prompts.templates import SYNTHESIS_SYSTEM_PROMPT
from deep_research.research.response_parser import parse_synthesis_response
from deep_research.research.runtime import (
    emit,
    get_debug_logger,
    get_graph_config,
    get_llm_client,
)
from deep_research.research.schemas import ResearchPlan, ResearchState, SynthesisResult
from deep_research.search.schemas import VerticalSearchResult
from deep_research.shared.llm.client import get_llm_response_with_usage


logger = logging.getLogger(__name__)


async def synthesis_node(state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Synthesize the findings of all verticals.

    Citations and totals are computed even when the LLM call fails; only
    the abstract and findings fall back.

    Args:
        state: Current research state (needs `plan`, `vertical_results`)
        config: Runnable config carrying per-run dependencies

    Returns:
        Dictionary with state updates (synthesis)
    """
    session_id = state.get("session_id") or "unknown"
    graph_config = get_graph_config(config)
    plan = ResearchPlan.model_validate(state["plan"])
    vertical_results = [
        VerticalSearchResult.model_validate(r) for r in state.get("vertical_results") or []
    ]
    _log = f"[session={session_id}] [graph=research] [node=synthesis] "

    await emit(config, events.phase_event("synthesis"))

    citations = build_citation_registry(vertical_results)
    logger.info(f"{_log}Entering node | unique_sources={len(citations)}")

    errors = []
    system_prompt = SYNTHESIS_SYSTEM_PROMPT
    user_prompt = build_synthesis_prompt(
        plan, vertical_results, max_context_chars=graph_config.synthesis_context_chars
    )

    try:
        start_time = time.perf_counter()
        llm_response, usage = await get_llm_response_with_usage(
            user_prompt,
            system_prompt,
            model=graph_config.model,
            temperature=graph_config.synthesis_temperature,
            max_tokens=graph_config.synthesis_max_tokens,
            json_mode=True,
            client=get_llm_client(config),
        )
        duration_ms = (time.perf_counter() - start_time) * 1000

        debug_logger = get_debug_logger(config, state.get("session_id"))
        if debug_logger:
            debug_logger.log_llm_call(
                stage="synthesis",
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                response=llm_response,
                duration_ms=duration_ms,
                input_tokens=usage["input_tokens"],
                output_tokens=usage["output_tokens"],
                model=graph_config.model,
            )

        abstract, key_findings = parse_synthesis_response(llm_response)
        synthesis = SynthesisResult(
            abstract=abstract,
            key_findings=key_findings,
            total_sources=len(citations),
            all_citations=citations,
        )
        logger.info(
            f"{_log}Synthesis complete | duration={duration_ms:.0f}ms, "
            f"findings={len(key_findings)}"
        )

    except Exception as e:
        logger.exception(f"{_log}Synthesis failed, using fallback: {e}")
        errors.append(f"synthesis: {e}")
        synthesis = fallback_synthesis(citations)

    await emit(config, events.synthesis_event(synthesis.abstract, synthesis.key_findings))

    return {
        "synthesis": synthesis.model_dump(),
        "current_stage": "synthesis",
        "errors": errors,
        "messages": [
            {
                "role": "system",
                "agent": "synthesis",
                "content": (
                    f"Synthesized {synthesis.total_sources} sources into "
                    f"{len(synthesis.key_findings)} key findings."
                ),
            }
        ],
    }
