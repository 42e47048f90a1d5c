"""
Planning node for the research LangGraph workflow.

Decomposes the query into research verticals and a suggested section
outline, then emits the document skeleton so clients can render the
structure before any content exists.
"""

import logging
import time
from typing import Dict, Any

from langchain_core.runnables import RunnableConfig

from deep_research.research import events
from deep_research.research.fallbacks import fallback_plan
from deep_research.research.prompts.builders import build_planning_prompt
from deep_research.research.prompts.templates import PLANNING_SYSTEM_PROMPT
from deep_research.research.response_parser import parse_plan_response
from deep_research.research.runtime import (
    emit,
    get_debug_logger,
    get_graph_config,
    get_llm_client,
)
from deep_research.research.schemas import ResearchPlan, ResearchState
from deep_research.shared.contracts.research_output import (
    ResearchOutputV1,
    ResearchSection,
    SurfaceState,
)
from deep_research.shared.llm.client import (
    LLMConfigurationError,
    get_llm_response_with_usage,
)


logger = logging.getLogger(__name__)


def build_skeleton(plan: ResearchPlan) -> SurfaceState:
    """
    Build the skeleton surface for a plan.

    Sections are pending with no content; abstract and citations are empty.

    Args:
        plan: Research plan

    Returns:
        SurfaceState with is_skeleton=True
    """
    metadata = ResearchOutputV1(
        title=plan.title,
        query=plan.query,
        methodology=plan.methodology,
        verticals=[v.model_copy(update={"status": "pending"}) for v in plan.verticals],
        sections=[
            ResearchSection(
                id=s.id,
                heading=s.heading,
                vertical_id=s.vertical_id,
                description=s.description,
            )
            for s in plan.suggested_sections
        ],
    )
    return SurfaceState(metadata=metadata, is_skeleton=True)


async def planning_node(state: ResearchState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Generate the research plan.

    Any LLM or parse failure falls back to a generic four-vertical plan.
    A missing LLM API key is a configuration error and is re-raised.

    Args:
        state: Current research state (needs `query`)
        config: Runnable config carrying per-run dependencies

    Returns:
        Dictionary with state updates (plan, surface_state)
    """
    session_id = state.get("session_id") or "unknown"
    query = state["query"]
    graph_config = get_graph_config(config)
    _log = f"[session={session_id}] [graph=research] [node=planning] "

    logger.info(f"{_log}Entering node | query='{query[:80]}'")
    await emit(config, events.phase_event("planning"))

    errors = []
    system_prompt = PLANNING_SYSTEM_PROMPT
    user_prompt = build_planning_prompt(
        query,
        max_verticals=graph_config.max_verticals,
        max_sections=graph_config.max_sections,
    )

    try:
        start_time = time.perf_counter()
        llm_response, usage = await get_llm_response_with_usage(
            user_prompt,
            system_prompt,
            model=graph_config.model,
            temperature=graph_config.planning_temperature,
            max_tokens=graph_config.planning_max_tokens,
            json_mode=True,
            client=get_llm_client(config),
        )
        duration_ms = (time.perf_counter() - start_time) * 1000

        debug_logger = get_debug_logger(config, state.get("session_id"))
        if debug_logger:
            debug_logger.log_llm_call(
                stage="planning",
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                response=llm_response,
                duration_ms=duration_ms,
                input_tokens=usage["input_tokens"],
                output_tokens=usage["output_tokens"],
                model=graph_config.model,
            )

        logger.info(
            f"{_log}LLM responded | duration={duration_ms:.0f}ms, "
            f"tokens_in={usage['input_tokens']}, tokens_out={usage['output_tokens']}"
        )

        plan = parse_plan_response(
            llm_response,
            query,
            max_verticals=graph_config.max_verticals,
            max_sections=graph_config.max_sections,
        )

    except LLMConfigurationError:
        logger.error(f"{_log}LLM is not configured; aborting research")
        raise

    except Exception as e:
        logger.exception(f"{_log}Planning failed, using fallback plan: {e}")
        errors.append(f"planning: {e}")
        plan = fallback_plan(query)

    logger.info(
        f"{_log}Plan ready | verticals={len(plan.verticals)}, "
        f"sections={len(plan.suggested_sections)}, fallback={plan.is_fallback}"
    )

    skeleton = build_skeleton(plan)
    await emit(config, events.skeleton_event(skeleton.model_dump()))

    return {
        "plan": plan.model_dump(),
        "surface_state": skeleton.model_dump(),
        "current_stage": "planning",
        "errors": errors,
        "messages": [
            {
                "role": "system",
                "agent": "planning",
                "content": (
                    f"Planned '{plan.title}' with {len(plan.verticals)} verticals "
                    f"and {len(plan.suggested_sections)} sections."
                ),
            }
        ],
    }
