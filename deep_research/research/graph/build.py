"""
Graph construction for the research pipeline.

Builds and compiles the LangGraph workflow and provides a helper that runs
it once for a query with per-run dependencies.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from langgraph.graph import StateGraph, END

from deep_research.research.schemas import ResearchState
from deep_research.research.nodes.planning import planning_node
from deep_research.research.nodes.searching import searching_node
from deep_research.research.nodes.synthesis import synthesis_node
from deep_research.research.nodes.sections import sections_node
from deep_research.research.nodes.finalize import finalize_node
from deep_research.research.graph.config import ResearchGraphConfig, DEFAULT_CONFIG
from deep_research.search.providers import SearchProvider


logger = logging.getLogger(__name__)

# Compiled graph instance (shared across runs)
_graph = None


def create_research_graph(
    config: Optional[ResearchGraphConfig] = None,
):
    """
    Create and compile the LangGraph workflow for research.

    The graph structure is:
        Entry -> planning -> searching -> synthesis -> sections -> finalize -> END

    Args:
        config: Optional configuration. Uses DEFAULT_CONFIG if not provided.

    Returns:
        Compiled LangGraph application ready for execution.
    """
    if config is None:
        config = DEFAULT_CONFIG

    graph = StateGraph(ResearchState)

    # Add nodes
    graph.add_node("planning", planning_node)
    graph.add_node("searching", searching_node)
    graph.add_node("synthesis", synthesis_node)
    graph.add_node("sections", sections_node)
    graph.add_node("finalize", finalize_node)

    # Set entry point and edges
    graph.set_entry_point("planning")
    graph.add_edge("planning", "searching")
    graph.add_edge("searching", "synthesis")
    graph.add_edge("synthesis", "sections")
    graph.add_edge("sections", "finalize")
    graph.add_edge("finalize", END)

    app = graph.compile()

    return app


def get_graph():
    """Get or create the shared graph instance."""
    global _graph
    if _graph is None:
        _graph = create_research_graph()
    return _graph


def create_initial_state(
    query: str,
    session_id: str,
    conversation_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> ResearchState:
    """Create the initial state for a research run."""
    return {
        # Input
        "query": query,
        "conversation_id": conversation_id,
        "user_id": user_id,
        # Stage outputs
        "plan": None,
        "vertical_results": None,
        "synthesis": None,
        "sections": None,
        "research_output": None,
        "surface_state": None,
        # Process tracking
        "current_stage": "start",
        "errors": [],
        "messages": [],
        "session_id": session_id,
    }


async def run_research(
    query: str,
    session_id: Optional[str] = None,
    emit: Optional[Callable[[Dict[str, Any]], Any]] = None,
    config: Optional[ResearchGraphConfig] = None,
    providers: Optional[List[SearchProvider]] = None,
    llm_client: Optional[Any] = None,
    conversation_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the research pipeline once.

    Args:
        query: Research query
        session_id: Session id for log correlation (generated if omitted)
        emit: Callback (sync or async) receiving stream events
        config: Graph configuration. Uses DEFAULT_CONFIG if not provided.
        providers: Search providers. Built from the environment if omitted.
        llm_client: LLM client. The cached client is used if omitted.
        conversation_id: Conversation the result belongs to
        user_id: Requesting user

    Returns:
        Final ResearchState

    Raises:
        LLMConfigurationError: If the LLM API key is missing
    """
    if config is None:
        config = DEFAULT_CONFIG
    if session_id is None:
        session_id = str(uuid.uuid4())

    configurable: Dict[str, Any] = {
        "thread_id": session_id,
        "research_config": config,
        "emit": emit,
    }
    if providers is not None:
        configurable["providers"] = providers
    if llm_client is not None:
        configurable["llm_client"] = llm_client

    initial_state = create_initial_state(query, session_id, conversation_id, user_id)
    logger.info(f"[session={session_id}] [graph=research] Starting run | query='{query[:80]}'")

    return await get_graph().ainvoke(
        initial_state,
        {"configurable": configurable, "recursion_limit": config.recursion_limit},
    )
