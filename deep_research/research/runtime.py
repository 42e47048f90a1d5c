"""
Per-run dependencies passed to nodes through the LangGraph RunnableConfig.

The caller puts these under config["configurable"]:
- research_config: ResearchGraphConfig for this run
- emit: callable (sync or async) receiving stream event dicts
- providers: search providers to use instead of the environment defaults
- llm_client: OpenAI-compatible async client to use instead of the cached one
"""

import inspect
import logging
from typing import Any, Dict, List, Optional

from langchain_core.runnables import RunnableConfig

from deep_research.research.graph.config import ResearchGraphConfig, DEFAULT_CONFIG
from deep_research.search.providers import SearchProvider, build_providers
from deep_research.shared.logging.debug_logger import DebugLogger, get_or_create_logger


logger = logging.getLogger(__name__)


def _configurable(config: Optional[RunnableConfig]) -> Dict[str, Any]:
    if not config:
        return {}
    return config.get("configurable") or {}


def get_graph_config(config: Optional[RunnableConfig]) -> ResearchGraphConfig:
    """The run's ResearchGraphConfig, or DEFAULT_CONFIG."""
    return _configurable(config).get("research_config") or DEFAULT_CONFIG


def get_llm_client(config: Optional[RunnableConfig]) -> Any:
    """Injected LLM client, or None to use the cached client."""
    return _configurable(config).get("llm_client")


def has_injected_providers(config: Optional[RunnableConfig]) -> bool:
    """True when the caller supplied providers (and so owns their lifecycle)."""
    return _configurable(config).get("providers") is not None


def get_providers(config: Optional[RunnableConfig]) -> List[SearchProvider]:
    """Injected search providers, or the providers configured by the environment."""
    providers = _configurable(config).get("providers")
    if providers is not None:
        return list(providers)
    graph_config = get_graph_config(config)
    return build_providers(
        exa_results=graph_config.exa_results,
        scholar_results=graph_config.scholar_results,
        perplexity_max_tokens=graph_config.perplexity_max_tokens,
        enable_semantic_scholar=graph_config.enable_semantic_scholar,
    )


def get_debug_logger(config: Optional[RunnableConfig], session_id: Optional[str]) -> Optional[DebugLogger]:
    """The session's debug logger when debug logs are enabled."""
    graph_config = get_graph_config(config)
    if not graph_config.enable_debug_logs or not session_id:
        return None
    return get_or_create_logger(session_id, logs_dir=graph_config.logs_dir)


async def emit(config: Optional[RunnableConfig], event: Dict[str, Any]) -> None:
    """
    Send a stream event to the run's emitter, if any.

    A failing emitter is logged and never interrupts the pipeline.
    """
    callback = _configurable(config).get("emit")
    if callback is None:
        return
    try:
        result = callback(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(f"Failed to emit '{event.get('type')}' event: {e}")
