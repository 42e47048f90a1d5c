"""LLM client utilities."""

from deep_research.shared.llm.client import (
    get_cached_client,
    get_llm_response_with_usage,
    LLMConfigurationError,
)

__all__ = ["get_cached_client", "get_llm_response_with_usage", "LLMConfigurationError"]
