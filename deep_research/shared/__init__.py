"""
Shared infrastructure for the research pipeline.

Modules:
- llm: OpenAI-compatible async client with retry logic
- logging: Structured JSON logging and per-session debug logs
- contracts: Research document output contracts
"""

from deep_research.shared.llm.client import get_cached_client, get_llm_response_with_usage
from deep_research.shared.logging.config import setup_logging, log_stage_transition

__all__ = [
    "get_cached_client",
    "get_llm_response_with_usage",
    "setup_logging",
    "log_stage_transition",
]
