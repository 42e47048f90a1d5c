"""
Graph configuration for the research pipeline.

Centralizes the tunables of the research LangGraph workflow, making it
easy to adjust fan-out, limits and models without modifying the graph
wiring.
"""

import os
from dataclasses import dataclass, fields
from typing import Any


@dataclass
class ResearchGraphConfig:
    """
    Configuration for the research graph.

    Attributes:
        recursion_limit: Maximum number of graph steps
        max_verticals: Cap on research verticals taken from the plan
        max_sections: Cap on document sections taken from the plan
        max_sources_per_vertical: Cap on deduplicated sources per vertical
        max_sources_per_section: Evidence sources handed to one section prompt
        parallel_searches: Batch size for concurrent vertical searches
        parallel_sections: Batch size for concurrent section generation
        words_per_minute: Reading speed for the read-time estimate
        max_hero_images: Document-level images to collect
        model: LLM model for every stage
    """

    # Graph execution limits
    recursion_limit: int = 25

    # Plan limits
    max_verticals: int = 6
    max_sections: int = 15
    max_sources_per_vertical: int = 12
    max_sources_per_section: int = 6

    # Fan-out (fixed batch sizes)
    parallel_searches: int = 3
    parallel_sections: int = 3

    # Metrics
    words_per_minute: int = 200
    max_hero_images: int = 4

    # Context truncation (characters)
    synthesis_context_chars: int = 6000

    # LLM configuration
    model: str = "openai/gpt-oss-120b"
    planning_temperature: float = 0.4
    planning_max_tokens: int = 2000
    synthesis_temperature: float = 0.3
    synthesis_max_tokens: int = 1500
    section_temperature: float = 0.4
    section_max_tokens: int = 1500

    # Search providers
    exa_results: int = 8
    scholar_results: int = 5
    perplexity_max_tokens: int = 1500
    enable_semantic_scholar: bool = True

    # Debug logs (per-session JSONL under logs_dir)
    enable_debug_logs: bool = os.getenv("RESEARCH_DEBUG_LOGS", "").lower() in ("1", "true", "yes")
    logs_dir: str = "logs"


# Default configuration instance
DEFAULT_CONFIG = ResearchGraphConfig()


def get_config(**overrides: Any) -> ResearchGraphConfig:
    """
    Create a configuration with optional overrides.

    Keys left out, or passed as None, keep the DEFAULT_CONFIG value.

    Args:
        **overrides: Field values to override

    Returns:
        ResearchGraphConfig with specified overrides applied

    Raises:
        TypeError: If an override names an unknown field
    """
    known = {f.name for f in fields(ResearchGraphConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise TypeError(f"Unknown research config fields: {sorted(unknown)}")

    values = {name: getattr(DEFAULT_CONFIG, name) for name in known}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ResearchGraphConfig(**values)
