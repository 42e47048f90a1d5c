"""
Graph configuration for the research pipeline.

The compiled graph lives in deep_research.research.graph.build; it is not
imported here because the nodes themselves depend on this configuration.
"""

from deep_research.research.graph.config import ResearchGraphConfig, DEFAULT_CONFIG, get_config

__all__ = ["ResearchGraphConfig", "DEFAULT_CONFIG", "get_config"]
