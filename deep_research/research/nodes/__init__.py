"""Graph nodes for the research pipeline."""

from deep_research.research.nodes.planning import planning_node
from deep_research.research.nodes.searching import searching_node
from deep_research.research.nodes.synthesis import synthesis_node
from deep_research.research.nodes.sections import (
    sections_node,
    generate_research_section,
    retry_research_section,
)
from deep_research.research.nodes.finalize import finalize_node

__all__ = [
    "planning_node",
    "searching_node",
    "synthesis_node",
    "sections_node",
    "finalize_node",
    "generate_research_section",
    "retry_research_section",
]
