"""
Research pipeline for generating cited research documents.

The pipeline plans research verticals for a query, searches them in
parallel across web and academic providers, synthesizes the findings,
writes evidence-grounded sections in parallel and finalizes reading
metrics.
"""

from deep_research.research.schemas import ResearchState
from deep_research.research.graph.build import create_research_graph, run_research

__all__ = ["ResearchState", "create_research_graph", "run_research"]
