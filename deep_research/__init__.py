"""
Deep research service.

This package contains:
- shared/: Common infrastructure (LLM client, logging, output contracts)
- search/: Web and academic search providers and per-vertical aggregation
- research/: Research pipeline (plan -> search -> synthesize -> sections -> finalize)
- store/: In-memory conversations, saved surfaces and credits
"""

from deep_research.research.graph.build import create_research_graph, run_research

__all__ = ["create_research_graph", "run_research"]
