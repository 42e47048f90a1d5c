"""Output contracts shared by the pipeline, the API and the store."""

from deep_research.shared.contracts.research_output import (
    ResearchOutputV1,
    ResearchVertical,
    ResearchSection,
    ResearchCitation,
    SurfaceState,
)

__all__ = [
    "ResearchOutputV1",
    "ResearchVertical",
    "ResearchSection",
    "ResearchCitation",
    "SurfaceState",
]
