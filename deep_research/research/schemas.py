"""
Schemas for the research pipeline.

Defines the state schema for LangGraph and the intermediate models passed
between stages (plan, synthesis).
"""

from typing import TypedDict, List, Optional, Annotated
import operator

from pydantic import BaseModel, Field

from deep_research.shared.contracts.research_output import (
    ResearchCitation,
    ResearchVertical,
)


# =============================================================================
# Stage Models (Pydantic)
# =============================================================================


class PlannedSection(BaseModel):
    """A section suggested by the planner, before any content exists."""

    id: str
    heading: str
    vertical_id: str
    description: str = ""


class ResearchPlan(BaseModel):
    """Output of the planning stage."""

    title: str
    query: str
    verticals: List[ResearchVertical] = Field(min_length=1)
    suggested_sections: List[PlannedSection] = Field(default_factory=list)
    methodology: str = "Multi-source web and academic research"
    is_fallback: bool = False


class SynthesisResult(BaseModel):
    """Output of the synthesis stage."""

    abstract: str
    key_findings: List[str] = Field(default_factory=list)
    total_sources: int = 0
    all_citations: List[ResearchCitation] = Field(default_factory=list)
    is_fallback: bool = False


# =============================================================================
# LangGraph State Schema
# =============================================================================


class ResearchState(TypedDict):
    """
    State schema for the research pipeline.

    Stage outputs are stored as plain dicts (model_dump) so the state stays
    serializable; each node validates what it reads back into models.
    """

    # Input
    query: str
    conversation_id: Optional[str]
    user_id: Optional[str]

    # Stage outputs
    plan: Optional[dict]
    vertical_results: Optional[List[dict]]
    synthesis: Optional[dict]
    sections: Optional[List[dict]]
    research_output: Optional[dict]
    surface_state: Optional[dict]

    # Process tracking
    current_stage: str
    errors: Annotated[List[str], operator.add]
    messages: Annotated[List[dict], operator.add]
    session_id: Optional[str]
