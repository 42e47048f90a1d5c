"""
Research output contract.

Defines the structured research document the pipeline produces and the
surface state that wraps it for persistence and streaming.
"""

import time
from typing import List, Optional, Literal
from pydantic import BaseModel, Field


SourceType = Literal["web", "academic", "news", "official"]
VerticalStatus = Literal["pending", "searching", "completed", "error"]
SectionStatus = Literal["pending", "generating", "completed", "failed"]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class ResearchVertical(BaseModel):
    """A research angle explored with its own searches."""

    id: str = Field(description="Vertical identifier (e.g., 'v1')")
    name: str = Field(description="Vertical name (e.g., 'Historical Context')")
    description: str = Field(default="", description="What this angle explores")
    search_queries: List[str] = Field(
        min_length=1, description="Search queries for this vertical"
    )
    status: VerticalStatus = Field(default="pending")
    sources_count: int = Field(default=0, ge=0)


class ResearchCitation(BaseModel):
    """A numbered source that generated prose can reference as [id]."""

    id: str = Field(description="1-based citation number as a string")
    url: str
    title: str
    snippet: str = Field(default="", description="Short excerpt (<= 200 chars)")
    source_type: SourceType = Field(default="web")
    author: Optional[str] = None
    date: Optional[str] = None
    vertical_ids: List[str] = Field(
        default_factory=list, description="Verticals whose searches surfaced this URL"
    )


class SectionCitation(BaseModel):
    """An evidence source shown alongside a section."""

    url: str
    title: str
    snippet: Optional[str] = None


class SectionImage(BaseModel):
    """An image pulled from a section's evidence."""

    url: str
    source_url: str
    source_title: str


class ResearchSection(BaseModel):
    """A single section of the research document."""

    id: str = Field(description="Section identifier (e.g., 's1')")
    heading: str
    vertical_id: str
    description: str = ""
    content: str = Field(default="", description="Markdown body with inline [n] citations")
    word_count: int = Field(default=0, ge=0)
    citations: List[str] = Field(
        default_factory=list, description="Citation ids used inline and backed by evidence"
    )
    unverified_citations: List[str] = Field(
        default_factory=list, description="Inline ids with no matching evidence"
    )
    section_citations: List[SectionCitation] = Field(default_factory=list)
    section_images: List[SectionImage] = Field(default_factory=list)
    status: SectionStatus = Field(default="pending")
    error: Optional[str] = None


class HeroImage(BaseModel):
    """A document-level image."""

    url: str
    title: str
    source_url: str


class ResearchOutputV1(BaseModel):
    """
    Contract for research pipeline output (v1).

    Holds the full research document: plan-derived structure, synthesized
    abstract and findings, generated sections, the global citation list
    and reading metrics.
    """

    type: Literal["research"] = "research"
    title: str
    query: str
    abstract: str = ""
    key_findings: List[str] = Field(default_factory=list)
    methodology: str = ""
    limitations: List[str] = Field(default_factory=list)
    generated_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    verticals: List[ResearchVertical] = Field(default_factory=list)
    sections: List[ResearchSection] = Field(default_factory=list)
    all_citations: List[ResearchCitation] = Field(default_factory=list)
    hero_images: List[HeroImage] = Field(default_factory=list)
    total_sources: int = Field(default=0, ge=0)
    total_word_count: int = Field(default=0, ge=0)
    estimated_read_time: int = Field(default=0, ge=0, description="Minutes")

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "type": "research",
                "title": "Solid-State Batteries: Chemistry, Scale-Up and Market Outlook",
                "query": "solid state batteries",
                "abstract": "Solid-state batteries replace liquid electrolytes...",
                "key_findings": ["Sulfide electrolytes lead on ionic conductivity [2]"],
                "methodology": "Multi-source web and academic research",
                "limitations": ["Research is based on publicly available sources"],
                "generated_at": 1760000000000,
                "verticals": [
                    {
                        "id": "v1",
                        "name": "Electrolyte Chemistry",
                        "description": "Materials and conductivity",
                        "search_queries": ["solid electrolyte ionic conductivity"],
                        "status": "completed",
                        "sources_count": 9,
                    }
                ],
                "sections": [
                    {
                        "id": "s1",
                        "heading": "Sulfide vs Oxide Electrolytes",
                        "vertical_id": "v1",
                        "content": "**Sulfide electrolytes** reach ... [1][2]",
                        "word_count": 512,
                        "citations": ["1", "2"],
                        "status": "completed",
                    }
                ],
                "all_citations": [
                    {
                        "id": "1",
                        "url": "https://arxiv.org/abs/2101.00001",
                        "title": "Sulfide solid electrolytes",
                        "snippet": "We report ...",
                        "source_type": "academic",
                        "vertical_ids": ["v1"],
                    }
                ],
                "hero_images": [],
                "total_sources": 1,
                "total_word_count": 512,
                "estimated_read_time": 3,
            }
        }


class SurfaceState(BaseModel):
    """A research document as a conversation surface."""

    id: Optional[str] = None
    surface_type: Literal["research"] = "research"
    metadata: ResearchOutputV1
    is_skeleton: bool = False
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    saved_at: Optional[int] = None
