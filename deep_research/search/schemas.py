"""
Schemas for search providers.

A provider returns a ProviderResult; the per-vertical aggregate merges
several of them into one deduplicated source list.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Literal

from pydantic import BaseModel, Field

from deep_research.shared.contracts.research_output import SourceType


ProviderName = Literal["exa", "perplexity", "semantic_scholar"]


class SearchSource(BaseModel):
    """A single retrieved document."""

    url: str
    title: str
    snippet: str = ""
    full_text: Optional[str] = Field(default=None, description="Up to 2000 chars")
    image: Optional[str] = None
    source_type: SourceType = "web"
    published_date: Optional[str] = None
    author: Optional[str] = None
    provider: Optional[ProviderName] = None


@dataclass
class ProviderResult:
    """
    Output of one provider call.

    Attributes:
        provider: Provider name
        sources: Documents returned by the provider
        synthesis: Free-text answer (only answer-engine providers fill it)
    """

    provider: str
    sources: List[SearchSource] = field(default_factory=list)
    synthesis: str = ""


class VerticalSearchResult(BaseModel):
    """Merged, deduplicated search output for one research vertical."""

    vertical_id: str
    query: str = ""
    sources: List[SearchSource] = Field(default_factory=list)
    synthesis: str = Field(default="", description="Answer-engine summary, if any")
    provider_counts: Dict[str, int] = Field(
        default_factory=dict, description="Raw result count per provider"
    )
    error: Optional[str] = None
