"""Prompt templates and builders for the research pipeline."""

from deep_research.research.prompts.templates import (
    PLANNING_SYSTEM_PROMPT,
    SYNTHESIS_SYSTEM_PROMPT,
    SECTION_SYSTEM_PROMPT,
)
from deep_research.research.prompts.builders import (
    build_planning_prompt,
    build_synthesis_prompt,
    build_section_prompt,
)

__all__ = [
    "PLANNING_SYSTEM_PROMPT",
    "SYNTHESIS_SYSTEM_PROMPT",
    "SECTION_SYSTEM_PROMPT",
    "build_planning_prompt",
    "build_synthesis_prompt",
    "build_section_prompt",
]
