"""
Prompt templates for the research pipeline.

One system prompt and one user template per LLM stage. User templates
are filled by the builders module; JSON keys in the templates are the
wire format the response parser expects.
"""

from typing import List
from pydantic import BaseModel, Field


class SectionPromptConfig(BaseModel):
    """
    Inputs needed to render a section-writing prompt.

    Validated separately so a malformed plan fails before the LLM call.
    """

    document_title: str = Field(description="Title of the research document")
    heading: str = Field(description="Heading of the section to write")
    description: str = Field(default="", description="What the section covers")
    vertical_name: str = Field(default="main", description="Vertical the section belongs to")
    structure: List[str] = Field(default_factory=list, description="All section headings")
    source_lines: List[str] = Field(default_factory=list, description="Numbered evidence lines")

    def format_prompt(self, template: str) -> str:
        """
        Format the section template with this config's values.

        Args:
            template: SECTION_PROMPT_TEMPLATE

        Returns:
            Formatted prompt string
        """
        return template.format(
            heading=self.heading,
            document_title=self.document_title,
            vertical_name=self.vertical_name,
            structure=", ".join(self.structure) or self.heading,
            description=self.description or "Cover this topic comprehensively",
            sources="\n\n".join(self.source_lines) or "No sources were retrieved for this section.",
        )


# =============================================================================
# Planning
# =============================================================================

PLANNING_SYSTEM_PROMPT = (
    "You are a research methodology expert. "
    "Create comprehensive, domain-appropriate research plans."
)

PLANNING_PROMPT_TEMPLATE = """Analyze this research query and create a comprehensive research plan.

QUERY: "{query}"

You must determine:
1. A proper research title
2. {min_verticals}-{max_verticals} research verticals (angles/perspectives to explore)
3. 10-{max_sections} sections that would create a comprehensive research document
4. Brief methodology description

Vertical types worth considering: historical/background context, current state and latest research,
key players and organizations, data and statistics, case studies, challenges and limitations,
future outlook, opposing views and critiques.

The sections should be SPECIFIC to this query - not generic. Think about what a researcher would actually want to know about this topic.

Return JSON:
{{
  "title": "Comprehensive research title",
  "verticals": [
    {{
      "id": "v1",
      "name": "Vertical name",
      "description": "What this explores",
      "searchQueries": ["specific search query 1", "specific search query 2"]
    }}
  ],
  "suggestedSections": [
    {{
      "id": "s1",
      "heading": "Section heading specific to topic",
      "verticalId": "v1",
      "description": "What this section will cover"
    }}
  ],
  "methodology": "Brief description of research approach"
}}

IMPORTANT: Make sections SPECIFIC to the query, not generic like "Overview" or "Conclusion".
For example, if query is about "quantum computing", sections might be:
- "Qubit Technologies: Superconducting vs Ion Trap"
- "Current Quantum Supremacy Claims and Critiques"
- "Near-term Applications: Optimization and Simulation"

Return ONLY valid JSON."""


# =============================================================================
# Synthesis
# =============================================================================

SYNTHESIS_SYSTEM_PROMPT = (
    "You are a research analyst. Synthesize findings accurately and specifically."
)

SYNTHESIS_PROMPT_TEMPLATE = """Based on the following research findings, create:
1. A comprehensive abstract (200-300 words) synthesizing all key information
2. 5-7 key findings as bullet points

RESEARCH TITLE: "{title}"

SOURCE FINDINGS:
{source_context}

Return JSON:
{{
  "abstract": "200-300 word synthesis of all findings...",
  "keyFindings": [
    "Key finding 1 with specific details",
    "Key finding 2 with specific details",
    "Key finding 3 with specific details",
    "Key finding 4 with specific details",
    "Key finding 5 with specific details"
  ]
}}

IMPORTANT: Base findings on the actual source content. Be specific, not generic.
Return ONLY valid JSON."""


# =============================================================================
# Sections
# =============================================================================

SECTION_SYSTEM_PROMPT = (
    "You are a research writer producing well-cited, professional content. "
    "Always include inline citations [1], [2], etc. and only cite the numbered sources you are given."
)

SECTION_PROMPT_TEMPLATE = """Write the "{heading}" section for a research document about "{document_title}".

DOCUMENT STRUCTURE: {structure}

SECTION CONTEXT: This section is part of the "{vertical_name}" research vertical.

SECTION DESCRIPTION: {description}

AVAILABLE SOURCES:
{sources}

REQUIREMENTS:
1. Write 400-600 words of well-researched content
2. Use inline citations like [3] or [7] using ONLY the source numbers listed above
3. Be specific and evidence-based - cite sources for claims
4. Use markdown formatting: **bold** for key terms, bullet lists where appropriate
5. Maintain academic/professional tone
6. Do NOT include the section heading in your response

Return ONLY the section content in markdown format with inline citations."""
