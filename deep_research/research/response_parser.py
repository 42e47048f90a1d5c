"""
Response parser for the research pipeline.

Handles JSON extraction from LLM responses (raw JSON, markdown code
blocks, JSON surrounded by prose), maps the planner and synthesis wire
formats onto models, and extracts inline citation references and word
counts from generated sections.
"""

import json
import logging
import re
from typing import Any, Dict, List, Tuple

from deep_research.research.fallbacks import sections_from_verticals
from deep_research.research.schemas import PlannedSection, ResearchPlan
from deep_research.shared.contracts.research_output import ResearchVertical


logger = logging.getLogger(__name__)

DEFAULT_METHODOLOGY = "Multi-source web and academic research"
PENDING_ABSTRACT = "Research synthesis in progress..."

# [3] or grouped [3, 7]
CITATION_REF_PATTERN = re.compile(r"\[(\d+(?:\s*,\s*\d+)*)\]")


class ParseError(Exception):
    """Raised when response parsing fails."""

    pass


def extract_json_from_response(raw_response: str) -> str:
    """
    Extract the first JSON object from an LLM response.

    Handles multiple formats:
    - Raw JSON
    - JSON in markdown code blocks (```json ... ```)
    - JSON preceded or followed by prose

    Braces inside JSON strings are ignored when matching.

    Args:
        raw_response: Raw LLM response string

    Returns:
        JSON object text ready for parsing

    Raises:
        ParseError: If no JSON object is found
    """
    content = raw_response.strip()

    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    match = re.search(code_block_pattern, content)
    if match:
        content = match.group(1).strip()

    start = content.find("{")
    if start == -1:
        raise ParseError("No JSON object found in response")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(content)):
        char = content[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return content[start: i + 1]

    # Unbalanced; let the JSON parser report the problem
    return content[start:]


def _load_json_object(raw_response: str) -> Dict[str, Any]:
    json_str = extract_json_from_response(raw_response)
    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse response JSON: {e}")
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _unique_id(candidate: str, default: str, seen: set) -> str:
    item_id = candidate or default
    if item_id in seen:
        item_id = default
    while item_id in seen:
        item_id = f"{item_id}_"
    seen.add(item_id)
    return item_id


# =============================================================================
# Planning
# =============================================================================


def _as_query_list(value: Any) -> List[str]:
    """A single query string becomes a one-item list; other non-lists are empty."""
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [q for q in value if isinstance(q, str)]


def parse_verticals(items: Any, query: str, max_verticals: int) -> List[ResearchVertical]:
    """
    Map the planner's "verticals" array onto ResearchVertical models.

    Missing fields get defaults (id "v{n}", name "Research Angle {n}",
    queries [query]); duplicate ids are replaced by the positional id.
    """
    if not isinstance(items, list):
        return []

    verticals: List[ResearchVertical] = []
    seen: set = set()
    for raw in items:
        if len(verticals) >= max_verticals:
            break
        if not isinstance(raw, dict):
            continue
        n = len(verticals) + 1
        queries = [q.strip() for q in _as_query_list(raw.get("searchQueries")) if q.strip()]
        verticals.append(
            ResearchVertical(
                id=_unique_id(_clean_str(raw.get("id")), f"v{n}", seen),
                name=_clean_str(raw.get("name")) or f"Research Angle {n}",
                description=_clean_str(raw.get("description")),
                search_queries=queries or [query],
            )
        )
    return verticals


def parse_sections(
    items: Any,
    verticals: List[ResearchVertical],
    max_sections: int,
) -> List[PlannedSection]:
    """
    Map the planner's "suggestedSections" array onto PlannedSection models.

    A section pointing at an unknown vertical is reassigned to the first
    vertical, so every section has evidence to draw on.
    """
    if not isinstance(items, list):
        return []

    vertical_ids = {v.id for v in verticals}
    sections: List[PlannedSection] = []
    seen: set = set()
    for raw in items:
        if len(sections) >= max_sections:
            break
        if not isinstance(raw, dict):
            continue
        n = len(sections) + 1
        vertical_id = _clean_str(raw.get("verticalId"))
        if vertical_id not in vertical_ids:
            vertical_id = verticals[0].id
        sections.append(
            PlannedSection(
                id=_unique_id(_clean_str(raw.get("id")), f"s{n}", seen),
                heading=_clean_str(raw.get("heading")) or f"Section {n}",
                vertical_id=vertical_id,
                description=_clean_str(raw.get("description")),
            )
        )
    return sections


def parse_plan_response(
    raw_response: str,
    query: str,
    max_verticals: int = 6,
    max_sections: int = 15,
) -> ResearchPlan:
    """
    Parse the planner's response into a ResearchPlan.

    Args:
        raw_response: Raw LLM response string
        query: The user's research query (used for defaults)
        max_verticals: Cap on verticals
        max_sections: Cap on sections

    Returns:
        ResearchPlan; sections are derived from verticals if none were suggested

    Raises:
        ParseError: If the JSON is invalid or contains no usable verticals
    """
    data = _load_json_object(raw_response)

    verticals = parse_verticals(data.get("verticals"), query, max_verticals)
    if not verticals:
        raise ParseError("Plan contains no verticals")

    sections = parse_sections(data.get("suggestedSections"), verticals, max_sections)
    if not sections:
        logger.info("Plan has no suggested sections; deriving one per vertical")
        sections = sections_from_verticals(verticals)

    return ResearchPlan(
        title=_clean_str(data.get("title")) or query,
        query=query,
        verticals=verticals,
        suggested_sections=sections,
        methodology=_clean_str(data.get("methodology")) or DEFAULT_METHODOLOGY,
    )


# =============================================================================
# Synthesis
# =============================================================================


def parse_synthesis_response(raw_response: str) -> Tuple[str, List[str]]:
    """
    Parse the synthesis response.

    Args:
        raw_response: Raw LLM response string

    Returns:
        Tuple of (abstract, key findings)

    Raises:
        ParseError: If the JSON is invalid
    """
    data = _load_json_object(raw_response)
    abstract = _clean_str(data.get("abstract")) or PENDING_ABSTRACT
    findings = data.get("keyFindings") or []
    if not isinstance(findings, list):
        findings = []
    key_findings = [f.strip() for f in findings if isinstance(f, str) and f.strip()]
    return abstract, key_findings


# =============================================================================
# Sections
# =============================================================================


def extract_citation_refs(content: str) -> List[str]:
    """
    Extract inline citation ids in order of first appearance.

    Both "[3]" and grouped "[3, 7]" forms are recognized.

    Args:
        content: Generated markdown

    Returns:
        Unique citation ids as strings
    """
    refs: List[str] = []
    for match in CITATION_REF_PATTERN.finditer(content):
        for ref in match.group(1).split(","):
            ref = str(int(ref.strip()))
            if ref not in refs:
                refs.append(ref)
    return refs


def count_words(content: str) -> int:
    """Number of whitespace-separated tokens."""
    return len(content.split())
