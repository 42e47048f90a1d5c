"""
Stream events emitted while a research document is generated.

Each builder returns a plain dict with a "type" key. The API layer frames
events as server-sent events; the blocking endpoint ignores them.
"""

import json
from typing import Any, Dict, List, Optional


PHASE_MESSAGES = {
    "planning": "Analyzing research angles...",
    "searching": "Searching sources...",
    "synthesis": "Synthesizing findings...",
    "sections": "Generating sections...",
    "finalizing": "Finalizing research...",
}


def phase_event(phase: str, message: Optional[str] = None) -> Dict[str, Any]:
    return {
        "type": "phase",
        "phase": phase,
        "message": message or PHASE_MESSAGES.get(phase, phase),
    }


def skeleton_event(surface_state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "skeleton", "data": surface_state}


def vertical_start_event(vertical_id: str, name: str) -> Dict[str, Any]:
    return {"type": "vertical_start", "vertical_id": vertical_id, "name": name}


def vertical_complete_event(vertical_id: str, sources_count: int) -> Dict[str, Any]:
    return {
        "type": "vertical_complete",
        "vertical_id": vertical_id,
        "sources_count": sources_count,
    }


def vertical_error_event(vertical_id: str, error: str) -> Dict[str, Any]:
    return {"type": "vertical_error", "vertical_id": vertical_id, "error": error}


def synthesis_event(abstract: str, key_findings: List[str]) -> Dict[str, Any]:
    return {
        "type": "synthesis",
        "data": {"abstract": abstract, "key_findings": key_findings},
    }


def section_start_event(section_id: str, heading: str) -> Dict[str, Any]:
    return {"type": "section_start", "section_id": section_id, "heading": heading}


def section_complete_event(section_id: str, content: str, word_count: int) -> Dict[str, Any]:
    return {
        "type": "section_complete",
        "section_id": section_id,
        "content": content,
        "word_count": word_count,
    }


def section_error_event(section_id: str, error: str) -> Dict[str, Any]:
    return {"type": "section_error", "section_id": section_id, "error": error}


def complete_event(surface_state: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "complete", "surface_state": surface_state}


def error_event(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}


def format_sse(event: Dict[str, Any]) -> str:
    """
    Frame an event as a server-sent event.

    Args:
        event: Event dict

    Returns:
        "data: {json}\\n\\n"
    """
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
