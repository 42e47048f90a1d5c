"""
Debug logger for tracking LLM calls, provider searches, API timing, and costs.

Writes per-session JSON Lines files to the logs/ directory.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


# Token pricing per 1M tokens
MODEL_COSTS = {
    "openai/gpt-oss-120b": {"input": 0.15, "output": 0.75},
    "moonshotai/kimi-k2-instruct-0905": {"input": 1.00, "output": 3.00},
    "llama-3.3-70b-versatile": {"input": 0.59, "output": 0.79},
}

# Session-based logger registry to ensure same instance is reused
_logger_registry: Dict[str, "DebugLogger"] = {}


def get_or_create_logger(session_id: str, logs_dir: str = "logs") -> "DebugLogger":
    """
    Get an existing logger for the session or create a new one.

    The same DebugLogger instance is shared by every node that runs for
    a session, so token counts and costs accumulate in one place.

    Args:
        session_id: Unique session identifier
        logs_dir: Directory to store log files (default: "logs")

    Returns:
        DebugLogger instance for this session
    """
    if session_id not in _logger_registry:
        _logger_registry[session_id] = DebugLogger(session_id, logs_dir)
    return _logger_registry[session_id]


def remove_logger(session_id: str) -> None:
    """
    Remove a logger from the registry (e.g., after a run ends).

    Args:
        session_id: Session ID to remove
    """
    _logger_registry.pop(session_id, None)


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Calculate the cost of an LLM call based on token usage.

    Args:
        model: Model identifier (e.g., "openai/gpt-oss-120b")
        input_tokens: Number of input/prompt tokens
        output_tokens: Number of output/completion tokens

    Returns:
        Cost in USD (0.0 for unknown models)
    """
    costs = MODEL_COSTS.get(model, {"input": 0.0, "output": 0.0})
    input_cost = (input_tokens / 1_000_000) * costs["input"]
    output_cost = (output_tokens / 1_000_000) * costs["output"]
    return input_cost + output_cost


@dataclass
class StageUsage:
    """Token, cost and timing totals for one pipeline stage."""

    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    duration_ms: float = 0.0

    def add(self, input_tokens: int, output_tokens: int, cost: float, duration_ms: float) -> None:
        self.calls += 1
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost += cost
        self.duration_ms += duration_ms

    def as_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost_usd": round(self.cost, 6),
            "duration_ms": round(self.duration_ms, 2),
        }


class DebugLogger:
    """
    Debug logger that writes per-session JSON log files.

    Tracks LLM calls (per pipeline stage), provider searches, API timing,
    token usage and costs. Log files are written in JSON Lines format
    (one JSON object per line) inside a folder named after the session.
    """

    def __init__(self, session_id: str, logs_dir: str = "logs"):
        self.session_id = session_id
        self.session_dir = Path(logs_dir) / session_id
        self.log_file = self.session_dir / "session_logs.json"
        self.session_dir.mkdir(parents=True, exist_ok=True)

        self._stages: Dict[str, StageUsage] = {}
        self._search_call_count = 0
        self._failed_searches = 0
        self._sources_found = 0
        self._total_search_duration_ms = 0.0
        self._total_api_duration_ms = 0.0

    def _write(self, entry_type: str, **fields: Any) -> Dict[str, Any]:
        entry = {
            "type": entry_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            **fields,
        }
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        return entry

    def log_llm_call(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        response: str,
        duration_ms: float,
        input_tokens: int,
        output_tokens: int,
        model: str,
        item_id: Optional[str] = None,
    ) -> None:
        """
        Log an LLM call with prompts, response, timing, and token usage.

        Args:
            stage: Pipeline stage ("planning", "synthesis", "section")
            system_prompt: System prompt sent to the model
            user_prompt: User prompt sent to the model
            response: Model's response
            duration_ms: Time taken for the LLM call in milliseconds
            input_tokens: Number of input tokens
            output_tokens: Number of output tokens
            model: Model identifier
            item_id: Section id for per-section calls
        """
        cost = calculate_cost(model, input_tokens, output_tokens)
        self._stages.setdefault(stage, StageUsage()).add(
            input_tokens, output_tokens, cost, duration_ms
        )

        fields: Dict[str, Any] = {
            "stage": stage,
            "model": model,
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "response": response,
            "duration_ms": round(duration_ms, 2),
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "cost_usd": round(cost, 6),
        }
        if item_id is not None:
            fields["item_id"] = item_id
        self._write("llm_call", **fields)

    def log_search_call(
        self,
        vertical_id: str,
        query: str,
        duration_ms: float,
        sources_count: int,
        providers: Dict[str, int],
        error: Optional[str] = None,
    ) -> None:
        """
        Log a per-vertical search with the number of sources per provider.

        Args:
            vertical_id: Vertical that was searched
            query: Search query sent to providers
            duration_ms: Wall time of the whole vertical search
            sources_count: Sources kept after dedup
            providers: Mapping of provider name to raw result count
            error: Error message if the vertical failed
        """
        self._search_call_count += 1
        self._sources_found += sources_count
        self._total_search_duration_ms += duration_ms
        if error:
            self._failed_searches += 1

        fields: Dict[str, Any] = {
            "vertical_id": vertical_id,
            "query": query,
            "duration_ms": round(duration_ms, 2),
            "sources_count": sources_count,
            "providers": providers,
        }
        if error:
            fields["error"] = error
        self._write("search_call", **fields)

    def log_api_timing(
        self,
        endpoint: str,
        duration_ms: float,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        """Log the wall time of an API request (e.g., "/api/research/stream")."""
        self._total_api_duration_ms += duration_ms
        fields: Dict[str, Any] = {
            "endpoint": endpoint,
            "duration_ms": round(duration_ms, 2),
            "success": success,
        }
        if error:
            fields["error"] = error
        self._write("api_timing", **fields)

    def log_session_summary(self, total_sections: int, total_sources: int) -> Dict[str, Any]:
        """
        Log and return a session summary with totals.

        Args:
            total_sections: Number of sections in the finished document
            total_sources: Number of unique citations in the finished document

        Returns:
            Summary dictionary with all totals
        """
        return self._write(
            "session_summary",
            total_sections=total_sections,
            total_sources=total_sources,
            **self.get_accumulated_stats(),
        )

    def get_accumulated_stats(self) -> Dict[str, Any]:
        """
        Current totals without logging.

        LLM totals are summed over the per-stage usage, which is also
        reported under "stages".
        """
        stages = list(self._stages.values())
        input_tokens = sum(s.input_tokens for s in stages)
        output_tokens = sum(s.output_tokens for s in stages)
        return {
            "total_input_tokens": input_tokens,
            "total_output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "total_cost_usd": round(sum(s.cost for s in stages), 6),
            "total_llm_duration_ms": round(sum(s.duration_ms for s in stages), 2),
            "total_search_duration_ms": round(self._total_search_duration_ms, 2),
            "total_api_duration_ms": round(self._total_api_duration_ms, 2),
            "llm_call_count": sum(s.calls for s in stages),
            "search_call_count": self._search_call_count,
            "failed_search_count": self._failed_searches,
            "sources_found": self._sources_found,
            "stages": {name: usage.as_dict() for name, usage in self._stages.items()},
        }
