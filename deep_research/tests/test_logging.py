"""
Tests for structured logging and per-session debug logs.
"""

import asyncio
import json
import logging

import pytest

from deep_research.research.events import format_sse, phase_event
from deep_research.research.graph.build import run_research
from deep_research.research.graph.config import get_config
from deep_research.shared.logging.config import (
    StructuredFormatter,
    log_stage_transition,
    split_context,
)
from deep_research.shared.logging.debug_logger import calculate_cost, remove_logger


# ============================================================================
# Test Fixtures
# ============================================================================


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _read_jsonl(path):
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


# ============================================================================
# TestStructuredLogging
# ============================================================================


class TestStructuredLogging:
    """Tests for the JSON formatter and stage transition helper."""

    def test_stage_transition_summary(self):
        logger = logging.getLogger("deep_research.tests.transition")
        handler = _ListHandler()
        logger.addHandler(handler)
        try:
            state = {
                "session_id": "s-1",
                "current_stage": "sections",
                "plan": {"verticals": [{"status": "completed"}, {"status": "error"}]},
                "sections": [{"status": "completed"}, {"status": "completed"}, {"status": "failed"}],
                "errors": ["section:s2: boom"],
            }
            log_stage_transition("research_complete", state, extra={"k": 1}, logger=logger)
        finally:
            logger.removeHandler(handler)

        record = handler.records[0]
        assert record.extra["event"] == "research_complete"
        assert record.extra["state_summary"]["verticals"] == 2
        assert record.extra["state_summary"]["sections"] == 3
        assert record.extra["state_summary"]["section_status"] == {"completed": 2, "failed": 1}
        assert record.extra["state_summary"]["vertical_status"] == {"completed": 1, "error": 1}
        assert record.extra["state_summary"]["errors"] == 1
        assert record.extra["extra"] == {"k": 1}

        formatted = json.loads(StructuredFormatter().format(record))
        assert formatted["level"] == "INFO"
        assert formatted["message"] == "Stage transition: research_complete"
        assert formatted["extra"]["state_summary"]["session_id"] == "s-1"
        assert formatted["context"] == {"session": "s-1", "graph": "research"}

    def test_split_context(self):
        context, message = split_context("[session=abc] [node=planning] Plan ready [1]")
        assert context == {"session": "abc", "node": "planning"}
        assert message == "Plan ready [1]"
        assert split_context("no tags") == ({}, "no tags")

    def test_calculate_cost(self):
        assert calculate_cost("openai/gpt-oss-120b", 1_000_000, 1_000_000) == pytest.approx(0.9)
        assert calculate_cost("unknown-model", 1000, 1000) == 0.0

    def test_format_sse(self):
        frame = format_sse(phase_event("planning"))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {
            "type": "phase",
            "phase": "planning",
            "message": "Analyzing research angles...",
        }


# ============================================================================
# TestDebugLogs
# ============================================================================


class TestDebugLogs:
    """Tests for per-session JSONL debug logs written during a run."""

    def test_run_writes_debug_log(self, fake_llm, fake_provider, tmp_path):
        config = get_config(enable_debug_logs=True, logs_dir=str(tmp_path))
        try:
            asyncio.run(
                run_research(
                    "solid state batteries",
                    session_id="debug-session",
                    config=config,
                    providers=[fake_provider],
                    llm_client=fake_llm,
                )
            )
        finally:
            remove_logger("debug-session")

        entries = _read_jsonl(tmp_path / "debug-session" / "session_logs.json")
        types = [e["type"] for e in entries]

        assert types.count("llm_call") == 5
        assert types.count("search_call") == 2
        assert types[-1] == "session_summary"

        stages = [e["stage"] for e in entries if e["type"] == "llm_call"]
        assert stages[:2] == ["planning", "synthesis"]
        assert stages.count("section") == 3

        summary = entries[-1]
        assert summary["total_sections"] == 3
        assert summary["total_sources"] == 3
        assert summary["llm_call_count"] == 5
        assert summary["total_input_tokens"] == 50
        assert summary["stages"]["section"]["calls"] == 3
        assert summary["stages"]["planning"]["input_tokens"] == 10
        assert summary["search_call_count"] == 2
        assert summary["failed_search_count"] == 0

    def test_no_debug_log_by_default(self, fake_llm, fake_provider, tmp_path):
        config = get_config(enable_debug_logs=False, logs_dir=str(tmp_path))
        asyncio.run(
            run_research(
                "q",
                session_id="quiet-session",
                config=config,
                providers=[fake_provider],
                llm_client=fake_llm,
            )
        )
        assert not (tmp_path / "quiet-session").exists()


# ============================================================================
# TestConfig
# ============================================================================


class TestConfig:
    """Tests for get_config."""

    def test_overrides(self):
        config = get_config(parallel_searches=5, model=None)
        assert config.parallel_searches == 5
        assert config.model == "openai/gpt-oss-120b"
        assert config.max_verticals == 6

    def test_unknown_field(self):
        with pytest.raises(TypeError):
            get_config(not_a_field=1)
