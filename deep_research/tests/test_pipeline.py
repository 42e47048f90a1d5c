"""
Tests for the research pipeline graph.

Runs the full LangGraph workflow with fake search providers and a fake
LLM client injected through the run's configurable dependencies.
"""

import asyncio
import json

import pytest

from deep_research.research.graph.build import create_research_graph, run_research
from deep_research.research.graph.config import get_config
from deep_research.shared.contracts.research_output import SurfaceState
from deep_research.shared.llm import client as llm_client_module
from deep_research.shared.llm.client import LLMConfigurationError


# ============================================================================
# Test Fixtures
# ============================================================================


def _run(query="solid state batteries", **kwargs):
    """Run the pipeline to completion and return the final state."""
    return asyncio.run(run_research(query, session_id="test-session-001", **kwargs))


def _sections_by_id(result):
    return {s["id"]: s for s in result["research_output"]["sections"]}


def _section_failing_responder(plan_json, heading):
    """Responder that fails the section with the given heading."""

    def responder(stage, messages):
        if stage == "planning":
            return plan_json
        if stage == "synthesis":
            return json.dumps({"abstract": "Abstract.", "keyFindings": ["One"]})
        if f'"{heading}"' in messages[1]["content"]:
            raise RuntimeError("upstream 500")
        return "Plain content [1]."

    return responder


# ============================================================================
# TestResearchGraph
# ============================================================================


class TestResearchGraph:
    """Tests for graph construction."""

    def test_graph_compiles(self):
        """Graph should compile with all five stages."""
        graph = create_research_graph()
        nodes = set(graph.get_graph().nodes)
        assert {"planning", "searching", "synthesis", "sections", "finalize"} <= nodes


# ============================================================================
# TestPipelineRun
# ============================================================================


class TestPipelineRun:
    """Tests for a complete pipeline run."""

    def test_pipeline_completes(self, fake_llm, fake_provider):
        """Run should end with a finished, non-skeleton surface."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)

        assert result["current_stage"] == "complete"
        surface = SurfaceState.model_validate(result["surface_state"])
        assert surface.is_skeleton is False
        assert surface.metadata.title == "Battery Research"
        assert surface.metadata.query == "solid state batteries"
        assert surface.metadata.abstract == "Batteries are improving."
        assert surface.metadata.key_findings == ["Finding one", "Finding two"]
        assert result["errors"] == []

    def test_one_search_per_vertical(self, fake_llm, fake_provider):
        """Each vertical's first search query should be sent once."""
        _run(providers=[fake_provider], llm_client=fake_llm)
        assert sorted(fake_provider.queries) == ["battery chemistry", "battery market"]

    def test_citation_registry_dedup_and_attribution(self, fake_llm, fake_provider):
        """A URL found by two verticals gets one id listing both verticals."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)
        citations = result["research_output"]["all_citations"]

        assert [c["id"] for c in citations] == ["1", "2", "3"]
        shared = [c for c in citations if c["url"] == "https://arxiv.org/abs/shared"]
        assert len(shared) == 1
        assert shared[0]["id"] == "2"
        assert shared[0]["vertical_ids"] == ["v1", "v2"]
        assert result["research_output"]["total_sources"] == 3

    def test_section_citations_verified_against_evidence(self, fake_llm, fake_provider):
        """Inline refs outside a section's evidence are flagged unverified."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)
        sections = _sections_by_id(result)

        # s1 draws on v1 (ids 1, 2); s2 on v2 (ids 3, 2)
        assert sections["s1"]["citations"] == ["1", "2"]
        assert sections["s1"]["unverified_citations"] == ["3", "42"]
        assert sections["s2"]["citations"] == ["2", "3"]
        assert sections["s2"]["unverified_citations"] == ["1", "42"]

    def test_section_prompts_use_global_ids(self, fake_llm, fake_provider):
        """Evidence in a section prompt is labelled with global citation ids."""
        _run(providers=[fake_provider], llm_client=fake_llm)
        market_prompt = next(
            c["messages"][1]["content"]
            for c in fake_llm.calls
            if c["stage"] == "section" and '"Market Size"' in c["messages"][1]["content"]
        )
        assert "[3] battery market page" in market_prompt
        assert "[2] Shared paper" in market_prompt
        assert "[1] " not in market_prompt

    def test_metrics(self, fake_llm, fake_provider):
        """Word counts sum over sections; read time rounds up."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)
        output = result["research_output"]

        assert all(s["word_count"] == 8 for s in output["sections"])
        assert output["total_word_count"] == 24
        assert output["estimated_read_time"] == 1

    def test_section_extras(self, fake_llm, fake_provider):
        """Sections carry evidence citations and images; document gets hero images."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)
        output = result["research_output"]
        s1 = _sections_by_id(result)["s1"]

        assert [c["url"] for c in s1["section_citations"]] == [
            "https://example.com/battery-chemistry/a",
            "https://arxiv.org/abs/shared",
        ]
        assert len(s1["section_images"]) == 1
        assert [h["url"] for h in output["hero_images"]] == [
            "https://img.example.com/battery-chemistry.png",
            "https://img.example.com/battery-market.png",
        ]

    def test_verticals_and_limitations(self, fake_llm, fake_provider):
        """Verticals end completed with counts; default limitations are set."""
        result = _run(providers=[fake_provider], llm_client=fake_llm)
        output = result["research_output"]

        assert [(v["status"], v["sources_count"]) for v in output["verticals"]] == [
            ("completed", 2),
            ("completed", 2),
        ]
        assert output["limitations"] == [
            "Research is based on publicly available sources",
            "May not include latest developments",
        ]
        assert output["methodology"] == "Web and academic search"

    def test_llm_settings_per_stage(self, fake_llm, fake_provider):
        """Planning and synthesis request JSON; sections request prose."""
        _run(providers=[fake_provider], llm_client=fake_llm)
        by_stage = {}
        for call in fake_llm.calls:
            by_stage.setdefault(call["stage"], call)

        assert by_stage["planning"]["temperature"] == 0.4
        assert by_stage["planning"]["max_tokens"] == 2000
        assert by_stage["planning"]["response_format"] == {"type": "json_object"}
        assert by_stage["synthesis"]["temperature"] == 0.3
        assert by_stage["synthesis"]["response_format"] == {"type": "json_object"}
        assert "response_format" not in by_stage["section"]


# ============================================================================
# TestPipelineEvents
# ============================================================================


class TestPipelineEvents:
    """Tests for the stream events emitted during a run."""

    def test_event_sequence(self, fake_llm, fake_provider):
        """Events should follow the stage order."""
        emitted = []
        _run(providers=[fake_provider], llm_client=fake_llm, emit=emitted.append)

        types = [e["type"] for e in emitted]
        phases = [e["phase"] for e in emitted if e["type"] == "phase"]

        assert types[0] == "phase"
        assert types[1] == "skeleton"
        assert phases == ["planning", "searching", "synthesis", "sections", "finalizing"]
        assert types.count("vertical_start") == 2
        assert types.count("vertical_complete") == 2
        assert types.count("section_start") == 3
        assert types.count("section_complete") == 3
        assert types.index("synthesis") < types.index("section_start")

    def test_skeleton_has_pending_sections(self, fake_llm, fake_provider):
        """Skeleton lists planned sections with no content."""
        emitted = []
        _run(providers=[fake_provider], llm_client=fake_llm, emit=emitted.append)

        skeleton = next(e for e in emitted if e["type"] == "skeleton")["data"]
        assert skeleton["is_skeleton"] is True
        assert skeleton["metadata"]["abstract"] == ""
        assert [s["status"] for s in skeleton["metadata"]["sections"]] == ["pending"] * 3
        assert [s["heading"] for s in skeleton["metadata"]["sections"]] == [
            "Electrolytes",
            "Market Size",
            "Anodes",
        ]

    def test_async_emitter(self, fake_llm, fake_provider):
        """Coroutine emitters are awaited."""
        emitted = []

        async def emit(event):
            emitted.append(event["type"])

        _run(providers=[fake_provider], llm_client=fake_llm, emit=emit)
        assert "skeleton" in emitted

    def test_failing_emitter_does_not_stop_run(self, fake_llm, fake_provider):
        """An emitter that raises is logged and ignored."""

        def emit(event):
            raise RuntimeError("client went away")

        result = _run(providers=[fake_provider], llm_client=fake_llm, emit=emit)
        assert result["current_stage"] == "complete"


# ============================================================================
# TestPartialFailure
# ============================================================================


class TestPartialFailure:
    """Tests for fallbacks and per-item failure isolation."""

    def test_failed_section_isolated(self, llm_factory, fake_provider, plan_json):
        """A failing section is marked failed; the others complete."""
        emitted = []
        llm = llm_factory(_section_failing_responder(plan_json, "Market Size"))
        result = _run(providers=[fake_provider], llm_client=llm, emit=emitted.append)
        sections = _sections_by_id(result)

        assert sections["s2"]["status"] == "failed"
        assert "upstream 500" in sections["s2"]["error"]
        assert sections["s1"]["status"] == "completed"
        assert sections["s3"]["status"] == "completed"
        assert any(e.startswith("section:s2") for e in result["errors"])

        errors = [e for e in emitted if e["type"] == "section_error"]
        assert [e["section_id"] for e in errors] == ["s2"]

    def test_planning_fallback_on_invalid_json(self, llm_factory, fake_provider):
        """Unparsable plan falls back to the four generic verticals."""

        def responder(stage, messages):
            if stage == "planning":
                return "I cannot help with that."
            if stage == "synthesis":
                return json.dumps({"abstract": "A.", "keyFindings": []})
            return "Text [1]."

        result = _run(providers=[fake_provider], llm_client=llm_factory(responder))
        output = result["research_output"]

        assert output["title"] == "solid state batteries"
        assert [v["name"] for v in output["verticals"]] == [
            "Overview",
            "Current State",
            "Applications",
            "Challenges",
        ]
        assert len(output["sections"]) == 4
        assert output["methodology"] == "Multi-source web research"
        assert any(e.startswith("planning") for e in result["errors"])

    def test_synthesis_fallback_keeps_citations(self, llm_factory, fake_provider, plan_json):
        """Failed synthesis uses the fallback abstract but still counts sources."""

        def responder(stage, messages):
            if stage == "planning":
                return plan_json
            if stage == "synthesis":
                raise RuntimeError("synthesis down")
            return "Text [1]."

        result = _run(providers=[fake_provider], llm_client=llm_factory(responder))
        output = result["research_output"]

        assert output["abstract"] == "Research synthesis could not be completed."
        assert output["key_findings"] == []
        assert output["total_sources"] == 3

    def test_failed_vertical_isolated(self, fake_llm, provider_factory):
        """A vertical whose every provider fails is marked error; the run continues."""
        emitted = []
        provider = provider_factory(fail_queries=["battery market"])
        result = _run(providers=[provider], llm_client=fake_llm, emit=emitted.append)
        output = result["research_output"]

        statuses = {v["id"]: v["status"] for v in output["verticals"]}
        assert statuses == {"v1": "completed", "v2": "error"}
        assert [e["vertical_id"] for e in emitted if e["type"] == "vertical_error"] == ["v2"]
        # s2 borrows evidence from the first vertical with sources
        assert _sections_by_id(result)["s2"]["citations"] == ["1", "2"]

    def test_one_provider_failing_is_tolerated(self, fake_llm, provider_factory):
        """Sources from healthy providers survive another provider's failure."""
        good = provider_factory(name="exa")
        bad = provider_factory(name="perplexity", fail_queries=["battery chemistry", "battery market"])
        result = _run(providers=[good, bad], llm_client=fake_llm)

        statuses = [v["status"] for v in result["research_output"]["verticals"]]
        assert statuses == ["completed", "completed"]
        assert result["errors"] == []

    def test_missing_api_key_aborts(self, fake_provider, monkeypatch):
        """Without an LLM key the run raises a configuration error."""
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.setattr(llm_client_module, "_client", None)

        with pytest.raises(LLMConfigurationError):
            _run(providers=[fake_provider])


# ============================================================================
# TestBatching
# ============================================================================


class TestBatching:
    """Tests for fixed-size batch concurrency."""

    def test_search_batches_bounded(self, llm_factory, provider_factory):
        """No more than parallel_searches verticals are searched at once."""
        plan = {
            "title": "T",
            "verticals": [
                {"id": f"v{i}", "name": f"V{i}", "searchQueries": [f"query {i}"]}
                for i in range(1, 6)
            ],
            "suggestedSections": [{"id": "s1", "heading": "H", "verticalId": "v1"}],
        }

        def responder(stage, messages):
            if stage == "planning":
                return json.dumps(plan)
            if stage == "synthesis":
                return json.dumps({"abstract": "A.", "keyFindings": []})
            return "Text [1]."

        provider = provider_factory(delay=0.01)
        _run(
            providers=[provider],
            llm_client=llm_factory(responder),
            config=get_config(parallel_searches=2),
        )

        assert len(provider.queries) == 5
        assert provider.max_active == 2

    def test_single_section_batches_run_sequentially(self, fake_llm, fake_provider):
        """With batch size 1 sections start in plan order, one at a time."""
        emitted = []
        _run(
            providers=[fake_provider],
            llm_client=fake_llm,
            emit=emitted.append,
            config=get_config(parallel_sections=1),
        )

        section_events = [
            (e["type"], e["section_id"]) for e in emitted if e["type"].startswith("section_")
        ]
        assert section_events == [
            ("section_start", "s1"),
            ("section_complete", "s1"),
            ("section_start", "s2"),
            ("section_complete", "s2"),
            ("section_start", "s3"),
            ("section_complete", "s3"),
        ]
