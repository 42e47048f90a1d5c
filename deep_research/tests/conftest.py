"""
Shared fakes for the research tests.

The fake LLM client mimics the `client.chat.completions.create` surface of
the OpenAI SDK and answers by stage (recognized from the system prompt).
Fake providers return canned sources without any network access.
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional

import pytest

from deep_research.research.prompts.templates import (
    PLANNING_SYSTEM_PROMPT,
    SYNTHESIS_SYSTEM_PROMPT,
    SECTION_SYSTEM_PROMPT,
)
from deep_research.search.providers import SearchProvider
from deep_research.search.schemas import ProviderResult, SearchSource


SECTION_CONTENT = "Sodium [1] and lithium [2, 3] with [42]."

PLAN = {
    "title": "Battery Research",
    "verticals": [
        {
            "id": "v1",
            "name": "Chemistry",
            "description": "Cell chemistry",
            "searchQueries": ["battery chemistry"],
        },
        {
            "id": "v2",
            "name": "Market",
            "description": "Market size",
            "searchQueries": ["battery market"],
        },
    ],
    "suggestedSections": [
        {"id": "s1", "heading": "Electrolytes", "verticalId": "v1", "description": "Materials"},
        {"id": "s2", "heading": "Market Size", "verticalId": "v2", "description": "Revenue"},
        {"id": "s3", "heading": "Anodes", "verticalId": "v1", "description": "Anode types"},
    ],
    "methodology": "Web and academic search",
}

SYNTHESIS = {
    "abstract": "Batteries are improving.",
    "keyFindings": ["Finding one", "Finding two"],
}


class FakeCompletions:
    """Records calls and answers with `responder(stage, messages)`."""

    def __init__(self, responder: Callable[[str, List[Dict[str, str]]], str]):
        self.responder = responder
        self.calls: List[Dict] = []

    async def create(self, model, messages, temperature, max_tokens, **kwargs):
        system_prompt = messages[0]["content"]
        if system_prompt == PLANNING_SYSTEM_PROMPT:
            stage = "planning"
        elif system_prompt == SYNTHESIS_SYSTEM_PROMPT:
            stage = "synthesis"
        elif system_prompt == SECTION_SYSTEM_PROMPT:
            stage = "section"
        else:
            stage = "unknown"
        self.calls.append(
            {
                "stage": stage,
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                **kwargs,
            }
        )
        content = self.responder(stage, messages)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30),
        )


class FakeLLMClient:
    def __init__(self, responder: Callable[[str, List[Dict[str, str]]], str]):
        self.chat = SimpleNamespace(completions=FakeCompletions(responder))

    @property
    def calls(self) -> List[Dict]:
        return self.chat.completions.calls


def default_responder(stage: str, messages: List[Dict[str, str]]) -> str:
    if stage == "planning":
        return json.dumps(PLAN)
    if stage == "synthesis":
        return "```json\n" + json.dumps(SYNTHESIS) + "\n```"
    return SECTION_CONTENT


class FakeProvider(SearchProvider):
    """
    Provider returning one page per query plus a URL shared by every query.

    Tracks the number of concurrent searches it is serving.
    """

    def __init__(self, name: str = "exa", fail_queries: Optional[List[str]] = None, delay: float = 0.0):
        super().__init__()
        self.name = name
        self.fail_queries = fail_queries or []
        self.delay = delay
        self.queries: List[str] = []
        self.active = 0
        self.max_active = 0

    async def search(self, query: str) -> ProviderResult:
        self.queries.append(query)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if query in self.fail_queries:
                raise RuntimeError(f"{self.name} unavailable")
            slug = query.replace(" ", "-")
            return ProviderResult(
                provider=self.name,
                sources=[
                    SearchSource(
                        url=f"https://example.com/{slug}/a",
                        title=f"{query} page",
                        snippet=f"About {query}",
                        image=f"https://img.example.com/{slug}.png",
                        provider="exa",
                    ),
                    SearchSource(
                        url="https://arxiv.org/abs/shared",
                        title="Shared paper",
                        snippet="A paper every query finds",
                        source_type="academic",
                        provider="exa",
                    ),
                ],
            )
        finally:
            self.active -= 1


@pytest.fixture
def fake_llm():
    return FakeLLMClient(default_responder)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def llm_factory():
    """FakeLLMClient class, for tests that need a custom responder."""
    return FakeLLMClient


@pytest.fixture
def provider_factory():
    """FakeProvider class, for tests that need failures or delays."""
    return FakeProvider


@pytest.fixture
def plan_json():
    """Planner response used by the default responder."""
    return json.dumps(PLAN)
