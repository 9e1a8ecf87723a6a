"""
Pytest configuration and fixtures
"""

import random
from typing import Any

import pytest

from lifepath.agents.registry import AgentRegistry
from lifepath.agents.schemas import AgentConfig
from lifepath.engine.executor import AgentExecutor
from lifepath.engine.variables import StoryVariables
from lifepath.llm.backends import FixtureBackend
from lifepath.sessions.store import InMemorySessionStore

SESSION_INPUT = {"date": "1444-03-15", "location": "Florence, Italy"}


@pytest.fixture
def store() -> InMemorySessionStore:
    """Empty in-memory session store"""
    return InMemorySessionStore()


@pytest.fixture
def session_id(store: InMemorySessionStore) -> str:
    """A freshly created session in the in-memory store"""
    store.create("session-test", dict(SESSION_INPUT))
    return "session-test"


@pytest.fixture
def backend() -> FixtureBackend:
    """Fixture backend; .calls records every backend call"""
    return FixtureBackend()


@pytest.fixture
def registry() -> AgentRegistry:
    """Registry over the shipped agent definitions"""
    registry = AgentRegistry()
    registry.load()
    return registry


@pytest.fixture
def executor(store, backend):
    """Executor with the story hook and a seeded random source"""
    executor = AgentExecutor(
        store, backend, variable_hooks=[StoryVariables(random.Random(7))]
    )
    yield executor
    executor.close()


@pytest.fixture
def make_agent():
    """Factory for AgentConfig objects with sensible defaults"""

    def _make(**overrides: Any) -> AgentConfig:
        data: dict[str, Any] = {
            "agent_id": "test_agent",
            "name": "Test Agent",
            "kind": "text",
            "system_prompt": "You are a test.",
            "user_prompt_template": "Date: ${date}",
            "model": {"model": "claude-haiku-4-5-20251001", "max_tokens": 100},
            "input_fields": [{"path": "input.date", "required": True}],
            "output_field": "historical_context",
            "next_agent_rules": [],
        }
        data.update(overrides)
        return AgentConfig.model_validate(data)

    return _make
