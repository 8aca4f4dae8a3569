"""
Shared pytest fixtures for medianotes tests.

Provides a scripted model runtime so insight tests never reach a real model
or the network.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from medianotes.api import MediaNotes
from medianotes.config import ModelConfig, StoreConfig
from medianotes.insights import Insights
from medianotes.media_store import MediaStore
from medianotes.providers.base import Availability, run_tool, validate_reply
from medianotes.repositories import MediaRepository, NoteRepository


BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """A fixed timestamp, offset from BASE_TIME, for deterministic ordering."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakeRuntime:
    """
    Scripted ModelRuntime.

    Reports a fixed availability, optionally calls tools before answering,
    and records what it was asked.
    """

    def __init__(
        self,
        availability: Optional[Availability] = None,
        reply: Any = None,
        tool_calls: Optional[list[tuple[str, dict]]] = None,
        error: Optional[Exception] = None,
    ):
        self._availability = availability or Availability.available()
        self.reply = reply if reply is not None else Insights.example()
        self.tool_calls = tool_calls or []
        self.error = error
        self.availability_calls = 0
        self.respond_calls = 0
        self.last_prompt: Optional[str] = None
        self.last_instructions: Optional[str] = None
        self.last_tools: list = []
        self.tool_outputs: list[str] = []

    async def availability(self) -> Availability:
        self.availability_calls += 1
        return self._availability

    async def respond(self, instructions, tools, prompt, schema):
        self.respond_calls += 1
        self.last_instructions = instructions
        self.last_prompt = prompt
        self.last_tools = list(tools)
        for name, arguments in self.tool_calls:
            self.tool_outputs.append(await run_tool(tools, name, arguments))
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, schema):
            return self.reply
        return validate_reply(schema, self.reply)


class RaisingRuntime(FakeRuntime):
    """Runtime whose availability check itself blows up."""

    async def availability(self) -> Availability:
        self.availability_calls += 1
        raise RuntimeError("runtime exploded")


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite MediaStore in a temporary directory."""
    ms = MediaStore(tmp_path / "medianotes.db")
    yield ms
    ms.close()


@pytest.fixture
def media_repo(store):
    return MediaRepository(store)


@pytest.fixture
def note_repo(store):
    return NoteRepository(store)


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def mn(tmp_path, fake_runtime):
    """MediaNotes over a temporary store, with the scripted runtime."""
    config = StoreConfig(path=tmp_path, model=ModelConfig("none"))
    notes = MediaNotes(config=config, runtime=fake_runtime)
    yield notes
    notes.close()


@pytest.fixture(autouse=True)
def _no_model_keys(monkeypatch):
    """Keep developer API keys and store overrides out of tests."""
    for var in (
        "ANTHROPIC_API_KEY",
        "CLAUDE_CODE_OAUTH_TOKEN",
        "OPENAI_API_KEY",
        "MEDIANOTES_OPENAI_API_KEY",
        "MEDIANOTES_STORE_PATH",
        "OLLAMA_HOST",
    ):
        monkeypatch.delenv(var, raising=False)
