"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_crew.agents.bus import Scratchpad
from agent_crew.agents.registry import AgentRegistry
from agent_crew.config import Settings
from agent_crew.memory.store import MemoryStore
from agent_crew.services import open_services
from agent_crew.tasks.manager import TaskManager
from agent_crew.tasks.repository import TaskRepository


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "crew.db"


@pytest.fixture()
def memory(db_path: Path):
    store = MemoryStore.open(db_path)
    yield store
    store.close()


@pytest.fixture()
def bus() -> Scratchpad:
    return Scratchpad()


@pytest.fixture()
def registry(memory: MemoryStore, bus: Scratchpad) -> AgentRegistry:
    return AgentRegistry(memory=memory, bus=bus)


@pytest.fixture()
def repository(db_path: Path):
    repo = TaskRepository(db_path)
    repo.init_schema()
    yield repo
    repo.close()


@pytest.fixture()
def manager(repository: TaskRepository, registry: AgentRegistry) -> TaskManager:
    return TaskManager(repository, registry)


@pytest.fixture()
def services(db_path: Path, monkeypatch):
    for name in (
        "AGENT_CREW_MEMORY_DURABLE",
        "AGENT_CREW_DEFAULT_AGENT",
        "AGENT_CREW_MEMORY_CONTEXT_WINDOW",
    ):
        monkeypatch.delenv(name, raising=False)
    with open_services(Settings.from_env(db_path=db_path)) as crew:
        yield crew
